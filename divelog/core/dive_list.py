"""The dive list context: canonical tables plus the state shared by services."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from divelog.core.models import Dive, Trip
from divelog.core.ordered_table import OrderedTable
from divelog.core.services.sort_service import DiveOrdering

# Gap beyond which consecutive dives are not autogrouped into the same trip
TRIP_THRESHOLD = 3 * 24 * 60 * 60


class DiveList:
    """Owns the canonical dive and trip tables.

    One instance is passed to every service instead of relying on module
    globals. Besides the two tables it keeps an index of all live trips so
    that a dive's `trip_id` can be resolved even for trips that are still
    being built (import batches, freshly autogrouped trips).

    Args:
        autogroup: Whether ungrouped dives are clustered into trips.
        trip_threshold: Autogrouping gap in seconds.
        on_changed: Observer called with the new value of the changed flag.
    """

    def __init__(
        self,
        autogroup: bool = False,
        trip_threshold: int = TRIP_THRESHOLD,
        on_changed: Callable[[bool], None] | None = None,
    ) -> None:
        self.autogroup = autogroup
        self.trip_threshold = trip_threshold
        self.ordering = DiveOrdering(self.trip_by_id)
        self._trip_index: dict[int, Trip] = {}
        self.dives: OrderedTable[Dive] = self.new_dive_table()
        self.trips: OrderedTable[Trip] = self.new_trip_table()
        self.amount_selected = 0
        self.current_dive: Dive | None = None
        self._changed = False
        self._on_changed = on_changed

    def new_dive_table(self) -> OrderedTable[Dive]:
        """Create an empty table ordered like the canonical dive table."""
        return OrderedTable(self.ordering.compare_dives)

    def new_trip_table(self) -> OrderedTable[Trip]:
        """Create an empty table ordered like the canonical trip table."""
        return OrderedTable(self.ordering.compare_trips)

    # Trip index

    def track_trip(self, trip: Trip) -> None:
        """Make `trip` resolvable through dive back-references."""
        self._trip_index[trip.id] = trip

    def forget_trip(self, trip: Trip) -> None:
        self._trip_index.pop(trip.id, None)

    def trip_by_id(self, trip_id: int | None) -> Trip | None:
        if trip_id is None:
            return None
        return self._trip_index.get(trip_id)

    def trip_of(self, dive: Dive) -> Trip | None:
        """Resolve the trip a dive points to."""
        return self.trip_by_id(dive.trip_id)

    # Dive lookups

    def get_dive(self, idx: int) -> Dive | None:
        """Dive at `idx` of the canonical table, None when out of range."""
        if 0 <= idx < len(self.dives):
            return self.dives[idx]
        return None

    def get_divenr(self, dive: Dive | None) -> int:
        """Index of `dive` in the canonical table by id, -1 if absent.

        Compares ids rather than objects so that copies of a dive are found.
        """
        if dive is None:
            return -1
        return self.get_idx_by_id(dive.id)

    def get_idx_by_id(self, dive_id: int) -> int:
        for i, d in enumerate(self.dives):
            if d.id == dive_id:
                return i
        return -1

    # Changed flag

    def mark_changed(self, changed: bool) -> None:
        """Set the unsaved-changes flag, notifying the observer on transitions."""
        if self._changed == changed:
            return
        self._changed = changed
        logger.debug("Dive list changed flag set to {}", changed)
        if self._on_changed is not None:
            self._on_changed(changed)

    @property
    def unsaved_changes(self) -> bool:
        return self._changed
