"""Trip bookkeeping and autogrouping.

Trips own a sorted view of their member dives; each dive points back to its
trip by id. The service keeps both sides in sync and implements the
time-threshold clustering of ungrouped dives.
"""

from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger

from divelog.core.dive_list import TRIP_THRESHOLD, DiveList
from divelog.core.models import Dive, Trip
from divelog.core.ordered_table import OrderedTable
from divelog.core.services.interfaces import AutogroupRun
from divelog.core.services.sort_service import trip_date

__all__ = ["TRIP_THRESHOLD", "TripService"]


def _utc_day(when: int) -> tuple[int, int, int]:
    dt = datetime.fromtimestamp(when, tz=timezone.utc)
    return dt.year, dt.month, dt.day


class TripService:
    """Creates, fills, empties and deletes trips of a `DiveList`."""

    def __init__(self, dive_list: DiveList) -> None:
        self._dl = dive_list

    def alloc_trip(self, location: str = "", notes: str = "", autogen: bool = False) -> Trip:
        """Create an unregistered, empty trip that dives can already point to."""
        trip = Trip(
            dives=self._dl.new_dive_table(), location=location, notes=notes, autogen=autogen
        )
        self._dl.track_trip(trip)
        return trip

    def free_trip(self, trip: Trip) -> None:
        self._dl.forget_trip(trip)

    def add_dive_to_trip(self, dive: Dive, trip: Trip) -> None:
        """Attach `dive` to `trip` at its sorted position.

        The caller is responsible for detaching the dive from its previous
        trip beforehand.
        """
        if dive.trip_id == trip.id:
            return
        if dive.trip_id is not None:
            logger.warning(
                "Adding dive {} to trip {} while it is still in trip {}",
                dive.id,
                trip.id,
                dive.trip_id,
            )
        dive.trip_id = trip.id
        trip.dives.insert(dive)

    def unregister_dive_from_trip(self, dive: Dive) -> Trip | None:
        """Detach `dive` from its trip and return that trip.

        The trip is not deleted even if it became empty, so that batch
        operations can decide when to clean up.
        """
        trip = self._dl.trip_of(dive)
        dive.trip_id = None
        if trip is None:
            return None
        trip.dives.remove(dive)
        return trip

    def remove_dive_from_trip(self, dive: Dive) -> None:
        """Detach `dive` and delete its trip if that was the last member."""
        trip = self.unregister_dive_from_trip(dive)
        if trip is not None and len(trip.dives) == 0:
            self.delete_trip_if_empty(trip)

    def delete_trip_if_empty(self, trip: Trip, table: OrderedTable[Trip] | None = None) -> bool:
        """Unregister and free `trip` if it has no members.

        Deleting a trip that still has dives is a programming error; it is
        logged and the trip is kept.
        """
        if len(trip.dives) != 0:
            logger.error(
                "Refusing to delete trip {} with {} dives", trip.id, len(trip.dives)
            )
            return False
        self.unregister_trip(trip, table)
        self.free_trip(trip)
        return True

    def insert_trip(self, trip: Trip, table: OrderedTable[Trip] | None = None) -> None:
        """Register `trip` in `table` (the canonical trip table by default)."""
        target = self._dl.trips if table is None else table
        self._dl.track_trip(trip)
        target.insert(trip)

    def unregister_trip(self, trip: Trip, table: OrderedTable[Trip] | None = None) -> None:
        """Remove `trip` from `table` without freeing it."""
        target = self._dl.trips if table is None else table
        if len(trip.dives) != 0:
            logger.error("Unregistering trip {} that still has dives", trip.id)
        target.remove(trip)

    def create_trip_from_dive(self, dive: Dive) -> Trip:
        """Allocate a trip named after the dive's location; the dive is not attached."""
        return self.alloc_trip(location=dive.location)

    def create_and_hookup_trip_from_dive(self, dive: Dive) -> Trip:
        """Create a trip for `dive`, attach the dive and register the trip."""
        trip = self.create_trip_from_dive(dive)
        self.add_dive_to_trip(dive, trip)
        self.insert_trip(trip)
        return trip

    def get_trip_for_new_dive(self, new_dive: Dive) -> tuple[Trip, bool]:
        """Find the trip a new dive should be autogrouped with.

        Returns the trip and whether it was newly allocated; a new trip still
        has to be registered by the caller.
        """
        threshold = self._dl.trip_threshold
        for d in self._dl.dives:
            if d.when >= new_dive.when + threshold:
                break
            trip = self._dl.trip_of(d)
            if d.when + threshold >= new_dive.when and trip is not None:
                return trip, False

        trip = self.create_trip_from_dive(new_dive)
        trip.autogen = True
        return trip, True

    def get_dives_to_autogroup(self, table: OrderedTable[Dive], start: int) -> AutogroupRun | None:
        """Find the next run of dives to autogroup, starting at `start`.

        Returns None when no ungrouped dive is left. A newly allocated trip
        is not registered; the caller does that, which lets undo-aware
        callers inject trips themselves.
        """
        threshold = self._dl.trip_threshold
        lastdive: Dive | None = None

        for i in range(start, len(table)):
            dive = table[i]

            if dive.trip_id is not None:
                lastdive = dive
                continue

            # Dives explicitly removed from a trip by the user break the chain
            if dive.notrip:
                lastdive = None
                continue

            if lastdive is None or dive.when >= lastdive.when + threshold:
                trip = self.create_trip_from_dive(dive)
                trip.autogen = True
                allocated = True
            else:
                trip = self._dl.trip_of(lastdive)
                assert trip is not None
                allocated = False

            lastdive = dive
            end = i + 1
            while end < len(table):
                dive = table[end]
                if dive.trip_id is not None or dive.notrip or dive.when >= lastdive.when + threshold:
                    break
                if dive.location and not trip.location:
                    trip.location = dive.location
                lastdive = dive
                end += 1
            return AutogroupRun(trip=trip, start=i, end=end, allocated=allocated)

        return None

    def autogroup_dives(self, table: OrderedTable[Dive], trip_table: OrderedTable[Trip]) -> None:
        """Cluster the ungrouped dives of `table`, if autogrouping is enabled."""
        if not self._dl.autogroup:
            return

        i = 0
        while True:
            run = self.get_dives_to_autogroup(table, i)
            if run is None:
                break
            for j in range(run.start, run.end):
                self.add_dive_to_trip(table[j], run.trip)
            if run.allocated:
                self.insert_trip(run.trip, trip_table)
            i = run.end
        trip_table.sort()
        self.dump_trip_list(trip_table)

    def combine_trips(self, trip_a: Trip, trip_b: Trip) -> Trip:
        """Create a new trip combining the metadata of two trips.

        The old trips are left untouched so that the operation can be undone.
        """
        return self.alloc_trip(
            location=trip_b.location or trip_a.location,
            notes=trip_b.notes or trip_a.notes,
        )

    def is_trip_before_after(self, dive: Dive, before: bool) -> bool:
        """True if the canonical neighbour before/after `dive` is in a trip."""
        idx = self._dl.get_divenr(dive)
        if idx < 0:
            return False
        neighbour = self._dl.get_dive(idx - 1 if before else idx + 1)
        return neighbour is not None and neighbour.trip_id is not None

    @staticmethod
    def trip_is_single_day(trip: Trip) -> bool:
        """True if all dives of the trip start on the same UTC calendar day."""
        if len(trip.dives) <= 1:
            return True
        return _utc_day(trip.dives[0].when) == _utc_day(trip.dives[len(trip.dives) - 1].when)

    @staticmethod
    def trip_shown_dives(trip: Trip) -> int:
        """Number of trip members not hidden by the filter."""
        return sum(1 for d in trip.dives if not d.hidden_by_filter)

    def dump_trip_list(self, table: OrderedTable[Trip] | None = None) -> None:
        """Log the trip table at debug level, flagging out-of-order entries."""
        target = self._dl.trips if table is None else table
        last_time = 0
        for i, trip in enumerate(target):
            when = trip_date(trip)
            if when < last_time:
                logger.debug("Trip table out of order at index {}", i)
            logger.debug(
                "{}trip {} to '{}' at {} ({} dives)",
                "autogen " if trip.autogen else "",
                i + 1,
                trip.location,
                when,
                len(trip.dives),
            )
            last_time = when
