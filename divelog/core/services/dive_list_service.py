"""Table-level operations on the canonical dive list.

Covers processing of freshly loaded dives, adding and removing single dives
while keeping selection and trips consistent, and a few lookups used when
new dives are entered (numbering, surface interval, closest dive).
"""

from __future__ import annotations

from loguru import logger

from divelog.core.dive_list import DiveList
from divelog.core.models import Dive
from divelog.core.services.interfaces import DcNicknameRegistry
from divelog.core.services.selection_service import SelectionService
from divelog.core.services.trip_service import TripService


class DiveListService:
    """Mutates the canonical dive table of a `DiveList`."""

    def __init__(
        self,
        dive_list: DiveList,
        trips: TripService,
        selection: SelectionService,
        nicknames: DcNicknameRegistry | None = None,
    ) -> None:
        self._dl = dive_list
        self._trips = trips
        self._selection = selection
        self._nicknames = nicknames

    def process_loaded_dives(self) -> None:
        """Sort the freshly loaded tables and autogroup if enabled."""
        if self._nicknames is not None:
            for dive in self._dl.dives:
                self._nicknames.set_dc_nickname(dive)

        self._dl.dives.sort()
        self._dl.trips.sort()
        self._trips.autogroup_dives(self._dl.dives, self._dl.trips)
        logger.info(
            "Processed {} loaded dives in {} trips", len(self._dl.dives), len(self._dl.trips)
        )

    def add_single_dive(self, idx: int, dive: Dive) -> None:
        """Insert `dive` at `idx`, or at its sorted position if `idx` is negative."""
        if idx < 0:
            idx = self._dl.dives.insertion_index(dive)
        self._dl.dives.insert_at(idx, dive)
        if dive.selected:
            self._dl.amount_selected += 1

    def unregister_dive(self, idx: int) -> Dive | None:
        """Take the dive at `idx` out of the table without touching its trip.

        The returned dive has its selection cleared.
        """
        dive = self._dl.get_dive(idx)
        if dive is None:
            logger.error("unregister_dive: no dive at index {}", idx)
            return None
        self._dl.dives.remove_at(idx)
        if dive.selected:
            self._dl.amount_selected -= 1
            if self._dl.current_dive is dive:
                self._dl.current_dive = None
        dive.selected = False
        return dive

    def delete_single_dive(self, idx: int) -> None:
        """Deselect, detach from its trip and drop the dive at `idx`."""
        dive = self._dl.get_dive(idx)
        if dive is None:
            logger.error("delete_single_dive: no dive at index {}", idx)
            return
        if dive.selected:
            self._selection.deselect_dive(dive)
        self._trips.remove_dive_from_trip(dive)
        self._dl.dives.remove_at(idx)

    def clear_dive_file_data(self) -> None:
        """Drop all dives and trips."""
        while len(self._dl.dives):
            self.delete_single_dive(0)
        if len(self._dl.trips) != 0:
            logger.warning(
                "Trip table not empty after deleting all dives ({} trips left)",
                len(self._dl.trips),
            )
            for trip in list(self._dl.trips):
                self._trips.free_trip(trip)
            self._dl.trips.clear()
        self._dl.current_dive = None
        self._dl.amount_selected = 0

    def get_surface_interval(self, when: int) -> int:
        """Surface interval before a dive starting at `when`.

        The dive need not be in the list yet. Returns -1 if there is no
        earlier dive and 0 if `when` falls inside the previous dive.
        """
        dives = self._dl.dives
        for i in range(len(dives) - 1, -1, -1):
            if dives[i].when < when:
                prev_end = dives[i].endtime
                return 0 if prev_end > when else when - prev_end
        return -1

    def get_dive_id_closest_to(self, when: int) -> int:
        """Id of the dive starting closest to `when`, 0 for an empty list."""
        dives = self._dl.dives
        nr = len(dives)
        if nr == 0:
            return 0
        if nr == 1:
            return dives[0].id

        i = 0
        while i < nr and dives[i].when <= when:
            i += 1
        if i == nr:
            return dives[i - 1].id
        if i == 0:
            return dives[0].id
        if when - dives[i - 1].when < dives[i].when - when:
            return dives[i - 1].id
        return dives[i].id

    def get_dive_nr_at_idx(self, idx: int) -> int:
        """Number a dive would get if inserted at `idx`.

        1 for an empty log, last number + 1 when appended after a numbered
        dive, 0 otherwise.
        """
        dives = self._dl.dives
        if len(dives) == 0:
            return 1
        if idx >= len(dives):
            last = dives[len(dives) - 1]
            return last.number + 1 if last.number else 0
        return 0

    def set_dive_nr_for_current_dive(self) -> None:
        """Number the current dive if it is the newest one."""
        current = self._dl.current_dive
        if current is None:
            return
        dives = self._dl.dives
        idx = self._dl.get_divenr(current)
        if len(dives) == 1:
            current.number = 1
        elif idx == len(dives) - 1 and dives[idx - 1].number:
            current.number = dives[idx - 1].number + 1
