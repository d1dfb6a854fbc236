"""Selection tracking for the dive list, decoupled from any UI toolkit.

Keeps `DiveList.amount_selected` and `DiveList.current_dive` consistent with
the per-dive `selected` flags.
"""

from __future__ import annotations

from loguru import logger

from divelog.core.dive_list import DiveList
from divelog.core.models import Dive, Trip


class SelectionService:
    """Select, deselect and filter dives of a `DiveList`."""

    def __init__(self, dive_list: DiveList) -> None:
        self._dl = dive_list

    def select_dive(self, dive: Dive | None) -> None:
        """Select `dive` and make it the current dive."""
        if dive is None:
            return
        if not dive.selected:
            dive.selected = True
            self._dl.amount_selected += 1
        self._dl.current_dive = dive

    def deselect_dive(self, dive: Dive | None) -> None:
        """Deselect `dive`.

        If it was the current dive, the nearest other selected dive becomes
        current, looking at older dives first.
        """
        if dive is None or not dive.selected:
            return
        dive.selected = False
        if self._dl.amount_selected:
            self._dl.amount_selected -= 1
        if self._dl.current_dive is not dive:
            return
        if self._dl.amount_selected > 0:
            idx = self._dl.get_divenr(dive)
            dives = self._dl.dives
            for i in range(idx - 1, -1, -1):
                if dives[i].selected:
                    self._dl.current_dive = dives[i]
                    return
            for i in range(idx + 1, len(dives)):
                if dives[i].selected:
                    self._dl.current_dive = dives[i]
                    return
        self._dl.current_dive = None

    def select_dives_in_trip(self, trip: Trip | None) -> None:
        """Select every trip member that is not hidden by the filter."""
        if trip is None:
            return
        for dive in trip.dives:
            if not dive.hidden_by_filter:
                self.select_dive(dive)

    def deselect_dives_in_trip(self, trip: Trip | None) -> None:
        if trip is None:
            return
        for dive in list(trip.dives):
            self.deselect_dive(dive)

    def filter_dive(self, dive: Dive | None, shown: bool) -> None:
        """Show or hide `dive`; hidden dives lose their selection."""
        if dive is None:
            return
        dive.hidden_by_filter = not shown
        if not shown and dive.selected:
            self.deselect_dive(dive)

    def consecutive_selected(self) -> bool:
        """True if the selected dives form one contiguous block."""
        if self._dl.amount_selected <= 1:
            return True
        first_found = False
        last_found = False
        for dive in self._dl.dives:
            if dive.selected:
                if not first_found:
                    first_found = True
                elif last_found:
                    return False
            elif first_found:
                last_found = True
        return True

    def first_selected_dive(self) -> Dive | None:
        return next((d for d in self._dl.dives if d.selected), None)

    def last_selected_dive(self) -> Dive | None:
        result = None
        for dive in self._dl.dives:
            if dive.selected:
                result = dive
        return result

    def find_next_visible_dive(self, when: int) -> Dive | None:
        """Find a visible dive close to `when`, searching older dives first."""
        dives = self._dl.dives
        if len(dives) == 0:
            return None

        i = next((k for k, d in enumerate(dives) if when <= d.when), len(dives))
        for j in range(i - 1, -1, -1):
            if not dives[j].hidden_by_filter:
                return dives[j]
        for j in range(i, len(dives)):
            if not dives[j].hidden_by_filter:
                return dives[j]
        return None

    def dump_selection(self) -> None:
        """Log the indices of the selected dives at debug level."""
        selected = [i for i, d in enumerate(self._dl.dives) if d.selected]
        logger.debug("currently selected are {} dives: {}", self._dl.amount_selected, selected)
