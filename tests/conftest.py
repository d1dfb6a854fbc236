"""Shared fixtures for the dive list tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from divelog.core.dive_list import DiveList
from divelog.core.models import Dive, Trip
from divelog.core.services.dive_list_service import DiveListService
from divelog.core.services.history_service import HistoryScanner
from divelog.core.services.import_service import ImportService
from divelog.core.services.merge_service import DiveMergeService
from divelog.core.services.selection_service import SelectionService
from divelog.core.services.trip_service import TripService

HOUR = 3600
# 2020-09-13 12:26:40 UTC
T0 = 1_600_000_000


@dataclass
class Services:
    """A dive list wired up with all services, as the main view model does."""

    dl: DiveList
    trips: TripService
    selection: SelectionService
    dives: DiveListService
    importer: ImportService
    history: HistoryScanner
    changes: list[bool] = field(default_factory=list)

    def load(self, *dives: Dive) -> None:
        """Put `dives` into the canonical table as a file load would."""
        for dive in dives:
            self.dl.dives.append(dive)
        self.dives.process_loaded_dives()

    def trip(self, *dives: Dive, location: str = "", autogen: bool = False) -> Trip:
        """Allocate a trip holding `dives` (not registered in any table)."""
        trip = self.trips.alloc_trip(location=location, autogen=autogen)
        for dive in dives:
            self.trips.add_dive_to_trip(dive, trip)
        return trip


class RecordingNicknames:
    """Dive computer registry that remembers which dives it saw."""

    def __init__(self) -> None:
        self.seen: list[Dive] = []

    def set_dc_nickname(self, dive: Dive) -> None:
        self.seen.append(dive)


@pytest.fixture
def make_services():
    """Factory building a fresh `Services` bundle."""

    def _make(
        autogroup: bool = True, trip_threshold: int = 2 * HOUR, merger=None, nicknames=None
    ) -> Services:
        changes: list[bool] = []
        dl = DiveList(autogroup=autogroup, trip_threshold=trip_threshold, on_changed=changes.append)
        trips = TripService(dl)
        selection = SelectionService(dl)
        dives = DiveListService(dl, trips, selection, nicknames)
        importer = ImportService(dl, trips, dives, merger or DiveMergeService(), nicknames)
        return Services(
            dl=dl,
            trips=trips,
            selection=selection,
            dives=dives,
            importer=importer,
            history=HistoryScanner(dl),
            changes=changes,
        )

    return _make


@pytest.fixture
def services(make_services) -> Services:
    """Autogrouping dive list with a two hour trip threshold."""
    return make_services()


@pytest.fixture
def nicknames() -> RecordingNicknames:
    return RecordingNicknames()


@pytest.fixture
def make_dive():
    """Factory for dives starting `offset` seconds after a fixed epoch."""

    def _make(offset: int = 0, duration: int = 30 * 60, **kwargs) -> Dive:
        return Dive(when=T0 + offset, duration=duration, **kwargs)

    return _make
