"""Core service interfaces and shared data structures.

This module defines the import flags, the result structures passed between
the import engine and its callers, and the protocols of the external
collaborators the core calls into (merge oracle, decompression model, dive
computer nickname registry, history accumulators).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Protocol

from divelog.core.models import Dive, DiveMode, GasMix, Trip
from divelog.core.ordered_table import OrderedTable


class ImportFlags(IntFlag):
    """Behavioural switches for dive import.

    Attributes:
        PREFER_IMPORTED: On merge, data of the imported dive wins.
        MERGE_ALL_TRIPS: Merge every overlapping trip, not only autogenerated ones.
        IS_SINGLE_SOURCE_DOWNLOAD: All dives come from one dive computer.
        NEW_TRIP_FOR_ORPHANS: Put tripless imported dives into one new trip.
    """

    NONE = 0
    PREFER_IMPORTED = 1
    MERGE_ALL_TRIPS = 2
    IS_SINGLE_SOURCE_DOWNLOAD = 4
    NEW_TRIP_FOR_ORPHANS = 8


@dataclass
class ImportResult:
    """Outcome of reconciling an import batch with the dive list.

    The dives to add carry their `trip_id` but are *not* yet members of that
    trip; the caller attaches them.

    Attributes:
        dives_to_add: New and merged dives, sorted.
        dives_to_remove: Canonical dives replaced by merged dives.
        trips_to_add: Import trips that did not merge into an existing trip.
    """

    dives_to_add: OrderedTable[Dive]
    dives_to_remove: OrderedTable[Dive]
    trips_to_add: OrderedTable[Trip]


@dataclass
class AutogroupRun:
    """A run of dives that should be put into one trip.

    Attributes:
        trip: Trip to attach the dives to.
        start: Index of the first dive of the run.
        end: Index one past the last dive of the run.
        allocated: True if `trip` is new and must still be registered.
    """

    trip: Trip
    start: int
    end: int
    allocated: bool


class DiveMerger(Protocol):
    """Decides whether two dives describe the same dive and merges them."""

    def try_to_merge(self, a: Dive, b: Dive, prefer_imported: bool) -> Dive | None:
        """Return a new merged dive, or None if `a` and `b` are unrelated."""
        raise NotImplementedError


class DcNicknameRegistry(Protocol):
    """Records the dive computers seen on loaded or imported dives."""

    def set_dc_nickname(self, dive: Dive) -> None:
        raise NotImplementedError


class DecoModel(Protocol):
    """Opaque decompression model fed by the history scan.

    `state` is owned by the model; the core never looks inside it.
    """

    def clear_deco(self, state: Any, surface_pressure: float) -> None:
        raise NotImplementedError

    def add_segment(
        self,
        state: Any,
        pressure: float,
        gasmix: GasMix,
        duration: int,
        setpoint: int,
        divemode: DiveMode,
        sac: int,
    ) -> None:
        raise NotImplementedError

    def clear_vpmb_state(self, state: Any) -> None:
        raise NotImplementedError

    def tissue_tolerance_calc(self, state: Any, dive: Dive, surface_pressure: float) -> float:
        raise NotImplementedError


class HistoryAccumulator(Protocol):
    """Receives previous dives and surface intervals from the history scan."""

    def begin(self, dive: Dive) -> None:
        """Called with the first dive fed into the accumulator."""
        raise NotImplementedError

    def surface_interval(self, seconds: int, dive: Dive) -> None:
        """Surface time elapsed before `dive` started."""
        raise NotImplementedError

    def add_dive(self, dive: Dive) -> None:
        raise NotImplementedError

    def finish(self, dive: Dive) -> None:
        """Called once with the subject dive after all previous dives."""
        raise NotImplementedError
