"""Core domain models for dives, trips and dive profiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import itertools
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from divelog.core.ordered_table import OrderedTable

O2_IN_AIR = 209  # permille
SURFACE_PRESSURE_MBAR = 1013
SEAWATER_SALINITY = 10300  # g per 10 l

# Ids are handed out once per process and never reused
_dive_ids = itertools.count(1)
_trip_ids = itertools.count(1)


def next_dive_id() -> int:
    """Return a fresh, strictly increasing dive id."""
    return next(_dive_ids)


def next_trip_id() -> int:
    """Return a fresh trip id."""
    return next(_trip_ids)


class DiveMode(Enum):
    """Breathing apparatus used for a dive."""

    OC = "oc"
    CCR = "ccr"
    PSCR = "pscr"
    FREEDIVE = "freedive"


@dataclass(frozen=True)
class GasMix:
    """Breathing gas, fractions in permille."""

    o2: int = O2_IN_AIR
    he: int = 0


AIR = GasMix()


@dataclass
class Cylinder:
    """A tank carried on the dive. Pressures in mbar, size in ml."""

    gasmix: GasMix = AIR
    size_ml: int = 0
    start_mbar: int = 0
    end_mbar: int = 0
    sample_start_mbar: int = 0
    sample_end_mbar: int = 0

    def is_none(self) -> bool:
        """True if nothing is known about this cylinder."""
        return (
            self.size_ml == 0
            and self.start_mbar == 0
            and self.end_mbar == 0
            and self.sample_start_mbar == 0
            and self.sample_end_mbar == 0
            and self.gasmix == AIR
        )


@dataclass
class Sample:
    """One profile point. `time` is seconds since the dive started."""

    time: int
    depth_mm: int
    setpoint_mbar: int = 0
    o2sensor_mbar: int = 0
    cylinder: int = 0


@dataclass(eq=False)
class Dive:
    """A single logged dive.

    `trip_id` is a non-owning back-reference; resolve it through
    `DiveList.trip_of`. Dives compare by identity.
    """

    when: int = 0
    duration: int = 0
    number: int = 0
    location: str = ""
    notes: str = ""
    max_depth_mm: int = 0
    mean_depth_mm: int = 0
    surface_pressure_mbar: int = 0
    salinity: int = 0
    divemode: DiveMode = DiveMode.OC
    samples: list[Sample] = field(default_factory=list)
    cylinders: list[Cylinder] = field(default_factory=list)
    dc_model: str = ""
    dc_deviceid: int = 0
    trip_id: int | None = None
    notrip: bool = False
    selected: bool = False
    hidden_by_filter: bool = False
    # Computed values, 0 means "not calculated yet"
    cns: int = 0
    maxcns: int = 0
    otu: int = 0
    sac: int = 0
    id: int = field(default_factory=next_dive_id)

    @property
    def endtime(self) -> int:
        """Timestamp at which the dive ended."""
        return self.when + self.duration

    def is_cylinder_used(self, idx: int) -> bool:
        """True if any sample breathes from cylinder `idx`.

        Without a profile only the first cylinder counts as used.
        """
        if not self.samples:
            return idx == 0
        return any(s.cylinder == idx for s in self.samples)


@dataclass(eq=False)
class Trip:
    """A contiguous group of dives.

    `dives` is kept sorted by the dive ordering and mirrors the members'
    `trip_id` back-references.
    """

    dives: OrderedTable[Dive]
    location: str = ""
    notes: str = ""
    autogen: bool = False
    id: int = field(default_factory=next_trip_id)
