"""Default merge oracle for dives that describe the same dive.

Importing the same dive twice (for example from a dive computer and from a
web service) must not duplicate it. Two dives are considered the same when
their start times are close relative to their length and their maximum
depths agree.
"""

from __future__ import annotations

from dataclasses import replace

from loguru import logger

from divelog.core.models import Dive, Sample

MIN_START_FUZZ = 60
DEPTH_VARIANCE_MM = 1000


def _shift_samples(samples: list[Sample], offset: int) -> list[Sample]:
    return [replace(s, time=s.time + offset) for s in samples]


class DiveMergeService:
    """Implements the `DiveMerger` protocol."""

    def likely_same_dive(self, a: Dive, b: Dive) -> bool:
        """True if `a` and `b` look like two recordings of one dive."""
        if a.max_depth_mm and b.max_depth_mm:
            if abs(a.max_depth_mm - b.max_depth_mm) > DEPTH_VARIANCE_MM:
                return False
        fuzz = max(MIN_START_FUZZ, max(a.duration, b.duration) // 2)
        return b.when - fuzz <= a.when <= b.when + fuzz

    def try_to_merge(self, a: Dive, b: Dive, prefer_imported: bool) -> Dive | None:
        """Merge `a` (existing) and `b` (imported) into a new dive.

        The preferred dive provides the data; empty fields are filled from
        the other one. The merged dive spans both time windows and has no
        trip.
        """
        if not self.likely_same_dive(a, b):
            return None

        preferred, other = (b, a) if prefer_imported else (a, b)
        when = min(a.when, b.when)
        end = max(a.endtime, b.endtime)
        source = preferred if preferred.samples else other

        merged = Dive(
            when=when,
            duration=end - when,
            number=preferred.number or other.number,
            location=preferred.location or other.location,
            notes=preferred.notes or other.notes,
            max_depth_mm=max(a.max_depth_mm, b.max_depth_mm),
            mean_depth_mm=preferred.mean_depth_mm or other.mean_depth_mm,
            surface_pressure_mbar=preferred.surface_pressure_mbar or other.surface_pressure_mbar,
            salinity=preferred.salinity or other.salinity,
            divemode=source.divemode,
            samples=_shift_samples(source.samples, source.when - when),
            cylinders=list(preferred.cylinders or other.cylinders),
            dc_model=preferred.dc_model or other.dc_model,
            dc_deviceid=preferred.dc_deviceid or other.dc_deviceid,
            notrip=a.notrip or b.notrip,
        )
        logger.debug("Merged dive {} and dive {} into dive {}", a.id, b.id, merged.id)
        return merged
