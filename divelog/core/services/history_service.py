"""Scan of previous dives feeding CNS and decompression calculations.

Residual nitrogen and oxygen toxicity of a dive depend on the dives made
shortly before it. The scanner walks the dive list backwards from the
subject dive to find how far back it has to look, then forwards again
feeding every relevant dive and the surface intervals between them to an
accumulator.

Two lookback windows are used: 12 hours for CNS, whose load decays with a
90 minute half-time, and 48 hours for seeding the decompression model.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from divelog.core.dive_list import DiveList
from divelog.core.models import AIR, Dive, DiveMode
from divelog.core.services.exposure import (
    calculate_cns_dive,
    calculate_otu,
    calculate_sac,
    depth_to_bar,
    gasmix_at_time,
    surface_pressure_mbar,
)
from divelog.core.services.interfaces import DecoModel, HistoryAccumulator

CNS_LOOKBACK = 12 * 60 * 60
DECO_LOOKBACK = 48 * 60 * 60
CNS_HALF_TIME = 90 * 60
DEFAULT_DECOSAC = 20000  # ml/min


class CnsAccumulator:
    """Sums per-dive CNS, decaying it across surface intervals."""

    def __init__(self) -> None:
        self.cns = 0.0

    def begin(self, dive: Dive) -> None:
        pass

    def surface_interval(self, seconds: int, dive: Dive) -> None:
        self.cns /= 2 ** (seconds / CNS_HALF_TIME)

    def add_dive(self, dive: Dive) -> None:
        self.cns += calculate_cns_dive(dive)

    def finish(self, dive: Dive) -> None:
        self.cns += calculate_cns_dive(dive)


class DecoAccumulator:
    """Feeds previous dives into an external decompression model.

    Args:
        model: The decompression model.
        state: Model state, created by the caller.
        divemode: Dive mode of the subject dive, used for surface intervals.
        decosac: Gas consumption passed along with surface segments.
    """

    def __init__(
        self, model: DecoModel, state: Any, divemode: DiveMode, decosac: int = DEFAULT_DECOSAC
    ) -> None:
        self._model = model
        self._state = state
        self._divemode = divemode
        self._decosac = decosac

    def begin(self, dive: Dive) -> None:
        self._model.clear_deco(self._state, surface_pressure_mbar(dive) / 1000.0)

    def surface_interval(self, seconds: int, dive: Dive) -> None:
        self._model.add_segment(
            self._state,
            surface_pressure_mbar(dive) / 1000.0,
            AIR,
            seconds,
            0,
            self._divemode,
            self._decosac,
        )

    def add_dive(self, dive: Dive) -> None:
        """Add the profile second by second with linearly interpolated depth."""
        for i in range(1, len(dive.samples)):
            psample = dive.samples[i - 1]
            sample = dive.samples[i]
            t0, t1 = psample.time, sample.time
            for t in range(t0, t1):
                depth = psample.depth_mm + round(
                    (sample.depth_mm - psample.depth_mm) * (t - t0) / (t1 - t0)
                )
                self._model.add_segment(
                    self._state,
                    depth_to_bar(depth, dive),
                    gasmix_at_time(dive, t),
                    1,
                    sample.setpoint_mbar,
                    dive.divemode,
                    dive.sac,
                )
        self._model.clear_vpmb_state(self._state)

    def finish(self, dive: Dive) -> None:
        self._model.tissue_tolerance_calc(self._state, dive, surface_pressure_mbar(dive) / 1000.0)


class HistoryScanner:
    """Walks the dive list around a subject dive."""

    def __init__(self, dive_list: DiveList) -> None:
        self._dl = dive_list

    def scan(self, dive: Dive, lookback: int, accumulator: HistoryAccumulator) -> int:
        """Feed the dives preceding `dive` and then `dive` itself to `accumulator`.

        `dive` need not be in the dive list. If it belongs to a trip, only
        dives of the same trip are considered. The scan reaches back until a
        dive ends more than `lookback` seconds before the earliest dive found
        so far.

        Returns the surface interval before `dive`, `lookback` if there was
        no previous dive, or a negative interval if two considered dives
        overlap, in which case the scan stops early.
        """
        table = self._dl.dives
        nr = len(table)
        divenr = self._dl.get_divenr(dive)
        i = divenr if divenr >= 0 else nr

        # Correct the position in case the dive's start time was edited
        while i < nr - 1:
            if table[i].when > dive.when:
                break
            i += 1
        while i > 0:
            if table[i - 1].when < dive.when:
                break
            i -= 1

        # How far back do we need to go?
        last_starttime = dive.when
        while i > 0:
            i -= 1
            if i == divenr and i > 0:
                i -= 1
            pdive = table[i]
            # Don't mix dives from different trips
            if dive.trip_id is not None and pdive.trip_id != dive.trip_id:
                continue
            if pdive.when >= dive.when or pdive.endtime + lookback < last_starttime:
                break
            last_starttime = pdive.when
        else:
            i = -1

        surface_time = lookback
        last_endtime: int | None = None
        for idx in range(i + 1, nr):
            pdive = table[idx]
            if dive.trip_id is not None and pdive.trip_id != dive.trip_id:
                continue
            # Only dives before the subject
            if pdive.when >= dive.when:
                break
            # Skip the stored copy of the subject dive
            if idx == divenr:
                continue

            if last_endtime is None:
                accumulator.begin(pdive)
            else:
                surface_time = pdive.when - last_endtime
                if surface_time < 0:
                    logger.warning(
                        "Overlapping dives before dive {}: surface interval {} s",
                        dive.id,
                        surface_time,
                    )
                    return surface_time
                accumulator.surface_interval(surface_time, pdive)
            accumulator.add_dive(pdive)
            last_endtime = pdive.endtime

        if last_endtime is None:
            accumulator.begin(dive)
        else:
            surface_time = dive.when - last_endtime
            if surface_time < 0:
                logger.warning(
                    "Dive {} starts {} s before the previous dive ended", dive.id, -surface_time
                )
                return surface_time
            accumulator.surface_interval(surface_time, dive)

        accumulator.finish(dive)
        return surface_time

    def calculate_cns(self, dive: Dive) -> int:
        """CNS percentage at the end of `dive`, including residual load.

        The value is cached in `dive.cns`. If overlapping dives abort the
        scan, only the dive's own CNS is counted.
        """
        if dive.cns:
            return dive.cns

        acc = CnsAccumulator()
        if self.scan(dive, CNS_LOOKBACK, acc) < 0:
            dive.cns = round(calculate_cns_dive(dive))
        else:
            dive.cns = round(acc.cns)
        return dive.cns

    def init_decompression(
        self, model: DecoModel, state: Any, dive: Dive | None, decosac: int = DEFAULT_DECOSAC
    ) -> int:
        """Seed `state` with the tissue loading left by previous dives.

        Returns the last surface interval before `dive` (48 hours if there
        was no previous dive) or a negative value for overlapping dives.
        """
        if dive is None:
            return 0
        acc = DecoAccumulator(model, state, dive.divemode, decosac)
        return self.scan(dive, DECO_LOOKBACK, acc)

    def update_cylinder_related_info(self, dive: Dive | None) -> None:
        """Recompute SAC, OTU and, if no dive computer reported it, max CNS."""
        if dive is None:
            return
        dive.sac = calculate_sac(dive)
        dive.otu = calculate_otu(dive)
        if dive.maxcns == 0:
            dive.maxcns = self.calculate_cns(dive)
