"""Per-dive oxygen exposure and gas consumption figures.

Only the first (and only) recorded profile of a dive is used. Pressures are
in mbar, depths in mm, times in seconds.
"""

from __future__ import annotations

from divelog.core.models import (
    AIR,
    O2_IN_AIR,
    SEAWATER_SALINITY,
    SURFACE_PRESSURE_MBAR,
    Cylinder,
    Dive,
    DiveMode,
    GasMix,
)

# NOAA maximum oxygen exposure limits used for CNS.
# Columns: po2 (mbar), single exposure limit (s), slope * 10, 24h limit (s), 24h slope * 10.
# Above 1.6 bar the 1.5-1.6 slope is extrapolated; below 0.6 bar the 0.6-0.7
# slope is used down to 0.5 bar, where oxygen uptake starts.
CNS_TABLE: tuple[tuple[int, int, int, int, int], ...] = (
    (1600, 45 * 60, 456, 150 * 60, 180),
    (1550, 83 * 60, 456, 165 * 60, 180),
    (1500, 120 * 60, 444, 180 * 60, 180),
    (1450, 135 * 60, 180, 180 * 60, 0),
    (1400, 150 * 60, 180, 180 * 60, 0),
    (1350, 165 * 60, 180, 195 * 60, 180),
    (1300, 180 * 60, 180, 210 * 60, 180),
    (1250, 195 * 60, 180, 225 * 60, 180),
    (1200, 210 * 60, 180, 240 * 60, 180),
    (1100, 240 * 60, 180, 270 * 60, 180),
    (1000, 300 * 60, 360, 300 * 60, 180),
    (900, 360 * 60, 360, 360 * 60, 360),
    (800, 450 * 60, 540, 450 * 60, 540),
    (700, 570 * 60, 720, 570 * 60, 720),
    (600, 720 * 60, 900, 720 * 60, 900),
    (500, 870 * 60, 900, 870 * 60, 900),
)

PO2_THRESHOLD_MBAR = 500
ATM_MBAR = 1013.25


def surface_pressure_mbar(dive: Dive) -> int:
    return dive.surface_pressure_mbar or SURFACE_PRESSURE_MBAR


def depth_to_mbar(depth_mm: float, dive: Dive) -> int:
    """Absolute pressure at `depth_mm` for the dive's water and surface pressure."""
    salinity = dive.salinity or SEAWATER_SALINITY
    return round(surface_pressure_mbar(dive) + depth_mm * salinity * 0.981 / 100000)


def depth_to_atm(depth_mm: float, dive: Dive) -> float:
    return depth_to_mbar(depth_mm, dive) / ATM_MBAR


def depth_to_bar(depth_mm: float, dive: Dive) -> float:
    return depth_to_mbar(depth_mm, dive) / 1000.0


def gasmix_at_time(dive: Dive, time: int) -> GasMix:
    """Gas breathed at `time`, taken from the last sample at or before it."""
    cylinder = 0
    for sample in dive.samples:
        if sample.time > time:
            break
        cylinder = sample.cylinder
    if 0 <= cylinder < len(dive.cylinders):
        return dive.cylinders[cylinder].gasmix
    return AIR


def _segment_po2(dive: Dive, idx: int) -> tuple[int, int, bool]:
    """Initial and final po2 of the segment ending at sample `idx`.

    The third value tells whether the po2 was measured (sensor or setpoint)
    rather than computed from depth and gas.
    """
    psample = dive.samples[idx - 1]
    sample = dive.samples[idx]
    if sample.o2sensor_mbar:
        return psample.o2sensor_mbar, sample.o2sensor_mbar, True
    if dive.divemode == DiveMode.CCR:
        return psample.setpoint_mbar, sample.setpoint_mbar, True
    o2 = gasmix_at_time(dive, psample.time).o2
    po2i = round(o2 * depth_to_atm(psample.depth_mm, dive))
    po2f = round(o2 * depth_to_atm(sample.depth_mm, dive))
    return po2i, po2f, False


def calculate_otu(dive: Dive) -> int:
    """Oxygen tolerance units of a dive.

    Third-order continuous approximation of Baker's equation 2 ("Oxygen
    Toxicity Calculations"), which also covers rebreathers.
    """
    otu = 0.0
    for i in range(1, len(dive.samples)):
        t = dive.samples[i].time - dive.samples[i - 1].time
        po2i, po2f, _ = _segment_po2(dive, i)
        if po2i <= PO2_THRESHOLD_MBAR and po2f <= PO2_THRESHOLD_MBAR:
            continue
        # Only count the part of a descent/ascent segment above the threshold
        if po2i <= PO2_THRESHOLD_MBAR:
            t = t * (po2f - PO2_THRESHOLD_MBAR) // (po2f - po2i)
            po2i = PO2_THRESHOLD_MBAR + 1
        elif po2f <= PO2_THRESHOLD_MBAR:
            t = t * (po2i - PO2_THRESHOLD_MBAR) // (po2i - po2f)
            po2f = PO2_THRESHOLD_MBAR + 1
        pm = (po2f + po2i) / 1000.0 - 1.0
        otu += (
            t
            / 60.0
            * pm ** (5.0 / 6.0)
            * (1.0 - 5.0 * (po2f - po2i) * (po2f - po2i) / 216000000.0 / (pm * pm))
        )
    return round(otu)


def calculate_cns_dive(dive: Dive) -> float:
    """CNS percentage accumulated during a single dive.

    Each segment between two samples contributes its duration divided by the
    maximum exposure time at the segment's mean po2, linearly interpolated in
    `CNS_TABLE`.
    """
    cns = 0.0
    for i in range(1, len(dive.samples)):
        t = dive.samples[i].time - dive.samples[i - 1].time
        po2i, po2f, _ = _segment_po2(dive, i)
        po2 = (po2i + po2f) // 2
        if po2 <= PO2_THRESHOLD_MBAR:
            continue
        row = next(r for r in CNS_TABLE[1:] if po2 > r[0])
        limit = row[1] - (po2 - row[0]) * row[2] / 10.0
        cns += t / limit * 100
    return cns


def _gas_volume_ml(cyl: Cylinder, pressure_mbar: int) -> int:
    return int(cyl.size_ml * pressure_mbar / ATM_MBAR)


def calculate_airuse(dive: Dive) -> float:
    """Litres of gas used, 0 if a used cylinder lacks pressure data."""
    airuse = 0
    for i, cyl in enumerate(dive.cylinders):
        start = cyl.start_mbar or cyl.sample_start_mbar
        end = cyl.end_mbar or cyl.sample_end_mbar
        if not end or start <= end:
            # Without the pressure drop of a used cylinder the total is unknown
            if dive.is_cylinder_used(i):
                return 0.0
            continue
        airuse += _gas_volume_ml(cyl, start) - _gas_volume_ml(cyl, end)
    return airuse / 1000.0


def calculate_sac(dive: Dive) -> int:
    """Surface air consumption in ml/min, 0 if it cannot be determined."""
    airuse = calculate_airuse(dive)
    if not airuse or not dive.duration or not dive.mean_depth_mm:
        return 0
    pressure = depth_to_atm(dive.mean_depth_mm, dive)
    sac = airuse / pressure * 60 / dive.duration
    return round(sac * 1000)


def get_dive_gas(dive: Dive) -> tuple[int, int, int]:
    """Summarise the gases of a dive as (o2, he, max o2) in permille.

    Trimix trumps nitrox (highest helium wins) and nitrox trumps air. An
    all-air dive yields zeros.
    """
    maxo2, maxhe, mino2 = -1, -1, 1000
    for i, cyl in enumerate(dive.cylinders):
        if not dive.is_cylinder_used(i) or cyl.is_none():
            continue
        o2, he = cyl.gasmix.o2, cyl.gasmix.he
        if o2 > maxo2:
            maxo2 = o2
        if he > maxhe:
            maxhe = he
            mino2 = o2

    all_air = not maxhe and maxo2 == O2_IN_AIR and mino2 == maxo2
    nothing = maxo2 == -1 and maxhe == -1 and mino2 == 1000
    if all_air or nothing:
        maxo2 = mino2 = 0
    return mino2, max(maxhe, 0), maxo2
