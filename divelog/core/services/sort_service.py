"""Ordering rules for dives and trips.

This is the single source of truth for sorting: the canonical tables, the
trip member tables and the import tables are all ordered with the comparators
defined here.
"""

from __future__ import annotations

from collections.abc import Callable
import functools
from typing import Any

from divelog.core.models import Dive, Trip

TripResolver = Callable[[int | None], Trip | None]


def trip_date(trip: Trip | None) -> int:
    """Start time of the first dive in `trip`, 0 for empty or unknown trips."""
    if trip is None or len(trip.dives) == 0:
        return 0
    return trip.dives[0].when


def trip_enddate(trip: Trip | None) -> int:
    """End time of the last dive in `trip`, 0 for empty or unknown trips."""
    if trip is None or len(trip.dives) == 0:
        return 0
    return trip.dives[len(trip.dives) - 1].endtime


def _cmp(a: int, b: int) -> int:
    return (a > b) - (a < b)


class DiveOrdering:
    """Comparators for dives and trips.

    Dives are sorted lexicographically on (start time, trip time, id). Dives
    without a trip sort *after* dives that have one at the same instant, so in
    the usual newest-first display they show up first. The id is strictly
    increasing and unique, so two distinct dives never compare equal.
    """

    def __init__(self, resolve_trip: TripResolver) -> None:
        self._resolve_trip = resolve_trip

    def compare_dives(self, a: Dive, b: Dive) -> int:
        """Three-way comparison of two dives."""
        if a.when != b.when:
            return _cmp(a.when, b.when)
        if a.trip_id != b.trip_id:
            if b.trip_id is None:
                return -1
            if a.trip_id is None:
                return 1
            ta = trip_date(self._resolve_trip(a.trip_id))
            tb = trip_date(self._resolve_trip(b.trip_id))
            if ta != tb:
                return _cmp(ta, tb)
        return _cmp(a.id, b.id)

    def compare_trips(self, a: Trip, b: Trip) -> int:
        """Compare trips by their first dive.

        Empty trips should not exist in steady state; they sort first.
        """
        if len(a.dives) <= 0:
            return 0 if len(b.dives) <= 0 else -1
        if len(b.dives) <= 0:
            return 1
        return self.compare_dives(a.dives[0], b.dives[0])

    def _compare_dive_to_trip(self, dive: Dive, trip: Trip) -> int:
        if len(trip.dives) <= 0:
            return -1
        return self.compare_dives(dive, trip.dives[0])

    def compare_dive_or_trip(self, a: Dive | Trip, b: Dive | Trip) -> int:
        """Compare entries of a mixed top-level list of dives and trips."""
        if isinstance(a, Dive) and isinstance(b, Dive):
            return self.compare_dives(a, b)
        if isinstance(a, Trip) and isinstance(b, Trip):
            return self.compare_trips(a, b)
        if isinstance(a, Dive):
            assert isinstance(b, Trip)
            return self._compare_dive_to_trip(a, b)
        assert isinstance(b, Dive)
        return -self._compare_dive_to_trip(b, a)

    def dive_less_than(self, a: Dive, b: Dive) -> bool:
        return self.compare_dives(a, b) < 0

    def trip_less_than(self, a: Trip, b: Trip) -> bool:
        return self.compare_trips(a, b) < 0

    def dive_or_trip_less_than(self, a: Dive | Trip, b: Dive | Trip) -> bool:
        return self.compare_dive_or_trip(a, b) < 0

    def dive_sort_key(self) -> Callable[[Dive], Any]:
        """Key function for `sorted()` over dives."""
        return functools.cmp_to_key(self.compare_dives)

    def trip_sort_key(self) -> Callable[[Trip], Any]:
        return functools.cmp_to_key(self.compare_trips)

    def dive_or_trip_sort_key(self) -> Callable[[Dive | Trip], Any]:
        """Key function for `sorted()` over a mixed list of dives and trips."""
        return functools.cmp_to_key(self.compare_dive_or_trip)
