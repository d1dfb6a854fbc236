from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from divelog.core.models import Trip
from divelog.core.services.sort_service import trip_date
from divelog.core.services.trip_service import TripService


@dataclass
class TripVM:
    trip: Trip

    @property
    def title(self) -> str:
        """Trip location, or its start date for unnamed trips."""
        if self.trip.location:
            return self.trip.location
        return datetime.fromtimestamp(trip_date(self.trip), tz=timezone.utc).strftime("%Y-%m-%d")

    @property
    def is_single_day(self) -> bool:
        return TripService.trip_is_single_day(self.trip)

    @property
    def shown_dives(self) -> int:
        return TripService.trip_shown_dives(self.trip)
