"""Lightweight view model wrapper around `Dive`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from divelog.core.models import Dive
from divelog.core.services.exposure import get_dive_gas


@dataclass
class DiveVM:
    """Expose convenient properties for bindings/templates."""

    dive: Dive

    @property
    def number(self) -> int:
        return self.dive.number

    @property
    def date_text(self) -> str:
        """Start time as `YYYY-MM-DD HH:MM` (UTC)."""
        return datetime.fromtimestamp(self.dive.when, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")

    @property
    def duration_text(self) -> str:
        """Duration as `m:ss min`."""
        minutes, seconds = divmod(self.dive.duration, 60)
        return f"{minutes}:{seconds:02d} min"

    @property
    def depth_text(self) -> str:
        """Maximum depth in metres with one decimal."""
        return f"{self.dive.max_depth_mm / 1000:.1f} m"

    @property
    def gas_string(self) -> str:
        """Short gas description such as `21/35…50%`, `32%`, `32…50%` or `air`."""
        o2, he, o2max = get_dive_gas(self.dive)
        o2 = (o2 + 5) // 10
        he = (he + 5) // 10
        o2max = (o2max + 5) // 10
        if he:
            if o2 == o2max:
                return f"{o2}/{he}"
            return f"{o2}/{he}…{o2max}%"
        if o2:
            if o2 == o2max:
                return f"{o2}%"
            return f"{o2}…{o2max}%"
        return "air"

    @property
    def is_selected(self) -> bool:
        return bool(self.dive.selected)
