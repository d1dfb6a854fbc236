"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from divelog.core.dive_list import TRIP_THRESHOLD
from divelog.core.services.history_service import DEFAULT_DECOSAC
from divelog.core.services.interfaces import ImportFlags


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


@dataclass
class DiveListConfig:
    """Typed view of the settings the dive list uses.

    Attributes:
        autogroup: Cluster ungrouped dives into trips.
        trip_threshold: Autogrouping gap in seconds.
        prefer_imported: Imported data wins when merging dives.
        merge_all_trips: Merge user trips on import, not only autogenerated ones.
        new_trip_for_orphans: Put tripless imported dives into a new trip.
        decosac: Gas consumption (ml/min) for surface segments in deco seeding.
        log_level: Minimum loguru level written to the log file.
        log_dir: Log directory, None for the default location.
    """

    autogroup: bool = False
    trip_threshold: int = TRIP_THRESHOLD
    prefer_imported: bool = False
    merge_all_trips: bool = False
    new_trip_for_orphans: bool = False
    decosac: int = DEFAULT_DECOSAC
    log_level: str = "INFO"
    log_dir: str | None = None

    @classmethod
    def from_settings(cls, settings: JsonSettings) -> DiveListConfig:
        """Build the config, falling back to defaults for missing keys."""
        defaults = cls()
        hours = settings.get("divelist.trip_threshold_hours")
        return cls(
            autogroup=bool(settings.get("divelist.autogroup", defaults.autogroup)),
            trip_threshold=(
                int(float(hours) * 3600) if hours is not None else defaults.trip_threshold
            ),
            prefer_imported=bool(settings.get("import.prefer_imported", defaults.prefer_imported)),
            merge_all_trips=bool(settings.get("import.merge_all_trips", defaults.merge_all_trips)),
            new_trip_for_orphans=bool(
                settings.get("import.new_trip_for_orphans", defaults.new_trip_for_orphans)
            ),
            decosac=int(settings.get("deco.decosac_ml_min", defaults.decosac)),
            log_level=str(settings.get("logging.level", defaults.log_level)),
            log_dir=settings.get("logging.dir", defaults.log_dir),
        )

    def import_flags(self) -> ImportFlags:
        """Import flags implied by the configured preferences."""
        flags = ImportFlags.NONE
        if self.prefer_imported:
            flags |= ImportFlags.PREFER_IMPORTED
        if self.merge_all_trips:
            flags |= ImportFlags.MERGE_ALL_TRIPS
        if self.new_trip_for_orphans:
            flags |= ImportFlags.NEW_TRIP_FOR_ORPHANS
        return flags
