"""CSV loading of dive summaries.

Provides the external load step of the dive list: each row becomes a `Dive`,
together with the name of the trip it belongs to (if any). Rows with invalid
values are logged and skipped.
"""

from __future__ import annotations

from collections.abc import Iterator
import csv
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from divelog.core.models import Dive

CSV_DT_FMT = "%Y-%m-%d %H:%M:%S"

# Optional columns: Number, MaxDepth, MeanDepth (metres), Location, Notes, Trip, NoTrip
REQUIRED_HEADERS = ["Date", "Duration"]


@dataclass
class CsvDiveRow:
    """A loaded dive and the trip name from its row ("" if none)."""

    dive: Dive
    trip: str = ""


def _parse_timestamp(value: str) -> int:
    """Parse a UTC date like `2019-05-01 09:30:00` into epoch seconds."""
    dt = datetime.strptime(value.strip(), CSV_DT_FMT)
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


def _parse_duration(value: str) -> int:
    """Parse `mm:ss`, `h:mm:ss` or plain seconds."""
    s = str(value).strip()
    if ":" not in s:
        return int(s)
    seconds = 0
    for part in s.split(":"):
        seconds = seconds * 60 + int(part)
    return seconds


def _parse_depth_mm(value: str | None) -> int:
    """Parse a depth in metres into millimetres; empty means unknown (0)."""
    s = (value or "").strip()
    if not s:
        return 0
    return round(float(s) * 1000)


def _parse_bool_int(value: str | None) -> bool:
    """Parse CSV boolean encoded as 1/0 or true/false (case-insensitive)."""
    return str(value or "").strip().lower() in {"1", "true", "yes"}


def format_timestamp(when: int) -> str:
    """Format epoch seconds as a UTC CSV date."""
    return datetime.fromtimestamp(when, tz=timezone.utc).strftime(CSV_DT_FMT)


class CsvDiveRepository:
    """Load dive summaries from CSV files."""

    def load(self, csv_path: str | Path) -> Iterator[CsvDiveRow]:
        """Yield a `CsvDiveRow` per valid row of the CSV at `csv_path`."""
        path = Path(csv_path)
        with path.open("r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            fieldnames = reader.fieldnames or []
            missing = [h for h in REQUIRED_HEADERS if h not in fieldnames]
            if missing:
                raise ValueError(f"CSV missing required headers: {missing}")

            for row in reader:
                try:
                    dive = Dive(
                        when=_parse_timestamp(row.get("Date") or ""),
                        duration=_parse_duration(row.get("Duration", "0") or "0"),
                        number=int(row.get("Number") or 0),
                        max_depth_mm=_parse_depth_mm(row.get("MaxDepth")),
                        mean_depth_mm=_parse_depth_mm(row.get("MeanDepth")),
                        location=(row.get("Location") or "").strip(),
                        notes=row.get("Notes") or "",
                        notrip=_parse_bool_int(row.get("NoTrip")),
                    )
                except (ValueError, TypeError, KeyError, AttributeError) as ex:
                    logger.error("CSV row error: {} | row={}", ex, row)
                    continue
                yield CsvDiveRow(dive=dive, trip=(row.get("Trip") or "").strip())
