"""ViewModel for orchestrating CSV IO and the dive list services."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from divelog.core.dive_list import DiveList
from divelog.core.models import Dive, Trip
from divelog.core.ordered_table import OrderedTable
from divelog.core.services.dive_list_service import DiveListService
from divelog.core.services.history_service import HistoryScanner
from divelog.core.services.import_service import ImportService
from divelog.core.services.interfaces import DcNicknameRegistry, DiveMerger, ImportFlags
from divelog.core.services.merge_service import DiveMergeService
from divelog.core.services.selection_service import SelectionService
from divelog.core.services.trip_service import TripService
from divelog.infrastructure.settings import DiveListConfig


class MainVM:
    """Main application view-model.

    Owns one `DiveList` and the services operating on it, and feeds it with
    `CsvDiveRow` items from a repository.
    """

    def __init__(
        self,
        repo,
        config: DiveListConfig | None = None,
        merger: DiveMerger | None = None,
        nicknames: DcNicknameRegistry | None = None,
        on_changed: Callable[[bool], None] | None = None,
    ) -> None:
        """Create a MainVM.

        Args:
            repo: Repository with a `load(path)` method yielding `CsvDiveRow`.
            config: Dive list settings (defaults to `DiveListConfig()`).
            merger: Merge oracle (defaults to `DiveMergeService`).
            nicknames: Optional dive computer registry.
            on_changed: Observer of the unsaved-changes flag.
        """
        self._repo = repo
        self.config = config or DiveListConfig()
        self.dive_list = DiveList(
            autogroup=self.config.autogroup,
            trip_threshold=self.config.trip_threshold,
            on_changed=on_changed,
        )
        self.trips = TripService(self.dive_list)
        self.selection = SelectionService(self.dive_list)
        self.dives = DiveListService(self.dive_list, self.trips, self.selection, nicknames)
        self.importer = ImportService(
            self.dive_list, self.trips, self.dives, merger or DiveMergeService(), nicknames
        )
        self.history = HistoryScanner(self.dive_list)
        self._source_csv_path: str | None = None

    def _read_batch(
        self, path: str, dives: OrderedTable[Dive], trips: OrderedTable[Trip]
    ) -> None:
        """Load `path` into the given tables, one trip per distinct Trip label."""
        by_label: dict[str, Trip] = {}
        for row in self._repo.load(path):
            dives.append(row.dive)
            if not row.trip:
                continue
            trip = by_label.get(row.trip)
            if trip is None:
                trip = self.trips.alloc_trip(location=row.trip)
                by_label[row.trip] = trip
            self.trips.add_dive_to_trip(row.dive, trip)
        for trip in by_label.values():
            self.trips.insert_trip(trip, trips)

    def load_csv(self, path: str) -> None:
        """Replace the dive list with the dives of CSV `path`."""
        self.dives.clear_dive_file_data()
        self._read_batch(path, self.dive_list.dives, self.dive_list.trips)
        self._source_csv_path = path
        self.dives.process_loaded_dives()
        self.dive_list.mark_changed(False)

    def import_csv(self, path: str, flags: ImportFlags | None = None) -> int:
        """Import the dives of CSV `path` into the current dive list.

        Args:
            path: CSV file to import.
            flags: Import flags; derived from the config when omitted.

        Returns:
            Change in the number of dives in the list.
        """
        if flags is None:
            flags = self.config.import_flags()
        before = len(self.dive_list.dives)
        import_dives = self.dive_list.new_dive_table()
        import_trips = self.dive_list.new_trip_table()
        self._read_batch(path, import_dives, import_trips)
        self.importer.add_imported_dives(import_dives, import_trips, flags)
        added = len(self.dive_list.dives) - before
        logger.info("Imported {}: {} new dives", path, added)
        return added

    def get_source_csv_path(self) -> str | None:
        """Return the last-loaded CSV path, if available."""
        return self._source_csv_path

    def remove_dive(self, dive: Dive) -> None:
        """Delete `dive` from the list, dropping its trip if it became empty."""
        idx = self.dive_list.get_divenr(dive)
        if idx < 0:
            logger.warning("Dive {} not found in list", dive.id)
            return
        self.dives.delete_single_dive(idx)
        self.dive_list.mark_changed(True)

    def select(self, dive: Dive) -> None:
        self.selection.select_dive(dive)

    def deselect(self, dive: Dive) -> None:
        self.selection.deselect_dive(dive)

    def top_level_items(self) -> list[Dive | Trip]:
        """Trips and tripless dives, oldest first, as shown in a tree view."""
        items: list[Dive | Trip] = list(self.dive_list.trips)
        items.extend(d for d in self.dive_list.dives if d.trip_id is None)
        return sorted(items, key=self.dive_list.ordering.dive_or_trip_sort_key())

    def refresh_cylinder_info(self) -> None:
        """Recompute SAC, OTU and CNS of every dive."""
        for dive in self.dive_list.dives:
            self.history.update_cylinder_related_info(dive)

    @property
    def dive_count(self) -> int:
        """Number of dives currently loaded."""
        return len(self.dive_list.dives)

    @property
    def trip_count(self) -> int:
        return len(self.dive_list.trips)

    @property
    def unsaved_changes(self) -> bool:
        return self.dive_list.unsaved_changes
