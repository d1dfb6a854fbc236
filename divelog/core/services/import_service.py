"""Reconciliation of imported dives with the dive list.

`process_imported_dives` computes what an import would change (dives to add,
dives to remove, trips to add) without touching the canonical tables;
`add_imported_dives` applies that plan.

Both the import batch and the dive list are sorted, so overlapping dives are
found with a single linear pass over each trip (or over the whole list for
tripless dives). This does not handle pathological cases such as a new dive
bridging two old dives, or a dive that could only merge with a dive further
away than its immediate neighbours.
"""

from __future__ import annotations

from loguru import logger

from divelog.core.dive_list import DiveList
from divelog.core.models import Dive, Trip
from divelog.core.ordered_table import OrderedTable
from divelog.core.services.dive_list_service import DiveListService
from divelog.core.services.interfaces import (
    DcNicknameRegistry,
    DiveMerger,
    ImportFlags,
    ImportResult,
)
from divelog.core.services.sort_service import trip_date, trip_enddate
from divelog.core.services.trip_service import TripService


def trips_overlap(t1: Trip, t2: Trip) -> bool:
    """True if the time windows of two non-empty trips intersect."""
    if len(t1.dives) == 0 or len(t2.dives) == 0:
        return False
    if trip_date(t1) < trip_date(t2):
        return trip_enddate(t1) >= trip_date(t2)
    return trip_enddate(t2) >= trip_date(t1)


class ImportService:
    """Merges import batches into a `DiveList`."""

    def __init__(
        self,
        dive_list: DiveList,
        trips: TripService,
        dives: DiveListService,
        merger: DiveMerger,
        nicknames: DcNicknameRegistry | None = None,
    ) -> None:
        self._dl = dive_list
        self._trips = trips
        self._dives = dives
        self._merger = merger
        self._nicknames = nicknames

    def _dive_is_after_last(self, dive: Dive) -> bool:
        """True if `dive` sorts after the newest canonical dive."""
        dives = self._dl.dives
        if len(dives) == 0:
            return True
        return self._dl.ordering.dive_less_than(dives[len(dives) - 1], dive)

    def merge_imported_dives(self, table: OrderedTable[Dive]) -> None:
        """Combine neighbouring dives of a sorted import table.

        Only overlapping dives are tried, or pairs where one dive has zero
        duration (such as a GPS fix from a web service). The merged dive
        replaces the earlier one and is compared with the next neighbour
        again.
        """
        i = 1
        while i < len(table):
            prev = table[i - 1]
            dive = table[i]
            if prev.duration and dive.duration and prev.endtime < dive.when:
                i += 1
                continue

            merged = self._merger.try_to_merge(prev, dive, False)
            if merged is None:
                i += 1
                continue

            trip = self._dl.trip_of(prev) or self._dl.trip_of(dive)
            self._trips.unregister_dive_from_trip(prev)
            self._trips.unregister_dive_from_trip(dive)
            if trip is not None:
                self._trips.add_dive_to_trip(merged, trip)

            table.remove_at(i)
            table.remove_at(i - 1)
            table.insert_at(i - 1, merged)

    def _try_to_merge_into(
        self,
        dive_to_add: Dive,
        idx: int,
        table: OrderedTable[Dive],
        prefer_imported: bool,
        result: ImportResult,
    ) -> bool:
        """Try to merge `dive_to_add` into `table[idx]`.

        On success the old dive is queued for removal and the merged dive,
        which keeps the old dive's trip, for addition.
        """
        old_dive = table[idx]
        merged = self._merger.try_to_merge(old_dive, dive_to_add, prefer_imported)
        if merged is None:
            return False

        merged.trip_id = old_dive.trip_id
        result.dives_to_remove.insert(old_dive)
        result.dives_to_add.insert(merged)
        return True

    def merge_dive_tables(
        self,
        dives_from: OrderedTable[Dive],
        delete_from: OrderedTable[Dive] | None,
        dives_to: OrderedTable[Dive],
        prefer_imported: bool,
        trip: Trip | None,
        result: ImportResult,
    ) -> tuple[bool, int]:
        """Merge the sorted `dives_from` into the sorted `dives_to`.

        Overlapping dives are merged, the others are queued for addition and
        assigned to `trip`. Dives are also dropped from `delete_from` if
        given. `dives_from` is empty afterwards.

        Returns whether a dive was added somewhere other than after the
        newest canonical dive (the sequence changed), and the number of
        merged dives queued in `result.dives_to_add`.
        """
        last_merged_into = -1
        sequence_changed = False
        num_merged = 0
        less_than = self._dl.ordering.dive_less_than

        j = 0  # index in dives_to
        for dive_to_add in list(dives_from):
            if delete_from is not None:
                delete_from.remove(dive_to_add)

            while j < len(dives_to) and less_than(dives_to[j], dive_to_add):
                j += 1

            # Never merge twice into the same dive: it would be queued for
            # removal twice.
            if (
                j > 0
                and j - 1 > last_merged_into
                and dives_to[j - 1].endtime > dive_to_add.when
                and self._try_to_merge_into(dive_to_add, j - 1, dives_to, prefer_imported, result)
            ):
                last_merged_into = j - 1
                num_merged += 1
                continue

            if (
                j < len(dives_to)
                and j > last_merged_into
                and dive_to_add.endtime > dives_to[j].when
                and self._try_to_merge_into(dive_to_add, j, dives_to, prefer_imported, result)
            ):
                last_merged_into = j
                num_merged += 1
                continue

            dive_to_add.trip_id = trip.id if trip is not None else None
            result.dives_to_add.insert(dive_to_add)
            sequence_changed |= not self._dive_is_after_last(dive_to_add)

        dives_from.clear()
        return sequence_changed, num_merged

    def try_to_merge_trip(
        self,
        trip_import: Trip,
        import_table: OrderedTable[Dive],
        prefer_imported: bool,
        result: ImportResult,
    ) -> tuple[bool, bool, int]:
        """Merge `trip_import` into the first overlapping canonical trip.

        Returns (merged, sequence_changed, num_merged). A merged import trip
        is freed.
        """
        for trip_old in self._dl.trips:
            if not trips_overlap(trip_import, trip_old):
                continue
            sequence_changed, num_merged = self.merge_dive_tables(
                trip_import.dives,
                import_table,
                trip_old.dives,
                prefer_imported,
                trip_old,
                result,
            )
            self._trips.free_trip(trip_import)
            logger.debug("Merged import trip {} into trip {}", trip_import.id, trip_old.id)
            return True, sequence_changed, num_merged
        return False, False, 0

    def process_imported_dives(
        self,
        import_table: OrderedTable[Dive],
        import_trip_table: OrderedTable[Trip] | None,
        flags: ImportFlags = ImportFlags.NONE,
    ) -> ImportResult:
        """Plan the import of `import_table` and `import_trip_table`.

        Dives that overlap existing dives are merged (the old dive is queued
        for removal, the merged dive for addition); all others are queued for
        addition. Import trips overlapping an existing trip are merged into it
        if they are autogenerated or `MERGE_ALL_TRIPS` is set; other import
        trips are queued as new trips.

        Both input tables are consumed and empty on return. The queued dives
        carry their `trip_id` but are not trip members yet.
        """
        result = ImportResult(
            dives_to_add=self._dl.new_dive_table(),
            dives_to_remove=self._dl.new_dive_table(),
            trips_to_add=self._dl.new_trip_table(),
        )
        if import_trip_table is None:
            import_trip_table = self._dl.new_trip_table()
        for trip in import_trip_table:
            self._dl.track_trip(trip)

        prefer_imported = bool(flags & ImportFlags.PREFER_IMPORTED)
        # Decides later whether the added dives get renumbered
        new_dive_has_number = any(d.number > 0 for d in import_table)

        if len(import_table) == 0:
            import_trip_table.clear()
            return result

        if self._nicknames is not None:
            if flags & ImportFlags.IS_SINGLE_SOURCE_DOWNLOAD:
                self._nicknames.set_dc_nickname(import_table[0])
            else:
                for dive in import_table:
                    self._nicknames.set_dc_nickname(dive)

        import_table.sort()
        self.merge_imported_dives(import_table)

        if not flags & ImportFlags.NEW_TRIP_FOR_ORPHANS:
            self._trips.autogroup_dives(import_table, import_trip_table)

        preexisting = len(self._dl.dives)
        sequence_changed = False
        start_renumbering_at = 0

        # Few trips get imported at once, so a plain n*m search is fine
        for trip_import in list(import_trip_table):
            if len(trip_import.dives) == 0:
                self._trips.free_trip(trip_import)
                continue

            if (flags & ImportFlags.MERGE_ALL_TRIPS) or trip_import.autogen:
                merged, changed, num_merged = self.try_to_merge_trip(
                    trip_import, import_table, prefer_imported, result
                )
                if merged:
                    sequence_changed |= changed
                    start_renumbering_at += num_merged
                    continue

            for dive in list(trip_import.dives):
                result.dives_to_add.insert(dive)
                sequence_changed |= not self._dive_is_after_last(dive)
                import_table.remove(dive)

            result.trips_to_add.insert(trip_import)
            # The caller re-attaches the dives to the trip
            trip_import.dives.clear()
        import_trip_table.clear()

        if (flags & ImportFlags.NEW_TRIP_FOR_ORPHANS) and len(import_table) > 0:
            new_trip = self._trips.create_trip_from_dive(import_table[0])
            result.trips_to_add.insert(new_trip)
            for dive in import_table:
                dive.trip_id = new_trip.id
                result.dives_to_add.insert(dive)
                sequence_changed |= not self._dive_is_after_last(dive)
            import_table.clear()
        elif len(import_table) > 0:
            changed, num_merged = self.merge_dive_tables(
                import_table, None, self._dl.dives, prefer_imported, None, result
            )
            sequence_changed |= changed
            start_renumbering_at += num_merged

        # Renumber only if the new dives were appended after a numbered log.
        # The merged dives sort before the appended ones and are skipped.
        dives = self._dl.dives
        nr = dives[len(dives) - 1].number if len(dives) > 0 else 0
        if not sequence_changed and nr >= preexisting and not new_dive_has_number:
            for dive in result.dives_to_add[start_renumbering_at:]:
                nr += 1
                dive.number = nr

        logger.info(
            "Import plan: {} dives to add, {} to remove, {} new trips",
            len(result.dives_to_add),
            len(result.dives_to_remove),
            len(result.trips_to_add),
        )
        return result

    def add_imported_dives(
        self,
        import_table: OrderedTable[Dive],
        import_trip_table: OrderedTable[Trip] | None,
        flags: ImportFlags = ImportFlags.NONE,
    ) -> None:
        """Import dives and apply the resulting changes to the dive list."""
        result = self.process_imported_dives(import_table, import_trip_table, flags)

        # Attach new dives first so that trips survive the removal of the
        # dives they replace
        for dive in result.dives_to_add:
            trip = self._dl.trip_of(dive)
            if trip is None:
                continue
            dive.trip_id = None
            self._trips.add_dive_to_trip(dive, trip)

        for dive in list(result.dives_to_remove):
            self._dives.delete_single_dive(self._dl.get_divenr(dive))
        result.dives_to_remove.clear()

        for dive in list(result.dives_to_add):
            self._dives.add_single_dive(self._dl.dives.insertion_index(dive), dive)
        result.dives_to_add.clear()

        for trip in list(result.trips_to_add):
            self._trips.insert_trip(trip)
        result.trips_to_add.clear()

        # The previously current dive may be gone; pick the newest dive
        dives = self._dl.dives
        self._dl.current_dive = dives[len(dives) - 1] if len(dives) > 0 else None
        self._dl.mark_changed(True)
