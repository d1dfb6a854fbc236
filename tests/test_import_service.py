"""Tests for import reconciliation."""

from divelog.core.services.import_service import trips_overlap
from divelog.core.services.interfaces import ImportFlags

HOUR = 3600


def import_batch(svc, *dives, trips=()):
    table = svc.dl.new_dive_table()
    for dive in dives:
        table.insert(dive)
    trip_table = svc.dl.new_trip_table()
    for trip in trips:
        trip_table.insert(trip)
    return table, trip_table


class TestMergeWithExisting:
    """Tests for imported dives overlapping dives already in the list."""

    def test_duplicate_dive_is_merged(self, make_services, make_dive):
        """An imported copy of a known dive replaces it with a merge."""
        svc = make_services(autogroup=False)
        old = make_dive(0, max_depth_mm=20000, location="Old")
        svc.load(old)
        new = make_dive(0, max_depth_mm=20100, location="New", notes="from computer")

        result = svc.importer.process_imported_dives(*import_batch(svc, new))

        assert list(result.dives_to_remove) == [old]
        assert len(result.dives_to_add) == 1
        merged = result.dives_to_add[0]
        assert merged is not old and merged is not new
        assert merged.location == "Old"
        assert merged.notes == "from computer"
        assert len(result.trips_to_add) == 0

    def test_prefer_imported(self, make_services, make_dive):
        """Imported values win when asked to."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0, location="Old"))
        new = make_dive(0, location="New")

        result = svc.importer.process_imported_dives(
            *import_batch(svc, new), ImportFlags.PREFER_IMPORTED
        )

        assert result.dives_to_add[0].location == "New"

    def test_unrelated_dive_is_added(self, make_services, make_dive):
        """A new dive is added without touching the old one."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0))
        new = make_dive(5 * HOUR)

        result = svc.importer.process_imported_dives(*import_batch(svc, new))

        assert list(result.dives_to_add) == [new]
        assert len(result.dives_to_remove) == 0

    def test_canonical_tables_untouched(self, make_services, make_dive):
        """Planning an import leaves the dive list alone."""
        svc = make_services(autogroup=False)
        old = make_dive(0)
        svc.load(old)
        svc.importer.process_imported_dives(*import_batch(svc, make_dive(0), make_dive(HOUR)))
        assert list(svc.dl.dives) == [old]
        assert svc.changes == []

    def test_inputs_are_consumed(self, services, make_dive):
        """The import tables are empty afterwards."""
        table, trip_table = import_batch(services, make_dive(0), make_dive(HOUR))
        services.importer.process_imported_dives(table, trip_table)
        assert len(table) == 0
        assert len(trip_table) == 0

    def test_empty_import(self, services):
        """An empty import gives an empty result."""
        result = services.importer.process_imported_dives(*import_batch(services))
        assert len(result.dives_to_add) == 0
        assert len(result.dives_to_remove) == 0
        assert len(result.trips_to_add) == 0


class TestMergeWithinImport:
    """Tests for combining dives of the import batch with each other."""

    def test_overlapping_import_dives_merge(self, make_services, make_dive):
        """Overlapping dives of one import are combined."""
        svc = make_services(autogroup=False)
        a = make_dive(0, duration=30 * 60)
        b = make_dive(60, duration=30 * 60)

        result = svc.importer.process_imported_dives(*import_batch(svc, a, b))

        assert len(result.dives_to_add) == 1
        merged = result.dives_to_add[0]
        assert merged.when == a.when
        assert merged.duration == 60 + 30 * 60

    def test_zero_duration_dive_merges(self, make_services, make_dive):
        """A position fix without duration merges into the dive it belongs to."""
        svc = make_services(autogroup=False)
        dive = make_dive(0, duration=30 * 60)
        fix = make_dive(300, duration=0, location="GPS fix")

        result = svc.importer.process_imported_dives(*import_batch(svc, dive, fix))

        assert len(result.dives_to_add) == 1
        assert result.dives_to_add[0].location == "GPS fix"

    def test_merged_dive_takes_earlier_trip(self, make_services, make_dive):
        """The merged dive joins the earlier dive's trip and the emptied trip is freed."""
        svc = make_services(autogroup=False)
        a = make_dive(0, duration=30 * 60)
        b = make_dive(60, duration=30 * 60)
        first = svc.trip(a, location="Morning")
        second = svc.trip(b, location="Afternoon")

        result = svc.importer.process_imported_dives(
            *import_batch(svc, a, b, trips=[first, second])
        )

        assert len(result.dives_to_add) == 1
        merged = result.dives_to_add[0]
        assert merged.trip_id == first.id
        assert list(result.trips_to_add) == [first]
        assert svc.dl.trip_by_id(second.id) is None

    def test_merged_dive_falls_back_to_later_trip(self, make_services, make_dive):
        """Without a trip on the earlier dive the later dive's trip is used."""
        svc = make_services(autogroup=False)
        a = make_dive(0, duration=30 * 60)
        b = make_dive(60, duration=30 * 60)
        later = svc.trip(b, location="Afternoon")

        result = svc.importer.process_imported_dives(*import_batch(svc, a, b, trips=[later]))

        assert len(result.dives_to_add) == 1
        assert result.dives_to_add[0].trip_id == later.id
        assert list(result.trips_to_add) == [later]

    def test_distant_import_dives_stay_separate(self, make_services, make_dive):
        """Dives far apart are not combined."""
        svc = make_services(autogroup=False)
        result = svc.importer.process_imported_dives(
            *import_batch(svc, make_dive(0), make_dive(2 * HOUR))
        )
        assert len(result.dives_to_add) == 2


class TestRenumbering:
    """Tests for numbering of dives appended to a numbered log."""

    def test_empty_log_numbers_from_one(self, make_services, make_dive):
        """An empty log numbers new dives from one."""
        svc = make_services(autogroup=False)
        result = svc.importer.process_imported_dives(
            *import_batch(svc, make_dive(HOUR), make_dive(0))
        )
        assert [d.number for d in result.dives_to_add] == [1, 2]

    def test_appended_dives_continue_numbering(self, make_services, make_dive):
        """Dives after the last one continue its numbering."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0, number=1), make_dive(HOUR, number=2))
        result = svc.importer.process_imported_dives(
            *import_batch(svc, make_dive(5 * HOUR), make_dive(6 * HOUR))
        )
        assert [d.number for d in result.dives_to_add] == [3, 4]

    def test_merged_dives_are_not_renumbered(self, make_services, make_dive):
        """Merged dives keep their numbers."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0, number=1), make_dive(HOUR, number=2))
        duplicate, new = make_dive(HOUR), make_dive(5 * HOUR)

        result = svc.importer.process_imported_dives(*import_batch(svc, duplicate, new))

        merged = result.dives_to_add[0]
        assert merged.number == 2
        assert new.number == 3

    def test_sequence_change_disables_renumbering(self, make_services, make_dive):
        """A dive inserted into the past stops renumbering."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(10 * HOUR, number=1))
        early = make_dive(0)

        result = svc.importer.process_imported_dives(*import_batch(svc, early))

        assert list(result.dives_to_add) == [early]
        assert early.number == 0

    def test_numbered_import_is_not_renumbered(self, make_services, make_dive):
        """Numbers from the import are respected."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0, number=1))
        numbered, unnumbered = make_dive(5 * HOUR, number=7), make_dive(6 * HOUR)
        svc.importer.process_imported_dives(*import_batch(svc, numbered, unnumbered))
        assert numbered.number == 7
        assert unnumbered.number == 0

    def test_unnumbered_log_is_not_renumbered(self, make_services, make_dive):
        """An unnumbered log stays unnumbered."""
        svc = make_services(autogroup=False)
        svc.load(make_dive(0))
        new = make_dive(5 * HOUR)
        svc.importer.process_imported_dives(*import_batch(svc, new))
        assert new.number == 0


class TestTrips:
    """Tests for trip handling during import."""

    def _existing_trip(self, svc, make_dive):
        d0, d1 = make_dive(0), make_dive(HOUR)
        svc.load(d0, d1)
        return svc.dl.trips[0]

    def test_user_trip_is_added_as_new_trip(self, services, make_dive):
        """A user trip is imported as its own trip."""
        existing = self._existing_trip(services, make_dive)
        dive = make_dive(40 * 60)
        trip = services.trip(dive, location="Liveaboard")

        result = services.importer.process_imported_dives(
            *import_batch(services, dive, trips=[trip])
        )

        assert list(result.trips_to_add) == [trip]
        assert len(trip.dives) == 0
        assert dive.trip_id == trip.id
        assert len(existing.dives) == 2

    def test_autogen_trip_merges_into_overlapping_trip(self, services, make_dive):
        """A generated trip joins the overlapping existing trip."""
        existing = self._existing_trip(services, make_dive)
        dive = make_dive(40 * 60)
        trip = services.trip(dive, autogen=True)

        result = services.importer.process_imported_dives(
            *import_batch(services, dive, trips=[trip])
        )

        assert len(result.trips_to_add) == 0
        assert dive.trip_id == existing.id
        assert services.dl.trip_by_id(trip.id) is None

    def test_merge_all_trips(self, services, make_dive):
        """User trips also merge when asked to."""
        existing = self._existing_trip(services, make_dive)
        dive = make_dive(40 * 60)
        trip = services.trip(dive, location="Liveaboard")

        result = services.importer.process_imported_dives(
            *import_batch(services, dive, trips=[trip]), ImportFlags.MERGE_ALL_TRIPS
        )

        assert len(result.trips_to_add) == 0
        assert dive.trip_id == existing.id

    def test_tripless_import_is_autogrouped(self, services, make_dive):
        """Dives without trip are grouped into a new trip."""
        self._existing_trip(services, make_dive)
        a, b = make_dive(10 * HOUR), make_dive(11 * HOUR)

        result = services.importer.process_imported_dives(*import_batch(services, a, b))

        assert len(result.trips_to_add) == 1
        assert a.trip_id == b.trip_id == result.trips_to_add[0].id

    def test_orphans_get_new_trip(self, make_services, make_dive):
        """Dives without trip share one new trip."""
        svc = make_services(autogroup=False)
        a, b = make_dive(0, location="Cenote"), make_dive(20 * HOUR)

        result = svc.importer.process_imported_dives(
            *import_batch(svc, a, b), ImportFlags.NEW_TRIP_FOR_ORPHANS
        )

        assert len(result.trips_to_add) == 1
        trip = result.trips_to_add[0]
        assert trip.location == "Cenote"
        assert a.trip_id == b.trip_id == trip.id

    def test_empty_import_trip_is_dropped(self, services, make_dive):
        """An empty import trip is freed."""
        empty = services.trips.alloc_trip()
        result = services.importer.process_imported_dives(
            *import_batch(services, make_dive(0), trips=[empty])
        )
        assert empty not in list(result.trips_to_add)
        assert services.dl.trip_by_id(empty.id) is None

    def test_trips_overlap(self, services, make_dive):
        """Trips overlap when their date ranges touch."""
        t1 = services.trip(make_dive(0), make_dive(HOUR))
        t2 = services.trip(make_dive(HOUR + 10 * 60))
        t3 = services.trip(make_dive(5 * HOUR))
        assert trips_overlap(t1, t2)
        assert trips_overlap(t2, t1)
        assert not trips_overlap(t1, t3)
        assert not trips_overlap(t1, services.trips.alloc_trip())


class TestNicknames:
    """Tests for dive computer registration."""

    def test_all_dives_registered(self, make_services, make_dive, nicknames):
        """Every imported dive is registered."""
        svc = make_services(autogroup=False, nicknames=nicknames)
        svc.importer.process_imported_dives(*import_batch(svc, make_dive(0), make_dive(HOUR)))
        assert len(nicknames.seen) == 2

    def test_single_source_registers_once(self, make_services, make_dive, nicknames):
        """A single source download registers only the first dive."""
        svc = make_services(autogroup=False, nicknames=nicknames)
        svc.importer.process_imported_dives(
            *import_batch(svc, make_dive(0), make_dive(HOUR)),
            ImportFlags.IS_SINGLE_SOURCE_DOWNLOAD,
        )
        assert len(nicknames.seen) == 1


class TestAddImportedDives:
    """Tests for applying an import to the dive list."""

    def test_merge_replaces_dive_and_keeps_trip(self, services, make_dive):
        """The merged dive takes the old dive's place in its trip."""
        old = make_dive(0, max_depth_mm=18000)
        services.load(old)
        trip = services.dl.trips[0]
        duplicate = make_dive(30, max_depth_mm=18200, notes="computer")

        services.importer.add_imported_dives(*import_batch(services, duplicate))

        assert len(services.dl.dives) == 1
        merged = services.dl.dives[0]
        assert merged is not old
        assert merged.notes == "computer"
        assert list(services.dl.trips) == [trip]
        assert list(trip.dives) == [merged]
        assert services.dl.trip_of(merged) is trip

    def test_new_trip_is_registered(self, services, make_dive):
        """A new trip lands in the trip table."""
        services.load(make_dive(0))
        dive = make_dive(10 * HOUR)
        trip = services.trip(dive, location="Lake")

        services.importer.add_imported_dives(*import_batch(services, dive, trips=[trip]))

        assert len(services.dl.trips) == 2
        assert services.dl.trips[1] is trip
        assert list(trip.dives) == [dive]

    def test_current_dive_and_changed_flag(self, services, make_dive):
        """The newest dive becomes current and the list is changed."""
        services.load(make_dive(0))
        newest = make_dive(10 * HOUR)

        services.importer.add_imported_dives(*import_batch(services, make_dive(5 * HOUR), newest))

        assert len(services.dl.dives) == 3
        assert services.dl.current_dive is newest
        assert services.changes == [True]
        assert services.dl.unsaved_changes

    def test_import_order_does_not_matter(self, make_services, make_dive):
        """Importing two batches in either order yields the same list."""
        results = []
        for order in ((0, 5), (5, 0)):
            svc = make_services(autogroup=False)
            for hours in order:
                svc.importer.add_imported_dives(*import_batch(svc, make_dive(hours * HOUR)))
            results.append([d.when for d in svc.dl.dives])
        assert results[0] == results[1]
        assert len(results[0]) == 2

    def test_reimport_is_idempotent(self, make_services, make_dive):
        """Importing the same dives again adds nothing."""
        svc = make_services(autogroup=False)
        svc.importer.add_imported_dives(*import_batch(svc, make_dive(0), make_dive(HOUR)))
        svc.importer.add_imported_dives(*import_batch(svc, make_dive(0), make_dive(HOUR)))
        assert len(svc.dl.dives) == 2


def test_batches_equal_union(make_services, make_dive):
    """Importing A then B gives the same list as importing A and B at once."""
    offsets_a, offsets_b = (0, 5 * HOUR), (20 * HOUR, 30 * HOUR)

    separate = make_services()
    separate.load(make_dive(2 * HOUR, number=1))
    for offsets in (offsets_a, offsets_b):
        separate.importer.add_imported_dives(
            *import_batch(separate, *(make_dive(o) for o in offsets))
        )

    union = make_services()
    union.load(make_dive(2 * HOUR, number=1))
    union.importer.add_imported_dives(
        *import_batch(union, *(make_dive(o) for o in offsets_a + offsets_b))
    )

    def summary(svc):
        return [(d.when, d.duration) for d in svc.dl.dives]

    assert summary(separate) == summary(union)
