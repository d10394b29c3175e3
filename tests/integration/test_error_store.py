"""
Integration tests for the Django error store.
"""

import threading
from datetime import date, timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError, IntegrityError, connection, connections
from django.test import override_settings
from django.utils import timezone

from collectlogs.models import DiagnosticSection, ErrorClass, OccurrenceCounter
from collectlogs.store import DjangoErrorStore
from collectlogs.types import Section

pytestmark = [pytest.mark.integration, pytest.mark.django_db]

SECTIONS = [Section("Stacktrace", "#0 a.py(1): a.run()\n"), Section("Cookie", "")]


@pytest.fixture
def store():
    return DjangoErrorStore()


def _create(store, uid="u1", sections=SECTIONS, **kwargs):
    params = dict(
        error_type="Warning",
        severity=3,
        reported_file="app/tasks.py",
        reported_line=12,
        real_file="",
        real_line=0,
        generic_message="Disk almost full",
        sample_message="Disk almost full",
    )
    params.update(kwargs)
    return store.create_error_class(uid, sections=sections, **params)


class TestCreate:
    def test_first_occurrence_creates_class_sections_and_counter(self, store):
        error_class_id, created = _create(store)

        assert created is True
        assert ErrorClass.objects.count() == 1
        error_class = ErrorClass.objects.get(pk=error_class_id)
        assert error_class.uid == "u1"
        assert error_class.severity == 3
        assert list(
            DiagnosticSection.objects.filter(error_class=error_class).values_list("label", "position")
        ) == [("Stacktrace", 0), ("Cookie", 1)]
        counter = OccurrenceCounter.objects.get(error_class=error_class)
        assert counter.count == 1
        assert counter.dimension == timezone.localdate()

    def test_find_by_uid(self, store):
        error_class_id, _ = _create(store)
        assert store.find_by_uid("u1") == error_class_id
        assert store.find_by_uid("missing") is None

    def test_uid_conflict_falls_back_to_repeat(self, store):
        error_class_id, _ = _create(store)

        second_id, created = _create(store, sections=[Section("Other", "x")])

        assert second_id == error_class_id
        assert created is False
        assert ErrorClass.objects.count() == 1
        assert DiagnosticSection.objects.count() == 2
        assert OccurrenceCounter.objects.get(error_class_id=error_class_id).count == 2

    def test_unexplained_integrity_error_propagates(self, store):
        _create(store)
        with patch.object(store, "find_by_uid", return_value=None):
            with pytest.raises(IntegrityError):
                _create(store)

    def test_failed_first_count_rolls_back_the_class(self, store):
        with patch.object(store, "record_occurrence", side_effect=DatabaseError("disk full")):
            with pytest.raises(DatabaseError):
                _create(store)

        assert ErrorClass.objects.count() == 0
        assert DiagnosticSection.objects.count() == 0
        assert OccurrenceCounter.objects.count() == 0

        error_class_id, created = _create(store)
        assert created is True
        assert store.total_occurrences(error_class_id) == 1

    def test_long_values_are_truncated(self, store):
        error_class_id, _ = _create(store, error_type="T" * 100, reported_file="f" * 600)
        error_class = ErrorClass.objects.get(pk=error_class_id)
        assert len(error_class.type) == 64
        assert len(error_class.reported_file) == 512


class TestCounters:
    def test_same_day_repeat_increments_existing_row(self, store):
        error_class_id, _ = _create(store)
        store.record_occurrence(error_class_id)

        assert OccurrenceCounter.objects.filter(error_class_id=error_class_id).count() == 1
        assert OccurrenceCounter.objects.get(error_class_id=error_class_id).count == 2

    def test_total_occurrences_spans_days(self, store):
        error_class_id, _ = _create(store)
        today = timezone.localdate()
        for offset, times in ((1, 3), (7, 2)):
            for _ in range(times):
                store.record_occurrence(error_class_id, today - timedelta(days=offset))

        assert OccurrenceCounter.objects.filter(error_class_id=error_class_id).count() == 3
        assert store.total_occurrences(error_class_id) == 6

    def test_orm_fallback_upsert(self, store):
        error_class_id, _ = _create(store)
        day = date(2024, 1, 2)
        store._upsert_counter_orm(error_class_id, day)
        store._upsert_counter_orm(error_class_id, day)

        assert OccurrenceCounter.objects.get(error_class_id=error_class_id, dimension=day).count == 2

    def test_total_for_unknown_class_is_zero(self, store):
        assert store.total_occurrences(999) == 0


class TestReads:
    def test_list_created_since_filters_and_orders(self, store):
        now = timezone.now()
        old_id, _ = _create(store, "old", created_at=now - timedelta(days=1))
        first_id, _ = _create(store, "first", created_at=now)
        second_id, _ = _create(store, "second", created_at=now + timedelta(seconds=1))
        store.record_occurrence(old_id)

        records = store.list_created_since(now)

        assert [record.id for record in records] == [first_id, second_id]
        assert records[0].uid == "first"
        assert records[0].has_real_location is False

    def test_sections_for_preserves_order(self, store):
        error_class_id, _ = _create(store)
        assert store.sections_for(error_class_id) == SECTIONS


class TestNaiveDatetimes:
    @pytest.fixture(autouse=True)
    def _without_time_zone_support(self):
        with override_settings(USE_TZ=False):
            yield

    def test_create_and_count_without_time_zone_support(self, store):
        error_class_id, created = _create(store)
        store.record_occurrence(error_class_id)

        assert created is True
        error_class = ErrorClass.objects.get(pk=error_class_id)
        assert timezone.is_naive(error_class.created_at)
        counter = OccurrenceCounter.objects.get(error_class_id=error_class_id)
        assert counter.count == 2
        assert counter.dimension == timezone.now().date()

    def test_list_created_since_accepts_aware_bounds(self, store):
        error_class_id, _ = _create(store)
        since = timezone.make_aware(timezone.now() - timedelta(days=1))

        assert [record.id for record in store.list_created_since(since)] == [error_class_id]


@pytest.mark.django_db(transaction=True)
def test_concurrent_first_occurrences_create_one_class():
    if connection.vendor == "sqlite":
        pytest.skip("sqlite does not run concurrent writers")

    workers = 4
    barrier = threading.Barrier(workers)
    results = []
    failures = []

    def report():
        try:
            barrier.wait()
            results.append(_create(DjangoErrorStore()))
        except Exception as exc:
            failures.append(exc)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=report) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    assert len({error_class_id for error_class_id, _ in results}) == 1
    assert sorted(created for _, created in results) == [False, False, False, True]
    assert ErrorClass.objects.count() == 1
    assert DiagnosticSection.objects.count() == len(SECTIONS)
    assert DjangoErrorStore().total_occurrences(results[0][0]) == workers
