"""
Shared fixtures for the collectlogs test-suite.
"""

from collections import defaultdict
from datetime import date, datetime, timezone as dt_timezone
from itertools import count

import pytest

from collectlogs.collector import reset_collector
from collectlogs.store import ErrorStore
from collectlogs.types import ErrorClassRecord, Section


class InMemoryErrorStore(ErrorStore):
    """Dictionary backed store used where the database is irrelevant."""

    def __init__(self):
        self.records = {}
        self.ids_by_uid = {}
        self.sections = {}
        self.counters = defaultdict(int)
        self._ids = count(1)

    def find_by_uid(self, uid):
        return self.ids_by_uid.get(uid)

    def record_occurrence(self, error_class_id, day=None):
        self.counters[(error_class_id, day or date.today())] += 1

    def create_error_class(
        self,
        uid,
        error_type,
        severity,
        reported_file,
        reported_line,
        real_file,
        real_line,
        generic_message,
        sample_message,
        sections,
        created_at=None,
    ):
        existing = self.ids_by_uid.get(uid)
        if existing is not None:
            self.record_occurrence(existing)
            return existing, False
        error_class_id = next(self._ids)
        self.records[error_class_id] = ErrorClassRecord(
            id=error_class_id,
            uid=uid,
            type=error_type,
            severity=severity,
            reported_file=reported_file,
            reported_line=reported_line,
            real_file=real_file,
            real_line=real_line,
            generic_message=generic_message,
            sample_message=sample_message,
            created_at=created_at or datetime.now(dt_timezone.utc),
        )
        self.ids_by_uid[uid] = error_class_id
        self.sections[error_class_id] = [Section.coerce(item) for item in sections]
        self.record_occurrence(error_class_id)
        return error_class_id, True

    def list_created_since(self, since):
        return [
            record
            for _, record in sorted(self.records.items())
            if record.created_at >= since
        ]

    def total_occurrences(self, error_class_id):
        return sum(
            value for (class_id, _), value in self.counters.items() if class_id == error_class_id
        )

    def sections_for(self, error_class_id):
        return list(self.sections.get(error_class_id, []))


@pytest.fixture
def memory_store():
    return InMemoryErrorStore()


@pytest.fixture(autouse=True)
def _fresh_collector():
    reset_collector()
    yield
    reset_collector()
