"""
Persistence of the error catalogue.

``ErrorStore`` is the narrow port the collector and the digest reporter
depend on; ``DjangoErrorStore`` implements it on the Django ORM.
"""

from __future__ import annotations

import abc
import logging
from datetime import date, datetime
from typing import Iterable, Optional

from django.db import IntegrityError, connections, transaction
from django.db.models import F, Sum
from django.utils import timezone

from .models import DiagnosticSection, ErrorClass, OccurrenceCounter
from .types import ErrorClassRecord, Section
from .utils import local_today, to_database_datetime

logger = logging.getLogger(__name__)

_UPSERT_RETRIES = 3


class ErrorStore(abc.ABC):
    """Operations the collector needs from the persistence layer."""

    @abc.abstractmethod
    def find_by_uid(self, uid: str) -> Optional[int]:
        """Return the id of the error class with ``uid``, if any."""

    @abc.abstractmethod
    def record_occurrence(self, error_class_id: int, day: Optional[date] = None) -> None:
        """Atomically add one occurrence to the class counter for ``day``."""

    @abc.abstractmethod
    def create_error_class(
        self,
        uid: str,
        error_type: str,
        severity: int,
        reported_file: str,
        reported_line: int,
        real_file: str,
        real_line: int,
        generic_message: str,
        sample_message: str,
        sections: Iterable[Section],
    ) -> tuple[int, bool]:
        """
        Insert a class with its sections and count its first occurrence.

        Returns ``(error_class_id, created)``; ``created`` is False when a
        concurrent writer inserted the same uid first.
        """

    @abc.abstractmethod
    def list_created_since(self, since: datetime) -> list[ErrorClassRecord]:
        """Classes created at or after ``since``, in creation order."""

    @abc.abstractmethod
    def total_occurrences(self, error_class_id: int) -> int:
        """Sum of all daily counters of a class."""

    @abc.abstractmethod
    def sections_for(self, error_class_id: int) -> list[Section]:
        """Diagnostic sections of a class, in insertion order."""


class DjangoErrorStore(ErrorStore):
    def __init__(self, using: str = "default"):
        self.using = using

    def find_by_uid(self, uid: str) -> Optional[int]:
        return (
            ErrorClass.objects.using(self.using)
            .filter(uid=uid)
            .values_list("id", flat=True)
            .first()
        )

    def record_occurrence(self, error_class_id: int, day: Optional[date] = None) -> None:
        day = day or local_today()
        connection = connections[self.using]
        if connection.vendor in ("sqlite", "postgresql", "mysql"):
            self._upsert_counter_sql(connection, error_class_id, day)
        else:
            self._upsert_counter_orm(error_class_id, day)

    def create_error_class(
        self,
        uid: str,
        error_type: str,
        severity: int,
        reported_file: str,
        reported_line: int,
        real_file: str,
        real_line: int,
        generic_message: str,
        sample_message: str,
        sections: Iterable[Section],
        created_at: Optional[datetime] = None,
    ) -> tuple[int, bool]:
        sections = list(sections)
        try:
            with transaction.atomic(using=self.using):
                error_class = ErrorClass.objects.using(self.using).create(
                    uid=uid,
                    type=(error_type or "")[:64],
                    severity=int(severity),
                    reported_file=(reported_file or "")[:512],
                    reported_line=max(int(reported_line or 0), 0),
                    real_file=(real_file or "")[:512],
                    real_line=max(int(real_line or 0), 0),
                    generic_message=generic_message,
                    sample_message=sample_message,
                    created_at=to_database_datetime(created_at or timezone.now()),
                )
                DiagnosticSection.objects.using(self.using).bulk_create(
                    [
                        DiagnosticSection(
                            error_class=error_class,
                            label=section.label[:64],
                            content=section.content,
                            position=position,
                        )
                        for position, section in enumerate(sections)
                    ]
                )
                self.record_occurrence(error_class.pk)
        except IntegrityError:
            # A uid conflict leaves the winner's row readable; anything else does not.
            existing_id = self.find_by_uid(uid)
            if existing_id is None:
                raise
            logger.debug("Error class %s created concurrently, counting as repeat", uid)
            self.record_occurrence(existing_id)
            return existing_id, False
        return error_class.pk, True

    def list_created_since(self, since: datetime) -> list[ErrorClassRecord]:
        queryset = (
            ErrorClass.objects.using(self.using)
            .filter(created_at__gte=to_database_datetime(since))
            .order_by("id")
        )
        return [_to_record(error_class) for error_class in queryset]

    def total_occurrences(self, error_class_id: int) -> int:
        result = (
            OccurrenceCounter.objects.using(self.using)
            .filter(error_class_id=error_class_id)
            .aggregate(total=Sum("count"))
        )
        return int(result["total"] or 0)

    def sections_for(self, error_class_id: int) -> list[Section]:
        rows = (
            DiagnosticSection.objects.using(self.using)
            .filter(error_class_id=error_class_id)
            .order_by("position", "id")
            .values_list("label", "content")
        )
        return [Section(label, content) for label, content in rows]

    def _upsert_counter_sql(self, connection, error_class_id: int, day: date) -> None:
        quote = connection.ops.quote_name
        table = quote(OccurrenceCounter._meta.db_table)
        count = quote("count")
        insert = (
            f"INSERT INTO {table} ({quote('error_class_id')}, {quote('dimension')}, {count}) "
            f"VALUES (%s, %s, 1) "
        )
        if connection.vendor == "mysql":
            sql = insert + f"ON DUPLICATE KEY UPDATE {count} = {count} + 1"
        else:
            sql = insert + (
                f"ON CONFLICT ({quote('error_class_id')}, {quote('dimension')}) "
                f"DO UPDATE SET {count} = {table}.{count} + 1"
            )
        params = [error_class_id, connection.ops.adapt_datefield_value(day)]
        with connection.cursor() as cursor:
            cursor.execute(sql, params)

    def _upsert_counter_orm(self, error_class_id: int, day: date) -> None:
        counters = OccurrenceCounter.objects.using(self.using)
        for _ in range(_UPSERT_RETRIES):
            updated = counters.filter(
                error_class_id=error_class_id, dimension=day
            ).update(count=F("count") + 1)
            if updated:
                return
            try:
                with transaction.atomic(using=self.using):
                    counters.create(error_class_id=error_class_id, dimension=day, count=1)
                return
            except IntegrityError:
                continue
        raise IntegrityError(
            f"Could not record occurrence of error class {error_class_id} on {day}"
        )


def _to_record(error_class: ErrorClass) -> ErrorClassRecord:
    return ErrorClassRecord(
        id=error_class.pk,
        uid=error_class.uid,
        type=error_class.type,
        severity=error_class.severity,
        reported_file=error_class.reported_file,
        reported_line=error_class.reported_line,
        real_file=error_class.real_file,
        real_line=error_class.real_line,
        generic_message=error_class.generic_message,
        sample_message=error_class.sample_message,
        created_at=error_class.created_at,
    )


__all__ = ["DjangoErrorStore", "ErrorStore"]
