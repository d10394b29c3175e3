"""
GraphQL read API over the error catalogue.

Mount ``CollectLogsQuery`` into a project schema::

    class Query(CollectLogsQuery, graphene.ObjectType):
        pass
"""

import graphene
from django.db.models import Sum
from graphene_django import DjangoObjectType
from graphql import GraphQLError

from .config import get_collectlogs_settings
from .models import DiagnosticSection, ErrorClass
from .utils import to_database_datetime

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


class DiagnosticSectionType(DjangoObjectType):
    """Diagnostic section captured with an error class."""

    class Meta:
        model = DiagnosticSection
        fields = ("label", "content", "position")


class ErrorClassType(DjangoObjectType):
    """Error class with its occurrence total."""

    total_occurrences = graphene.Int(description="Occurrences across all days")
    sections = graphene.List(DiagnosticSectionType)

    class Meta:
        model = ErrorClass
        fields = (
            "id",
            "uid",
            "type",
            "severity",
            "reported_file",
            "reported_line",
            "real_file",
            "real_line",
            "generic_message",
            "sample_message",
            "created_at",
        )

    def resolve_total_occurrences(self, info):
        total = getattr(self, "occurrence_total", None)
        if total is None:
            total = self.counters.aggregate(total=Sum("count"))["total"]
        return total or 0

    def resolve_sections(self, info):
        return self.sections.order_by("position", "id")


def _require_staff(info):
    user = getattr(getattr(info, "context", None), "user", None)
    if not user or not getattr(user, "is_authenticated", False):
        raise GraphQLError("Authentication required.")
    if not getattr(user, "is_staff", False):
        raise GraphQLError("Staff access required.")


class CollectLogsQuery(graphene.ObjectType):
    """Queries over collected error classes (staff only)."""

    collected_errors = graphene.List(
        ErrorClassType,
        since=graphene.DateTime(description="Only classes created at or after this time"),
        limit=graphene.Int(default_value=DEFAULT_LIMIT),
        description="Error classes in creation order",
    )
    collected_error = graphene.Field(
        ErrorClassType,
        uid=graphene.String(required=True),
        description="One error class by fingerprint",
    )

    def resolve_collected_errors(self, info, since=None, limit=DEFAULT_LIMIT):
        _require_staff(info)
        using = get_collectlogs_settings().database
        queryset = ErrorClass.objects.using(using).annotate(
            occurrence_total=Sum("counters__count")
        )
        if since is not None:
            queryset = queryset.filter(created_at__gte=to_database_datetime(since))
        limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))
        return list(queryset.order_by("created_at", "id")[:limit])

    def resolve_collected_error(self, info, uid):
        _require_staff(info)
        using = get_collectlogs_settings().database
        return ErrorClass.objects.using(using).filter(uid=uid).first()


__all__ = ["CollectLogsQuery", "DiagnosticSectionType", "ErrorClassType"]
