"""
Database models for the error catalogue.
"""

from django.db import models


class ErrorClass(models.Model):
    """One row per distinct error fingerprint."""

    uid = models.CharField(max_length=64, unique=True)
    type = models.CharField(max_length=64)
    severity = models.PositiveSmallIntegerField(default=1)
    reported_file = models.CharField(max_length=512)
    reported_line = models.PositiveIntegerField(default=0)
    real_file = models.CharField(max_length=512, blank=True, default="")
    real_line = models.PositiveIntegerField(default=0)
    generic_message = models.TextField()
    sample_message = models.TextField()
    created_at = models.DateTimeField(db_index=True)

    class Meta:
        app_label = "collectlogs"
        db_table = "collectlogs_error_class"
        verbose_name = "Error class"
        verbose_name_plural = "Error classes"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"[{self.type}] {self.generic_message[:80]}"


class DiagnosticSection(models.Model):
    """Diagnostic context captured when an error class is first seen."""

    error_class = models.ForeignKey(
        ErrorClass, on_delete=models.CASCADE, related_name="sections"
    )
    label = models.CharField(max_length=64)
    content = models.TextField(blank=True)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        app_label = "collectlogs"
        db_table = "collectlogs_section"
        ordering = ["error_class", "position", "id"]

    def __str__(self) -> str:
        return self.label


class OccurrenceCounter(models.Model):
    """Number of occurrences of an error class on one calendar day."""

    error_class = models.ForeignKey(
        ErrorClass, on_delete=models.CASCADE, related_name="counters"
    )
    dimension = models.DateField()
    count = models.PositiveIntegerField(default=1)

    class Meta:
        app_label = "collectlogs"
        db_table = "collectlogs_counter"
        ordering = ["error_class", "dimension"]
        constraints = [
            models.UniqueConstraint(
                fields=["error_class", "dimension"],
                name="collectlogs_counter_unique_day",
            )
        ]

    def __str__(self) -> str:
        return f"{self.error_class_id}@{self.dimension}: {self.count}"


class MessageRule(models.Model):
    """Pattern substitution applied to raw messages before fingerprinting."""

    pattern = models.TextField()
    replacement = models.TextField(blank=True, default="")
    position = models.IntegerField(default=0)
    enabled = models.BooleanField(default=True)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        app_label = "collectlogs"
        db_table = "collectlogs_message_rule"
        ordering = ["position", "id"]

    def __str__(self) -> str:
        return f"{self.pattern} -> {self.replacement}"


class DigestWatermark(models.Model):
    """Timestamp of the last digest run."""

    key = models.SlugField(max_length=50, unique=True, default="default")
    last_run_at = models.DateTimeField()

    class Meta:
        app_label = "collectlogs"
        db_table = "collectlogs_digest_watermark"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key}: {self.last_run_at.isoformat()}"
