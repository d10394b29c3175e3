"""
Exceptions raised by the collectlogs app.
"""


class CollectLogsError(Exception):
    """Base class for collector errors."""


class InvalidRuleError(CollectLogsError):
    """A message rule pattern or replacement cannot be compiled."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid message rule {pattern!r}: {reason}")


class DigestDeliveryError(CollectLogsError):
    """The digest sink failed to deliver a built digest."""

    def __init__(self, message: str, *, recipients=None):
        self.recipients = list(recipients or [])
        super().__init__(message)
