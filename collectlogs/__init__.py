"""
django-collectlogs: catalogue recurring application errors.

Errors are normalised, fingerprinted and stored once per distinct class
with per-day occurrence counters, diagnostic context captured on first
sight, an optional text log and a periodic digest of new classes.
"""

from .defaults import LIBRARY_NAME, LIBRARY_VERSION

__version__ = LIBRARY_VERSION


def collect_error(*args, **kwargs):
    """Collect one error event; see ``collectlogs.collector.collect_error``."""
    from .collector import collect_error as _collect_error

    return _collect_error(*args, **kwargs)


__all__ = ["LIBRARY_NAME", "__version__", "collect_error"]
