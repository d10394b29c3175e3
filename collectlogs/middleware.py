"""
Middleware exposing the current request to the error collector.

Errors are often logged far from the view that handles the request. The
middleware publishes the request in a context variable so the collector
can snapshot it when a new error class is captured.
"""

from contextvars import ContextVar
from typing import Optional

from django.http import HttpRequest
from django.utils.deprecation import MiddlewareMixin

_current_request: ContextVar[Optional[HttpRequest]] = ContextVar(
    "collectlogs_current_request", default=None
)

_TOKEN_ATTR = "_collectlogs_request_token"


def get_current_request() -> Optional[HttpRequest]:
    return _current_request.get()


class CollectLogsMiddleware(MiddlewareMixin):
    """Track the request being processed for error context capture."""

    def process_request(self, request):
        setattr(request, _TOKEN_ATTR, _current_request.set(request))

    def process_response(self, request, response):
        token = getattr(request, _TOKEN_ATTR, None)
        if token is not None:
            try:
                _current_request.reset(token)
            except ValueError:
                # Token created in another context (async views); just clear.
                _current_request.set(None)
            delattr(request, _TOKEN_ATTR)
        return response


__all__ = ["CollectLogsMiddleware", "get_current_request"]
