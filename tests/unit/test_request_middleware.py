"""
Unit tests for the request tracking middleware.
"""

import pytest
from django.http import HttpResponse
from django.test import RequestFactory

from collectlogs.collector import ErrorCollector
from collectlogs.context import ContextCapturer
from collectlogs.middleware import CollectLogsMiddleware, get_current_request
from collectlogs.normalizer import MessageNormalizer
from collectlogs.types import ErrorEvent

pytestmark = pytest.mark.unit


def test_request_is_exposed_while_processing():
    seen = {}

    def view(request):
        seen["request"] = get_current_request()
        return HttpResponse("ok")

    request = RequestFactory().get("/orders/")
    response = CollectLogsMiddleware(view)(request)

    assert response.status_code == 200
    assert seen["request"] is request
    assert get_current_request() is None


def test_collector_snapshots_current_request(memory_store):
    collector = ErrorCollector(memory_store, MessageNormalizer.from_rules([]), ContextCapturer())
    results = []

    def view(request):
        results.append(collector.collect(ErrorEvent(type="Error", message="boom", file="v.py", line=3)))
        return HttpResponse("ok")

    request = RequestFactory().get("/orders/", {"page": "2"}, HTTP_REFERER="https://example.com/")
    CollectLogsMiddleware(view)(request)

    sections = {s.label: s.content for s in memory_store.sections_for(results[0].error_class_id)}
    assert sections["HTTP Request"] == "GET /orders/?page=2\n"
    assert sections["Referrer"] == "https://example.com/"
    assert sections["GET parameters"] == "  [page]: '2'\n"
