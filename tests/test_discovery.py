"""Tests for stream discovery."""

import pytest

from conftest import FakeBackend, ready_stream
from nodeless.backend import LogStream
from nodeless.discovery import list_active_streams
from nodeless.errors import BackendError, Cancelled, GroupNotFound, RateLimited

GROUP = "/aws/lambda/my-function"


class TestCandidates:
    def test_filters_by_last_ingestion_time(self, cancel):
        page = [ready_stream("new", ingestion=2_000), ready_stream("edge", ingestion=1_000), ready_stream("old", ingestion=999)]
        backend = FakeBackend(streams=[[page]])
        assert list_active_streams(backend, GROUP, 1_000, cancel) == ["new", "edge"]

    def test_skips_streams_missing_timestamps(self, cancel):
        page = [
            LogStream("no-ingestion", first_event_timestamp=1, last_event_timestamp=2),
            LogStream("no-first-event", last_event_timestamp=5_000, last_ingestion_time=5_000),
            ready_stream("ready", ingestion=5_000),
        ]
        backend = FakeBackend(streams=[[page]])
        assert list_active_streams(backend, GROUP, 1_000, cancel) == ["ready"]

    def test_empty_group(self, cancel):
        backend = FakeBackend(streams=[[[]]])
        assert list_active_streams(backend, GROUP, 0, cancel) == []


class TestPagination:
    def test_collects_across_pages(self, cancel):
        pages = [[ready_stream("a", ingestion=2_000)], [ready_stream("b", ingestion=3_000)]]
        backend = FakeBackend(streams=[pages])
        assert list_active_streams(backend, GROUP, 1_000, cancel) == ["a", "b"]

    def test_page_without_candidates_stops_scan(self, cancel):
        pages = [
            [ready_stream("a", ingestion=2_000)],
            [ready_stream("stale", ingestion=10)],
            [ready_stream("late", ingestion=2_000)],
        ]
        backend = FakeBackend(streams=[pages])
        assert list_active_streams(backend, GROUP, 1_000, cancel) == ["a"]


class TestErrors:
    def test_group_not_found_is_empty(self, cancel):
        backend = FakeBackend(streams=[GroupNotFound("not found", code="ResourceNotFoundException")])
        assert list_active_streams(backend, GROUP, 0, cancel) == []

    def test_rate_limited_propagates(self, cancel):
        backend = FakeBackend(streams=[RateLimited("rate exceeded", code="ThrottlingException")])
        with pytest.raises(RateLimited):
            list_active_streams(backend, GROUP, 0, cancel)

    def test_other_errors_propagate(self, cancel):
        backend = FakeBackend(streams=[BackendError("access denied", code="AccessDeniedException")])
        with pytest.raises(BackendError):
            list_active_streams(backend, GROUP, 0, cancel)

    def test_cancelled(self, cancel):
        cancel.set()
        backend = FakeBackend()
        with pytest.raises(Cancelled):
            list_active_streams(backend, GROUP, 0, cancel)


class CountingStreamsBackend(FakeBackend):
    def __init__(self, cancel, pages):
        super().__init__()
        self.cancel = cancel
        self.pages = pages
        self.page_requests = 0

    def list_log_streams(self, group_name):
        for page in self.pages:
            self.page_requests += 1
            self.cancel.set()
            yield page


class TestCancelStopsRequests:
    def test_no_page_requested_after_cancel(self, cancel):
        pages = [[ready_stream("a", ingestion=2_000)], [ready_stream("b", ingestion=3_000)]]
        backend = CountingStreamsBackend(cancel, pages)
        with pytest.raises(Cancelled):
            list_active_streams(backend, GROUP, 1_000, cancel)
        assert backend.page_requests == 1

    def test_cancelled_before_first_request(self, cancel):
        cancel.set()
        backend = CountingStreamsBackend(cancel, [[ready_stream("a")]])
        with pytest.raises(Cancelled):
            list_active_streams(backend, GROUP, 0, cancel)
        assert backend.page_requests == 0
