"""Shared fixtures: a scripted in-memory backend."""

import threading

import pytest

from nodeless.backend import Backend, InvokeResponse, LogEvent, LogStream
from nodeless.target import InvocationTarget

FAR_FUTURE = 10 ** 13


def ready_stream(name="2024/01/01/[$LATEST]0123456789abcdef", ingestion=FAR_FUTURE):
    return LogStream(
        name=name,
        first_event_timestamp=ingestion - 10,
        last_event_timestamp=ingestion - 5,
        last_ingestion_time=ingestion,
    )


def make_event(event_id, message, ingestion_time=1_000):
    return LogEvent(id=event_id, message=message, ingestion_time=ingestion_time)


class FakeBackend(Backend):
    """
    Each call to list_log_streams / filter_log_events consumes the next scripted
    response: a list of pages, or an exception to raise. Once the script runs out
    the default response is used.
    """

    def __init__(self, streams=None, events=None, default_streams=None, default_events=None,
                 invoke_response=None, invoke_error=None):
        self.stream_script = list(streams or [])
        self.event_script = list(events or [])
        self.default_streams = [[ready_stream()]] if default_streams is None else default_streams
        self.default_events = [[]] if default_events is None else default_events
        self.invoke_response = invoke_response or InvokeResponse(status_code=202)
        self.invoke_error = invoke_error
        self.invocations = []
        self.stream_calls = []
        self.filter_calls = []

    def invoke(self, function_name, payload):
        self.invocations.append((function_name, payload))
        if self.invoke_error is not None:
            raise self.invoke_error
        return self.invoke_response

    def list_log_streams(self, group_name):
        self.stream_calls.append(group_name)
        response = self.stream_script.pop(0) if self.stream_script else self.default_streams
        if isinstance(response, Exception):
            raise response
        for page in response:
            yield page

    def filter_log_events(self, group_name, stream_names, start_time):
        self.filter_calls.append((group_name, list(stream_names), start_time))
        response = self.event_script.pop(0) if self.event_script else self.default_events
        if isinstance(response, Exception):
            raise response
        for page in response:
            yield page


@pytest.fixture
def target():
    return InvocationTarget(function_name="my-function", log_group_name="/aws/lambda/my-function")


@pytest.fixture
def cancel():
    return threading.Event()
