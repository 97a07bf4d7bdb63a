from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .config import VENDOR_AWS, log
from .errors import ConfigurationError

MAX_FILTER_STREAMS = 100


@dataclass(frozen=True)
class LogEvent:
    id: str
    message: str
    ingestion_time: int
    timestamp: Optional[int] = None
    log_stream_name: Optional[str] = None


@dataclass(frozen=True)
class LogStream:
    name: str
    first_event_timestamp: Optional[int] = None
    last_event_timestamp: Optional[int] = None
    last_ingestion_time: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return None not in (self.first_event_timestamp, self.last_event_timestamp, self.last_ingestion_time)

    def is_candidate(self, since: int) -> bool:
        # lastIngestionTime moves promptly, lastEventTimestamp lags behind
        return self.is_ready and self.last_ingestion_time >= since


@dataclass(frozen=True)
class InvokeResponse:
    status_code: int
    function_error: Optional[str] = None
    payload: bytes = b""


class Backend(abc.ABC):
    """
    Everything the job needs from a serverless vendor: fire an invocation and read its logs.
    """

    @abc.abstractmethod
    def invoke(self, function_name: str, payload: bytes) -> InvokeResponse:
        """Asynchronous invocation. Raises TransportError when the request cannot be delivered."""

    @abc.abstractmethod
    def list_log_streams(self, group_name: str) -> Iterator[List[LogStream]]:
        """Pages of streams, most recent event first. Raises RateLimited, GroupNotFound or BackendError."""

    @abc.abstractmethod
    def filter_log_events(self, group_name: str, stream_names: List[str], start_time: int) -> Iterator[List[LogEvent]]:
        """Pages of events at or after start_time. Raises RateLimited or BackendError."""


def get_backend(vendor: str, region: str = "") -> Backend:
    if vendor == VENDOR_AWS:
        from .backend_aws import AwsBackend

        log.debug(f"[backend] using aws backend region={region or '<default>'}")
        return AwsBackend(region=region or None)
    raise ConfigurationError(f"vendor {vendor} is not supported yet")
