import threading
from typing import List

from .backend import Backend
from .config import log
from .errors import Cancelled, GroupNotFound


def list_active_streams(backend: Backend, group_name: str, since: int, cancel: threading.Event) -> List[str]:
    """
    Names of streams that received data at or after `since`, most recently active first.

    Streams come back ordered by last event time, so a page without any candidate
    ends the scan. That ordering does not strictly follow ingestion time; a late
    stream further down may be picked up on a later poll.
    RateLimited propagates so the caller can back off and retry.
    """
    streams: List[str] = []
    try:
        pages = backend.list_log_streams(group_name)
        while True:
            # each next() issues a request, so check before it
            if cancel.is_set():
                raise Cancelled(f"stream discovery for {group_name} cancelled")
            page = next(pages, None)
            if page is None:
                break
            fresh = [s.name for s in page if s.is_candidate(since)]
            if not fresh:
                break
            streams.extend(fresh)
    except GroupNotFound:
        # the function may not have logged anything yet
        log.debug(f"[discovery] log group {group_name} does not exist yet")
        return []
    log.debug(f"[discovery] {len(streams)} active stream(s) in {group_name} since {since}")
    return streams
