import enum
import logging
import queue
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from cachetools import LRUCache

from .backend import Backend, LogEvent
from .config import log
from .discovery import list_active_streams
from .errors import BackendError, Cancelled, RateLimited, TailError
from .target import InvocationTarget

WATCH_SLEEP_TIME = 0.5  # seconds between polls
RATE_LIMIT_BACKOFF = 0.5
MAX_EVENTS_CACHE = 100_000
CANCEL_CHECK_INTERVAL = 0.05

START_REQUEST_RE = re.compile(r"START RequestId: (\S+) Version:")
END_REQUEST_RE = re.compile(r"END RequestId: (\S+)")

function_log = logging.getLogger("nodeless.function")


def now_millis() -> int:
    return int(time.time() * 1000)


def extract_start_request_id(message: str) -> Optional[str]:
    match = START_REQUEST_RE.search(message)
    return match.group(1) if match else None


def extract_end_request_id(message: str) -> Optional[str]:
    match = END_REQUEST_RE.search(message)
    return match.group(1) if match else None


class TailState(enum.Enum):
    AWAITING_START = "awaiting_start"
    RUNNING = "running"
    DONE = "done"


@dataclass
class TailSession:
    start_time: int
    last_seen_time: Optional[int] = None
    request_id: Optional[str] = None
    state: TailState = TailState.AWAITING_START
    seen_event_ids: LRUCache = field(default_factory=lambda: LRUCache(maxsize=MAX_EVENTS_CACHE), repr=False)

    def __post_init__(self):
        if self.last_seen_time is None:
            self.last_seen_time = self.start_time

    def mark_seen(self, event_id: str) -> bool:
        """
        Record an event id. Returns False when it was already there (backend redelivery).
        The membership test does not refresh recency.
        """
        if event_id in self.seen_event_ids:
            return False
        self.seen_event_ids[event_id] = True
        return True

    def advance_watermark(self, ingestion_time: int) -> None:
        if ingestion_time > self.last_seen_time:
            self.last_seen_time = ingestion_time


EventSink = Callable[[LogEvent, TailSession], None]


class Ticker:
    """
    Background timer feeding a one-slot queue. A tick that finds the slot full is dropped,
    so a slow consumer skips cycles instead of queueing them.
    """

    def __init__(self, interval: float):
        self.interval = interval
        self.ticks: "queue.Queue[None]" = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="nodeless-ticker", daemon=True)

    def start(self) -> "Ticker":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self.interval + 1)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.ticks.put_nowait(None)
            except queue.Full:
                continue

    def __enter__(self) -> "Ticker":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()


class LogTailEngine:
    """
    Polls the function's log group until the END marker of the invocation shows up.

    Each cycle: discover streams touched since the watermark, fetch their events,
    drop redeliveries, hand every new line to the sink and watch for the
    START/END markers. Runs on the caller's thread; only the ticker has its own.
    """

    def __init__(
        self,
        backend: Backend,
        target: InvocationTarget,
        emit: Optional[EventSink] = None,
        poll_interval: float = WATCH_SLEEP_TIME,
        backoff: float = RATE_LIMIT_BACKOFF,
        cache_size: int = MAX_EVENTS_CACHE,
    ):
        self._backend = backend
        self._target = target
        self._emit = emit or self._log_line
        self._poll_interval = poll_interval
        self._backoff = backoff
        self._cache_size = cache_size

    @property
    def group_name(self) -> str:
        return self._target.log_group_name

    def new_session(self, start_time: Optional[int] = None) -> TailSession:
        return TailSession(
            start_time=now_millis() if start_time is None else start_time,
            seen_event_ids=LRUCache(maxsize=self._cache_size),
        )

    def run(self, cancel: threading.Event, session: Optional[TailSession] = None) -> TailSession:
        session = session or self.new_session()
        log.info(f"[tail] watching {self.group_name} since {session.start_time}")
        with Ticker(self._poll_interval) as ticker:
            while session.state is not TailState.DONE:
                self._wait_for_tick(ticker, cancel)
                self._run_cycle(session, cancel)
        log.info(f"[tail] finished function={self._target.function_name} request_id={session.request_id}")
        return session

    def _wait_for_tick(self, ticker: Ticker, cancel: threading.Event) -> None:
        while True:
            if cancel.is_set():
                raise Cancelled(f"tail of {self.group_name} cancelled")
            try:
                ticker.ticks.get(timeout=min(CANCEL_CHECK_INTERVAL, self._poll_interval))
                return
            except queue.Empty:
                continue

    def _run_cycle(self, session: TailSession, cancel: threading.Event) -> None:
        while True:
            try:
                self.poll_once(session, cancel)
                return
            except RateLimited:
                log.info(f"[tail] rate exceeded for {self.group_name}, retrying in {int(self._backoff * 1000)}ms")
                if cancel.wait(self._backoff):
                    raise Cancelled(f"tail of {self.group_name} cancelled")

    def poll_once(self, session: TailSession, cancel: threading.Event) -> int:
        """
        One poll cycle. Returns the number of new (not redelivered) events.
        """
        try:
            streams = list_active_streams(self._backend, self.group_name, session.last_seen_time, cancel)
        except RateLimited:
            raise
        except BackendError as exc:
            raise TailError(f"list_log_streams, {self.group_name}: {exc}") from exc
        if not streams:
            return 0

        fresh = 0
        last_page = None
        try:
            pages = self._backend.filter_log_events(self.group_name, streams, session.last_seen_time)
            while True:
                # each next() issues a request, so check before it
                if cancel.is_set():
                    raise Cancelled(f"tail of {self.group_name} cancelled")
                page = next(pages, None)
                if page is None:
                    break
                for event in page:
                    if self._process_event(session, event):
                        fresh += 1
                last_page = page
                if session.state is TailState.DONE:
                    break
        except RateLimited:
            raise
        except BackendError as exc:
            raise TailError(f"filter_log_events, {self.group_name}: {exc}") from exc

        if last_page:
            session.advance_watermark(last_page[-1].ingestion_time)
        return fresh

    def _process_event(self, session: TailSession, event: LogEvent) -> bool:
        if not session.mark_seen(event.id):
            return False
        self._emit(event, session)

        if session.state is TailState.AWAITING_START:
            request_id = extract_start_request_id(event.message)
            if request_id:
                session.request_id = request_id
                session.state = TailState.RUNNING
                log.debug(f"[tail] request_id={request_id} started")
        elif session.state is TailState.RUNNING:
            end_id = extract_end_request_id(event.message)
            if end_id:
                session.state = TailState.DONE
                if end_id == session.request_id:
                    log.info(f"[tail] {session.request_id} has been finished")
                else:
                    log.info(f"[tail] {session.request_id} has already finished but not caught (saw END for {end_id})")
        return True

    def _log_line(self, event: LogEvent, session: TailSession) -> None:
        function_log.info(
            event.message.rstrip("\n"),
            extra={"function_name": self._target.function_name, "request_id": session.request_id or ""},
        )
