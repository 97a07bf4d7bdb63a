import signal
import sys
import threading
from typing import List, Optional

from .backend import get_backend
from .config import Config, log, parse_config, setup_logging
from .errors import Cancelled, ConfigurationError, InvalidIdentifierFormat, NodelessError
from .invoker import invoke_function
from .tail import LogTailEngine, now_millis
from .target import parse_function_identifier


def _install_signal_handlers(cancel: threading.Event) -> dict:
    def _handler(signum, frame):
        log.info(f"[signal] received {signal.Signals(signum).name}, cancelling")
        cancel.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handler)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run(config: Config, cancel: threading.Event) -> int:
    try:
        target = parse_function_identifier(config.func_name)
        backend = get_backend(config.vendor, target.region)
    except (InvalidIdentifierFormat, ConfigurationError) as exc:
        log.error(f"[setup] {exc}")
        return 1

    log.debug(f"[setup] function={target.function_name} log_group={target.log_group_name} region={target.region}")
    # taken before the invoke call: a START line can be written while the response is in flight
    start_time = now_millis()
    try:
        invoke_function(backend, target, config.payload, cancel)
        engine = LogTailEngine(backend, target)
        engine.run(cancel, session=engine.new_session(start_time))
    except Cancelled as exc:
        log.warning(f"[run] {exc}")
        return 0
    except NodelessError as exc:
        log.error(f"[run] failed, {exc}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = parse_config(argv)
    except ConfigurationError as exc:
        print(f"parse_config error: {exc}", file=sys.stderr)
        return 1

    setup_logging(config)
    cancel = threading.Event()
    previous = _install_signal_handlers(cancel)
    try:
        return run(config, cancel)
    finally:
        _restore_signal_handlers(previous)


if __name__ == "__main__":
    sys.exit(main())
