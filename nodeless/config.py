import argparse
import datetime
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .errors import ConfigurationError

log = logging.getLogger("nodeless")

VENDOR_AWS = "aws"
VENDOR_GCP = "gcp"
KNOWN_VENDORS = (VENDOR_AWS, VENDOR_GCP)

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
CONTEXT_FIELDS = ("function_name", "request_id")

_TRUE_VALUES = ("1", "t", "true", "yes", "y", "on")


@dataclass(frozen=True)
class Config:
    func_name: str
    vendor: str = VENDOR_AWS
    json: bool = False
    payload: str = ""
    log_level: str = "INFO"


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    # every flag falls back to the environment variable named after it, uppercased
    parser = argparse.ArgumentParser(
        prog="nodeless",
        description="Invoke an AWS Lambda function asynchronously and tail its logs until it finishes.",
    )
    parser.add_argument("--func", default=environ.get("FUNC", ""), help="function name, ARN or partial ARN")
    parser.add_argument("--vendor", default=environ.get("VENDOR", VENDOR_AWS), help='vendor name (currently only "aws")')
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=_parse_bool(environ.get("JSON")),
        help="enable JSON log format (--no-json overrides JSON=true)",
    )
    parser.add_argument("--payload", default=environ.get("PAYLOAD", ""), help="request payload, higher priority than --payload_file")
    parser.add_argument("--payload_file", default=environ.get("PAYLOAD_FILE", ""), help="request payload file")
    parser.add_argument("--log-level", default=environ.get("LOG_LEVEL", "INFO"), help="logging level (default: INFO)")
    return parser


def _read_payload_file(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as fh:
            return fh.read()
    except OSError as exc:
        raise ConfigurationError(f"read payload file, {path}: {exc}") from exc


def parse_config(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build Config from defaults <- environment <- command line (highest priority).
    """
    environ = os.environ if environ is None else environ
    args = _build_parser(environ).parse_args(argv)

    if not args.func:
        raise ConfigurationError("func required")

    vendor = args.vendor.strip().lower()
    if vendor not in KNOWN_VENDORS:
        raise ConfigurationError(f"unknown vendor, {args.vendor}")

    log_level = args.log_level.strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"unknown log level, {args.log_level}")

    payload = ""
    if args.payload_file and not args.payload:
        payload = _read_payload_file(args.payload_file)
    if args.payload:
        payload = args.payload

    return Config(
        func_name=args.func,
        vendor=vendor,
        json=args.json,
        payload=payload,
        log_level=log_level,
    )


class ConsoleFormatter(logging.Formatter):
    """
    Human readable lines; context fields are appended as key=value pairs.
    """
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [f"{name}={getattr(record, name)}" for name in CONTEXT_FIELDS if getattr(record, name, None)]
        if context:
            line = f"{line} | {' '.join(context)}"
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.datetime.fromtimestamp(record.created, tz=datetime.timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(config: Config) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if config.json else ConsoleFormatter(CONSOLE_FORMAT))
    logging.basicConfig(level=config.log_level, handlers=[handler], force=True)
    log.debug(f"[config] vendor={config.vendor} json={config.json} payload_bytes={len(config.payload)}")
