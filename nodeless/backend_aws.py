from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .backend import Backend, InvokeResponse, LogEvent, LogStream, MAX_FILTER_STREAMS
from .config import log
from .errors import BackendError, GroupNotFound, RateLimited, TransportError

THROTTLING_CODES = ("ThrottlingException", "TooManyRequestsException")
NOT_FOUND_CODES = ("ResourceNotFoundException",)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _translate(exc: Exception, operation: str, group_name: str) -> BackendError:
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        if code in THROTTLING_CODES:
            return RateLimited(f"{operation}, {group_name}: rate exceeded", code=code)
        if code in NOT_FOUND_CODES:
            return GroupNotFound(f"{operation}, {group_name}: log group not found", code=code)
        return BackendError(f"{operation}, {group_name}: {exc}", code=code)
    return BackendError(f"{operation}, {group_name}: {exc}")


def _to_stream(raw: Dict[str, Any]) -> LogStream:
    return LogStream(
        name=raw["logStreamName"],
        first_event_timestamp=raw.get("firstEventTimestamp"),
        last_event_timestamp=raw.get("lastEventTimestamp"),
        last_ingestion_time=raw.get("lastIngestionTime"),
    )


def _to_event(raw: Dict[str, Any]) -> LogEvent:
    return LogEvent(
        id=raw["eventId"],
        message=raw.get("message", ""),
        ingestion_time=raw["ingestionTime"],
        timestamp=raw.get("timestamp"),
        log_stream_name=raw.get("logStreamName"),
    )


class AwsBackend(Backend):
    """
    AWS Lambda + CloudWatch Logs. Credentials come from the default boto3 chain.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        lambda_client=None,
        logs_client=None,
        connect_timeout: int = 10,
        read_timeout: int = 60,
    ):
        session = None
        if lambda_client is None or logs_client is None:
            session = boto3.session.Session(region_name=region)
        # an invocation is not safe to resend, so the lambda client never retries
        invoke_cfg = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 1, "mode": "standard"},
        )
        logs_cfg = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 2, "mode": "standard"},
        )
        self._lambda = lambda_client or session.client("lambda", config=invoke_cfg)
        self._logs = logs_client or session.client("logs", config=logs_cfg)

    def invoke(self, function_name: str, payload: bytes) -> InvokeResponse:
        try:
            resp = self._lambda.invoke(
                FunctionName=function_name,
                Payload=payload,
                LogType="Tail",
                InvocationType="Event",
            )
        except ClientError as exc:
            raise TransportError(f"aws error, {function_name}: {exc}") from exc
        except BotoCoreError as exc:
            raise TransportError(f"lambda invocation, {function_name}: {exc}") from exc

        body = resp.get("Payload")
        data = body.read() if hasattr(body, "read") else (body or b"")
        return InvokeResponse(
            status_code=resp.get("StatusCode", 0),
            function_error=resp.get("FunctionError"),
            payload=data,
        )

    def list_log_streams(self, group_name: str) -> Iterator[List[LogStream]]:
        paginator = self._logs.get_paginator("describe_log_streams")
        pages = paginator.paginate(logGroupName=group_name, orderBy="LastEventTime", descending=True)
        try:
            for page in pages:
                yield [_to_stream(s) for s in page.get("logStreams", [])]
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "describe_log_streams", group_name) from exc

    def filter_log_events(self, group_name: str, stream_names: List[str], start_time: int) -> Iterator[List[LogEvent]]:
        if len(stream_names) > MAX_FILTER_STREAMS:
            log.debug(f"[backend] {len(stream_names)} streams, filtering the first {MAX_FILTER_STREAMS}")
            stream_names = stream_names[:MAX_FILTER_STREAMS]
        paginator = self._logs.get_paginator("filter_log_events")
        pages = paginator.paginate(logGroupName=group_name, logStreamNames=stream_names, startTime=start_time)
        try:
            for page in pages:
                yield [_to_event(e) for e in page.get("events", [])]
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "filter_log_events", group_name) from exc
