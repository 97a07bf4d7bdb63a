import threading

from .backend import Backend, InvokeResponse
from .config import log
from .errors import ApplicationError, Cancelled
from .target import InvocationTarget


def invoke_function(backend: Backend, target: InvocationTarget, payload: str, cancel: threading.Event) -> InvokeResponse:
    """
    Fire one asynchronous invocation. Success means accepted for execution, not completed.
    """
    if cancel.is_set():
        raise Cancelled(f"invocation of {target.function_name} cancelled before it was sent")

    log.info(f"[invoke] function={target.function_name} payload_bytes={len(payload)}")
    resp = backend.invoke(target.function_name, payload.encode("utf-8"))

    if resp.function_error:
        log.error(f"[invoke] function error={resp.function_error}")
        raise ApplicationError(resp.function_error, resp.payload)

    log.info(f"[invoke] accepted function={target.function_name} status={resp.status_code}")
    return resp
