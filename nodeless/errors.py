from typing import Optional


class NodelessError(Exception):
    """Base class for every error raised by nodeless."""


class ConfigurationError(NodelessError):
    pass


class InvalidIdentifierFormat(NodelessError):
    def __init__(self, raw: str):
        super().__init__(f"wrong format function name, {raw}")
        self.raw = raw


class InvocationError(NodelessError):
    pass


class TransportError(InvocationError):
    """Connection, timeout or credential failure while talking to the backend."""


class ApplicationError(InvocationError):
    """
    The backend accepted the request but reports that the function itself errored.
    """
    def __init__(self, function_error: str, payload: bytes = b""):
        self.function_error = function_error
        self.payload = payload
        body = payload.decode("utf-8", errors="replace") if payload else ""
        super().__init__(f"invoke lambda response error, {body}: {function_error}")


class BackendError(NodelessError):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RateLimited(BackendError):
    pass


class GroupNotFound(BackendError):
    pass


class TailError(NodelessError):
    pass


class Cancelled(NodelessError):
    """The caller asked us to stop; distinct from any backend failure."""
