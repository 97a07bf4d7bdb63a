import re
from dataclasses import dataclass

from .errors import InvalidIdentifierFormat

LOG_GROUP_PREFIX = "/aws/lambda/"
INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class InvocationTarget:
    function_name: str
    log_group_name: str
    region: str = ""


def _is_int(value: str) -> bool:
    # plain ASCII digits only: no whitespace, underscores or other unicode digits
    return INTEGER_RE.fullmatch(value) is not None


def parse_function_identifier(raw: str) -> InvocationTarget:
    """
    Derive the CloudWatch log group (and region, when present) from a function identifier.

    Accepted shapes:
      * Function name - my-function
      * Function ARN  - arn:aws:lambda:us-west-2:123456789012:function:my-function
      * Partial ARN   - 123456789012:function:my-function
    """
    parts = (raw or "").split(":")

    if len(parts) == 1:
        if not raw:
            raise InvalidIdentifierFormat(raw)
        return InvocationTarget(function_name=raw, log_group_name=f"{LOG_GROUP_PREFIX}{raw}")

    if parts[0] == "arn" and parts[1] == "aws":
        if len(parts) < 7 or not parts[6]:
            raise InvalidIdentifierFormat(raw)
        return InvocationTarget(
            function_name=raw,
            log_group_name=f"{LOG_GROUP_PREFIX}{parts[6]}",
            region=parts[3],
        )

    if _is_int(parts[0]) and parts[1] == "function":
        if len(parts) < 3 or not parts[2]:
            raise InvalidIdentifierFormat(raw)
        return InvocationTarget(function_name=raw, log_group_name=f"{LOG_GROUP_PREFIX}{parts[2]}")

    raise InvalidIdentifierFormat(raw)
