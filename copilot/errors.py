"""Error taxonomy shared by the gateway, planners, and API layer."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Tag carried by every gateway failure."""

    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    RATE_LIMITED = "RateLimited"
    RPC_ERROR = "RpcError"
    SDK_ERROR = "SdkError"


class CopilotError(Exception):
    """Base class for all application errors."""


class GatewayError(CopilotError):
    """A tagged failure from the price and liquidity gateway.

    Args:
        kind: Error classification.
        detail: Human-readable detail, if any.
    """

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None) -> None:
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail


class InvalidInput(GatewayError):
    """Malformed request, CSV, or planning argument."""

    def __init__(self, detail: str) -> None:
        super().__init__(ErrorKind.INVALID_INPUT, detail)


class UpstreamUnavailable(CopilotError):
    """A gateway call failed during planning.

    Wraps the original ``GatewayError`` unchanged; ``kind`` and ``detail``
    are those of the wrapped error.  ``stage`` names the lookup that failed.
    """

    def __init__(self, stage: str, error: GatewayError) -> None:
        super().__init__(f"{stage}: {error}")
        self.stage = stage
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def detail(self) -> Optional[str]:
        return self.error.detail


class ExecutionNotImplemented(CopilotError):
    """The active gateway cannot submit this transaction yet."""

    def __init__(self, action: str) -> None:
        super().__init__(f"{action} is not implemented for live mode yet.")
        self.action = action


class LinkCodeError(CopilotError):
    """A bot link code could not be consumed (``invalid`` or ``expired``)."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            "Link code expired" if reason == "expired" else "Invalid link code"
        )
        self.reason = reason


class CandleParseError(CopilotError):
    """Tabular candle input was rejected.

    Args:
        message: What went wrong.
        row: 1-based line number in the file (header is line 1), if known.
        column: Offending column name, if known.
    """

    def __init__(
        self,
        message: str,
        row: Optional[int] = None,
        column: Optional[str] = None,
    ) -> None:
        location = []
        if row is not None:
            location.append(f"row {row}")
        if column is not None:
            location.append(f"column '{column}'")
        suffix = f" ({', '.join(location)})" if location else ""
        super().__init__(f"Malformed CSV: {message}{suffix}")
        self.row = row
        self.column = column


def classify_error(exc: BaseException) -> GatewayError:
    """Map an arbitrary upstream exception onto a tagged ``GatewayError``.

    ``GatewayError`` instances pass through unchanged.  Otherwise the
    classification looks at an HTTP-ish ``status``/``status_code``, a
    ``code`` attribute, then keywords in the message.
    """
    if isinstance(exc, GatewayError):
        return exc

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    response = getattr(exc, "response", None)
    if status is None and response is not None:
        status = getattr(response, "status_code", None)
    if status == 429:
        return GatewayError(ErrorKind.RATE_LIMITED, "Rate limit exceeded")
    if status == 404:
        return GatewayError(ErrorKind.NOT_FOUND, str(exc) or "Not found")

    code = getattr(exc, "code", None)
    if isinstance(code, str) and code in ("429", "RATE_LIMIT", "TOO_MANY_REQUESTS"):
        return GatewayError(ErrorKind.RATE_LIMITED, code)

    message = str(exc)
    if message:
        normalized = message.lower()
        if "not found" in normalized:
            return GatewayError(ErrorKind.NOT_FOUND, message)
        if "429" in normalized or "rate limit" in normalized:
            return GatewayError(ErrorKind.RATE_LIMITED, message)
        if any(
            token in normalized
            for token in ("rpc", "econn", "etimedout", "timed out", "fetch", "connection")
        ):
            return GatewayError(ErrorKind.RPC_ERROR, message)
    return GatewayError(ErrorKind.SDK_ERROR, message or "Unknown SDK error")
