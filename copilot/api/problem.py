"""RFC 7807 problem documents and the exception handlers that emit them."""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from copilot.errors import (
    CandleParseError,
    ErrorKind,
    ExecutionNotImplemented,
    GatewayError,
    LinkCodeError,
    UpstreamUnavailable,
)

logger = logging.getLogger("copilot")

DEFAULT_PROBLEM_TYPE = "https://datatracker.ietf.org/doc/html/rfc7807"

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.RPC_ERROR: 502,
    ErrorKind.SDK_ERROR: 502,
}

_TITLE_BY_KIND: dict[ErrorKind, str] = {
    ErrorKind.INVALID_INPUT: "Invalid Request",
    ErrorKind.NOT_FOUND: "Not Found",
    ErrorKind.RATE_LIMITED: "Too Many Requests",
    ErrorKind.RPC_ERROR: "Upstream RPC Error",
    ErrorKind.SDK_ERROR: "Upstream SDK Error",
}


class ProblemError(Exception):
    """Raised by routes to short-circuit with a specific problem document."""

    def __init__(
        self,
        status: int,
        title: str,
        detail: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(detail or title)
        self.status = status
        self.title = title
        self.detail = detail
        self.code = code


def problem_response(
    status: int,
    title: str,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    problem_type: str = DEFAULT_PROBLEM_TYPE,
) -> JSONResponse:
    """Build an ``application/problem+json`` response, omitting empty fields."""
    body: dict = {"type": problem_type, "title": title, "status": status}
    if detail:
        body["detail"] = detail
    if code:
        body["code"] = code
    return JSONResponse(
        status_code=status, content=body, media_type="application/problem+json",
    )


# ── Handlers ─────────────────────────────────────────────────────────────


async def _handle_problem(request: Request, exc: ProblemError) -> JSONResponse:
    return problem_response(exc.status, exc.title, exc.detail, exc.code)


async def _handle_gateway(request: Request, exc: GatewayError) -> JSONResponse:
    return problem_response(
        STATUS_BY_KIND.get(exc.kind, 500),
        _TITLE_BY_KIND.get(exc.kind, "Upstream Error"),
        exc.detail,
        exc.kind.value,
    )


async def _handle_upstream(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return problem_response(
        STATUS_BY_KIND.get(exc.kind, 500), exc.stage, exc.detail, exc.kind.value,
    )


async def _handle_not_implemented(
    request: Request, exc: ExecutionNotImplemented,
) -> JSONResponse:
    return problem_response(501, "Not Implemented", str(exc), "NotImplemented")


async def _handle_link_code(request: Request, exc: LinkCodeError) -> JSONResponse:
    return problem_response(
        400, "Invalid Link Code", str(exc), ErrorKind.INVALID_INPUT.value,
    )


async def _handle_candle_parse(request: Request, exc: CandleParseError) -> JSONResponse:
    return problem_response(
        400, "Malformed CSV", str(exc), ErrorKind.INVALID_INPUT.value,
    )


async def _handle_request_validation(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return problem_response(
        400, "Invalid Request", detail, ErrorKind.INVALID_INPUT.value,
    )


async def _handle_http(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return problem_response(
            404, "Not Found", "The requested resource does not exist.",
        )
    return problem_response(exc.status_code, str(exc.detail))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return problem_response(500, "Internal Server Error")


def install_problem_handlers(app: FastAPI) -> None:
    """Register every exception → problem document translation on *app*."""
    app.add_exception_handler(ProblemError, _handle_problem)
    app.add_exception_handler(UpstreamUnavailable, _handle_upstream)
    app.add_exception_handler(GatewayError, _handle_gateway)
    app.add_exception_handler(ExecutionNotImplemented, _handle_not_implemented)
    app.add_exception_handler(LinkCodeError, _handle_link_code)
    app.add_exception_handler(CandleParseError, _handle_candle_parse)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http)
    app.add_exception_handler(Exception, _handle_unexpected)
