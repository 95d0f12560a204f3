"""Error payloads for the HTTP boundary.

Every failure leaves the server as ``{status, error, details?}``:
400 for malformed or incomplete input, 404 for an unknown agent and 500
for anything the agent itself raised.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from taupo.errors import AgentNotFoundError, InvalidCallError, TaupoError

logger = logging.getLogger(__name__)

INVALID_REQUEST_BODY = "Invalid request body"
AGENT_NOT_FOUND = "Agent not found"
AGENT_EXECUTION_FAILED = "Agent execution failed"


class ErrorResponse(BaseModel):
    """JSON body of every error response."""

    status: int
    error: str
    details: str | None = None


class HTTPError(Exception):
    """Raised by route handlers to return an :class:`ErrorResponse`."""

    def __init__(self, status: int, error: str, details: str | None = None) -> None:
        self.status = status
        self.error = error
        self.details = details
        super().__init__(f"{status} {error}" + (f": {details}" if details else ""))


def invalid_request_body(details: str | None = None) -> HTTPError:
    return HTTPError(400, INVALID_REQUEST_BODY, details)


def agent_not_found(name: str) -> HTTPError:
    return HTTPError(404, AGENT_NOT_FOUND, f"No agent registered with name: {name}")


def agent_execution_failed(exc: BaseException) -> HTTPError:
    return HTTPError(500, AGENT_EXECUTION_FAILED, str(exc) or type(exc).__name__)


def error_response(status: int, error: str, details: str | None = None) -> JSONResponse:
    payload = ErrorResponse(status=status, error=error, details=details or None)
    return JSONResponse(payload.model_dump(exclude_none=True), status_code=status)


def to_http_error(exc: BaseException) -> HTTPError:
    """Map an engine error onto its HTTP status."""
    if isinstance(exc, HTTPError):
        return exc
    if isinstance(exc, InvalidCallError):
        return invalid_request_body(str(exc))
    if isinstance(exc, AgentNotFoundError):
        return agent_not_found(exc.name)
    return agent_execution_failed(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure, expected or not, as an :class:`ErrorResponse`."""

    async def handle_http_error(request: Request, exc: Exception) -> JSONResponse:
        error = to_http_error(exc)
        return error_response(error.status, error.error, error.details)

    async def handle_taupo_error(request: Request, exc: Exception) -> JSONResponse:
        error = to_http_error(exc)
        if error.status >= 500:
            logger.error("Request to %s failed: %s", request.url.path, exc, exc_info=exc)
        return error_response(error.status, error.error, error.details)

    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        error = agent_execution_failed(exc)
        return error_response(error.status, error.error, error.details)

    app.add_exception_handler(HTTPError, handle_http_error)
    app.add_exception_handler(TaupoError, handle_taupo_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
