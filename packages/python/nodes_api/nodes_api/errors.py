"""Translate node repository errors into JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from nodes_repo import InvalidOperationError, NodeNotFoundError, PartialDeleteError, StoreError

_STATUS_BY_ERROR = {
    NodeNotFoundError: 404,
    InvalidOperationError: 400,
    PartialDeleteError: 500,
    StoreError: 503,
}


def _body(exc: Exception) -> dict:
    body = {"error": getattr(exc, "kind", type(exc).__name__), "detail": str(exc)}
    if isinstance(exc, PartialDeleteError):
        body["removed"] = exc.removed
        body["remaining"] = exc.remaining
        body["verified"] = exc.verified
    return body


async def _handle_node_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), 500)
    if status_code >= 500:
        logger.error(
            "{method} {path} failed: {error}",
            method=request.method,
            path=request.url.path,
            error=exc,
        )
    else:
        logger.info(
            "{method} {path} rejected ({status}): {error}",
            method=request.method,
            path=request.url.path,
            status=status_code,
            error=exc,
        )
    return JSONResponse(status_code=status_code, content=_body(exc))


def install_error_handlers(app: FastAPI) -> None:
    """Register a handler for every node repository error on ``app``."""

    for error_type in _STATUS_BY_ERROR:
        app.add_exception_handler(error_type, _handle_node_error)
