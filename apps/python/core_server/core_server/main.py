"""FastAPI application composing the nodes API router."""

from __future__ import annotations

import os
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pymongo.errors import PyMongoError
from dotenv import find_dotenv, load_dotenv

from ._paths import ensure_local_packages_importable

ensure_local_packages_importable()
load_dotenv(find_dotenv(usecwd=True))


def _configure_logging() -> None:
    level = os.getenv("LOG_LEVEL") or os.getenv("LOGURU_LEVEL") or "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    logger.info("Logger configured at {level} level", level=level.upper())


from .config import settings
from db_core import ping
from nodes_api import install_error_handlers, router as nodes_router
from nodes_repo import StoreError


_configure_logging()

app = FastAPI(title=settings.api_title, version=settings.api_version)

# Allow the front-end origins (with credentials) to talk to this API.
if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
logger.info("CORS middleware added {origins}", origins=settings.cors_allow_origins)

install_error_handlers(app)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    """Simple liveness endpoint for load balancers and probes."""

    return {"status": "ok"}


@app.get("/health/db", tags=["health"])
async def health_db() -> dict:
    """Ping MongoDB; failures surface as a 503 through the store error handler."""

    try:
        return await ping()
    except PyMongoError as exc:
        raise StoreError(f"ping failed: {exc}") from exc


app.include_router(nodes_router)


def run() -> None:
    """Serve the app with uvicorn; also available as `uvicorn core_server.main:app`."""

    import uvicorn

    port = int(os.getenv("CORE_SERVER_PORT", "8000"))
    uvicorn.run(app, host=os.getenv("CORE_SERVER_HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    run()
