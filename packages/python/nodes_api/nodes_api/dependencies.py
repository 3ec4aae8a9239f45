"""FastAPI dependencies shared by the node routes."""

from __future__ import annotations

from functools import lru_cache

from loguru import logger

from nodes_repo import NodeStore, create_store

from .config import settings


@lru_cache(maxsize=1)
def _store() -> NodeStore:
    logger.info(
        "Using {backend} node store (collection={collection})",
        backend=settings.store_backend,
        collection=settings.collection_name,
    )
    return create_store(settings.store_backend, settings.collection_name)


def get_store() -> NodeStore:
    """
    Return the process-wide store handle.

    Tests replace this through ``app.dependency_overrides[get_store]``.
    """

    return _store()
