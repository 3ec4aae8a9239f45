"""
Node store backends.

The node operations only talk to a ``NodeStore``; this module defines that
protocol plus a Motor-backed implementation and a dict-backed one used for
local development and tests.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, runtime_checkable
from uuid import uuid4

from db_core import get_db
from db_core.typing import MongoDocument
from loguru import logger
from pymongo.errors import PyMongoError

from .errors import StoreError

COLLECTION_NAME = "nodes"


@runtime_checkable
class NodeStore(Protocol):
    """Flat storage of node documents shaped ``{_id, text, parent_id, created_at}``."""

    async def find(self, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Return documents matching ``filter``, oldest first.

        Filters are field equality checks, plus ``{"_id": {"$in": [...]}}``.
        """
        ...

    async def find_one(self, node_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def insert(self, document: Mapping[str, Any]) -> str:
        """Insert a document and return its generated id."""
        ...

    async def delete_many(self, ids: Iterable[str]) -> int:
        """Delete every listed id in one call, returning the deleted count."""
        ...

    async def update(self, node_id: str, fields: Mapping[str, Any]) -> bool:
        """Set ``fields`` on a document; ``False`` when nothing matched."""
        ...

    async def count(self) -> int:
        ...


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except PyMongoError as exc:
        logger.error("Mongo {operation} failed: {error}", operation=operation, error=exc)
        raise StoreError(f"{operation} failed: {exc}") from exc


class MongoNodeStore:
    """Store nodes in a MongoDB collection through the shared Motor client."""

    def __init__(self, collection_name: str = COLLECTION_NAME):
        self.collection_name = collection_name

    def _collection(self):
        return get_db()[self.collection_name]

    async def find(self, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        with _store_errors("find"):
            cursor = self._collection().find(dict(filter)).sort("created_at", 1)
            return [doc async for doc in cursor]

    async def find_one(self, node_id: str) -> Optional[Dict[str, Any]]:
        with _store_errors("find_one"):
            return await self._collection().find_one({"_id": node_id})

    async def insert(self, document: Mapping[str, Any]) -> str:
        doc = dict(document)
        doc.setdefault("_id", uuid4().hex)
        with _store_errors("insert"):
            result = await self._collection().insert_one(doc)
        return str(result.inserted_id)

    async def delete_many(self, ids: Iterable[str]) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        with _store_errors("delete_many"):
            result = await self._collection().delete_many({"_id": {"$in": id_list}})
        return result.deleted_count

    async def update(self, node_id: str, fields: Mapping[str, Any]) -> bool:
        with _store_errors("update"):
            result = await self._collection().update_one(
                {"_id": node_id}, {"$set": dict(fields)}
            )
        return result.matched_count > 0

    async def count(self) -> int:
        with _store_errors("count"):
            return await self._collection().count_documents({})


def _matches(doc: MongoDocument, filter: Mapping[str, Any]) -> bool:
    for key, expected in filter.items():
        value = doc.get(key)
        if isinstance(expected, Mapping) and "$in" in expected:
            if value not in expected["$in"]:
                return False
        elif value != expected:
            return False
    return True


class InMemoryNodeStore:
    """Dict-backed store with the same semantics as ``MongoNodeStore``."""

    def __init__(self, documents: Iterable[Mapping[str, Any]] = ()):
        self._docs: Dict[str, Dict[str, Any]] = {}
        for doc in documents:
            self._docs[str(doc["_id"])] = dict(doc)

    async def find(self, filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        docs = [dict(doc) for doc in self._docs.values() if _matches(doc, filter)]
        return sorted(docs, key=lambda doc: (doc.get("created_at"), doc["_id"]))

    async def find_one(self, node_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(node_id)
        return dict(doc) if doc is not None else None

    async def insert(self, document: Mapping[str, Any]) -> str:
        doc = dict(document)
        node_id = str(doc.setdefault("_id", uuid4().hex))
        if node_id in self._docs:
            raise StoreError(f"insert failed: duplicate id {node_id}")
        self._docs[node_id] = doc
        return node_id

    async def delete_many(self, ids: Iterable[str]) -> int:
        deleted = 0
        for node_id in set(ids):
            if self._docs.pop(node_id, None) is not None:
                deleted += 1
        return deleted

    async def update(self, node_id: str, fields: Mapping[str, Any]) -> bool:
        doc = self._docs.get(node_id)
        if doc is None:
            return False
        doc.update(fields)
        return True

    async def count(self) -> int:
        return len(self._docs)


def create_store(backend: str = "mongo", collection_name: str = COLLECTION_NAME) -> NodeStore:
    """Build the store for the configured backend name (``mongo`` or ``memory``)."""

    normalized = backend.strip().lower()
    if normalized == "mongo":
        return MongoNodeStore(collection_name)
    if normalized == "memory":
        return InMemoryNodeStore()
    raise ValueError(f"Unknown node store backend: {backend!r}")
