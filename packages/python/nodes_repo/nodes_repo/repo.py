"""Async node operations: create, cascading delete and cycle-guarded moves."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import uuid4

from loguru import logger

from .errors import InvalidOperationError, NodeNotFoundError, PartialDeleteError, StoreError
from .models import Node, NodeCreate, TreeNode
from .store import NodeStore
from .tree import build_tree, find_orphans


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _doc_to_model(doc: dict) -> Node:
    return Node(
        id=str(doc.get("_id") or doc["id"]),
        text=doc["text"],
        parent_id=doc.get("parent_id"),
        created_at=doc["created_at"],
    )


async def list_nodes(store: NodeStore) -> List[Node]:
    """Return every stored node as a flat list, oldest first."""

    docs = await store.find({})
    return [_doc_to_model(doc) for doc in docs]


async def get_node(store: NodeStore, node_id: str) -> Node:
    doc = await store.find_one(node_id)
    if not doc:
        raise NodeNotFoundError(node_id)
    return _doc_to_model(doc)


async def get_tree(store: NodeStore) -> List[TreeNode]:
    """Return the stored nodes assembled into root trees (orphans left out)."""

    return build_tree(await list_nodes(store))


async def list_orphans(store: NodeStore) -> List[Node]:
    return find_orphans(await list_nodes(store))


async def create_node(store: NodeStore, payload: NodeCreate) -> Node:
    """
    Create a root node (``parent_id=None``) or a child of an existing node.

    A parent id that does not resolve is rejected instead of creating an orphan.
    """

    if payload.parent_id is not None and await store.find_one(payload.parent_id) is None:
        logger.warning(
            "Rejected create under missing parent {parent_id}", parent_id=payload.parent_id
        )
        raise NodeNotFoundError(payload.parent_id, f"Parent node {payload.parent_id} not found")

    doc = {
        "_id": uuid4().hex,
        "text": payload.text,
        "parent_id": payload.parent_id,
        "created_at": _now(),
    }
    doc["_id"] = await store.insert(doc)
    logger.info(
        "Created node {node_id} under {parent_id}", node_id=doc["_id"], parent_id=payload.parent_id
    )
    return _doc_to_model(doc)


async def descendant_ids(store: NodeStore, node_id: str) -> set[str]:
    """Collect the ids of every node below ``node_id`` by breadth-first closure."""

    found: set[str] = set()
    to_visit = deque([node_id])
    while to_visit:
        current = to_visit.popleft()
        for doc in await store.find({"parent_id": current}):
            child_id = str(doc["_id"])
            if child_id == node_id or child_id in found:
                continue
            found.add(child_id)
            to_visit.append(child_id)
    return found


async def _remaining_ids(store: NodeStore, ids: Iterable[str]) -> set[str]:
    docs = await store.find({"_id": {"$in": list(ids)}})
    return {str(doc["_id"]) for doc in docs}


async def _verified_remaining(store: NodeStore, node_id: str, targets: set[str]) -> set[str]:
    try:
        return await _remaining_ids(store, targets)
    except StoreError as exc:
        logger.error(
            "Could not verify delete of {node_id}: {error}", node_id=node_id, error=exc
        )
        raise PartialDeleteError(node_id, removed=(), remaining=targets, verified=False) from exc


async def delete_with_descendants(store: NodeStore, node_id: str) -> List[str]:
    """
    Delete a node and its entire subtree, returning the removed ids.

    - Deleting a missing id is a no-op and returns ``[]``.
    - The batch delete is verified; leftovers get exactly one retry.
    - Anything still present afterwards raises ``PartialDeleteError``, as does a
      verification read that fails (every target is then reported unverified).
    """

    if await store.find_one(node_id) is None:
        logger.debug("Delete of missing node {node_id} is a no-op", node_id=node_id)
        return []

    descendants = await descendant_ids(store, node_id)
    targets = {node_id} | descendants

    try:
        await store.delete_many(targets)
    except StoreError as exc:
        logger.warning(
            "Cascading delete of {node_id} failed: {error}", node_id=node_id, error=exc
        )

    remaining = await _verified_remaining(store, node_id, targets)
    if remaining:
        logger.warning(
            "Retrying delete of {count} leftover node(s) under {node_id}",
            count=len(remaining),
            node_id=node_id,
        )
        try:
            await store.delete_many(remaining)
        except StoreError as exc:
            logger.error("Retry delete under {node_id} failed: {error}", node_id=node_id, error=exc)
        remaining = await _verified_remaining(store, node_id, targets)

    if remaining:
        raise PartialDeleteError(node_id, removed=targets - remaining, remaining=remaining)

    logger.info(
        "Deleted node {node_id} with {count} descendant(s)",
        node_id=node_id,
        count=len(descendants),
    )
    return [node_id, *sorted(descendants)]


async def would_cycle(
    store: NodeStore,
    node_id: str,
    candidate_parent_id: Optional[str],
) -> bool:
    """
    Return ``True`` when attaching ``node_id`` below ``candidate_parent_id``
    would make the node its own ancestor.

    Walks parent references upward from the candidate. The walk is capped at
    the total node count; running past it means the stored data already holds
    a cycle, which is reported as one.
    """

    if candidate_parent_id is None:
        return False

    max_hops = max(await store.count(), 1)
    current: Optional[str] = candidate_parent_id
    hops = 0
    while current is not None:
        if current == node_id:
            return True
        if hops >= max_hops:
            logger.warning(
                "Ancestor walk from {start} exceeded {limit} hops, treating as a cycle",
                start=candidate_parent_id,
                limit=max_hops,
            )
            return True
        hops += 1
        doc = await store.find_one(current)
        if doc is None:
            return False
        current = doc.get("parent_id")
    return False


async def move_node(
    store: NodeStore,
    node_id: str,
    new_parent_id: Optional[str],
) -> Node:
    """Re-parent a node below an existing node, refusing moves that form a cycle."""

    doc = await store.find_one(node_id)
    if not doc:
        raise NodeNotFoundError(node_id)

    # Attached -> Root is not offered; every move needs a target parent.
    if not new_parent_id:
        raise InvalidOperationError(f"Node {node_id} cannot be moved to the root level")

    if await store.find_one(new_parent_id) is None:
        logger.warning(
            "Rejected move of {node_id} under missing parent {parent_id}",
            node_id=node_id,
            parent_id=new_parent_id,
        )
        raise NodeNotFoundError(new_parent_id, f"Parent node {new_parent_id} not found")

    if await would_cycle(store, node_id, new_parent_id):
        logger.warning(
            "Rejected move of {node_id} under {parent_id}: cycle",
            node_id=node_id,
            parent_id=new_parent_id,
        )
        raise InvalidOperationError(
            f"Moving node {node_id} under {new_parent_id} would create a circular reference"
        )

    if doc.get("parent_id") != new_parent_id:
        if not await store.update(node_id, {"parent_id": new_parent_id}):
            raise NodeNotFoundError(node_id)

    doc["parent_id"] = new_parent_id
    logger.info("Moved node {node_id} under {parent_id}", node_id=node_id, parent_id=new_parent_id)
    return _doc_to_model(doc)


async def purge_orphans(store: NodeStore) -> List[str]:
    """Cascade-delete every orphaned node; returns all removed ids."""

    deleted: List[str] = []
    for orphan in await list_orphans(store):
        deleted.extend(await delete_with_descendants(store, orphan.id))
    if deleted:
        logger.info("Purged {count} orphaned node(s)", count=len(deleted))
    return deleted
