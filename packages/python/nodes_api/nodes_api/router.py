from __future__ import annotations

"""FastAPI router exposing node operations."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from nodes_repo import (
    Node,
    NodeCreate,
    NodeMove,
    NodeStore,
    create_node,
    delete_with_descendants,
    get_node,
    get_tree,
    list_nodes,
    list_orphans,
    move_node,
    purge_orphans,
)

from .dependencies import get_store

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("", response_model=None)
async def read_nodes(
    shape: Literal["tree", "flat"] = Query(default="tree"),
    store: NodeStore = Depends(get_store),
):
    """
    Return all nodes.

    ``shape=tree`` (default) returns the roots with nested ``children``;
    ``shape=flat`` returns the stored records as a plain list.
    """

    if shape == "flat":
        return await list_nodes(store)
    return await get_tree(store)


@router.get("/orphans", response_model=list[Node])
async def read_orphans(store: NodeStore = Depends(get_store)):
    """Nodes whose parent no longer exists; they are hidden from the tree."""

    return await list_orphans(store)


@router.delete("/orphans")
async def delete_orphans(store: NodeStore = Depends(get_store)) -> dict[str, list[str]]:
    return {"deleted": await purge_orphans(store)}


@router.get("/{node_id}", response_model=Node)
async def read_node(node_id: str, store: NodeStore = Depends(get_store)):
    return await get_node(store, node_id)


@router.post("", response_model=Node, status_code=201)
async def create(payload: NodeCreate, store: NodeStore = Depends(get_store)):
    """Create a root node, or a child when ``parentId`` is given."""

    return await create_node(store, payload)


@router.delete("/{node_id}")
async def delete(node_id: str, store: NodeStore = Depends(get_store)) -> dict[str, list[str]]:
    """Delete a node and its subtree; deleting a missing id succeeds with nothing removed."""

    return {"deleted": await delete_with_descendants(store, node_id)}


@router.patch("/{node_id}/move", response_model=Node)
async def move(node_id: str, payload: NodeMove, store: NodeStore = Depends(get_store)):
    """Re-parent a node, rejecting moves that would form a cycle."""

    return await move_node(store, node_id, payload.new_parent_id)
