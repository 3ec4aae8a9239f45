"""Node repository: flat parent-pointer records assembled into mind-map trees."""

from .errors import InvalidOperationError, NodeNotFoundError, PartialDeleteError, StoreError
from .models import Node, NodeCreate, NodeMove, TreeNode
from .repo import (
    create_node,
    delete_with_descendants,
    descendant_ids,
    get_node,
    get_tree,
    list_nodes,
    list_orphans,
    move_node,
    purge_orphans,
    would_cycle,
)
from .store import InMemoryNodeStore, MongoNodeStore, NodeStore, create_store
from .tree import build_tree, collect_descendant_ids, find_orphans, flatten

__all__ = [
    "Node",
    "NodeCreate",
    "NodeMove",
    "TreeNode",
    "NodeNotFoundError",
    "InvalidOperationError",
    "PartialDeleteError",
    "StoreError",
    "NodeStore",
    "MongoNodeStore",
    "InMemoryNodeStore",
    "create_store",
    "build_tree",
    "collect_descendant_ids",
    "find_orphans",
    "flatten",
    "list_nodes",
    "get_node",
    "get_tree",
    "list_orphans",
    "create_node",
    "descendant_ids",
    "delete_with_descendants",
    "would_cycle",
    "move_node",
    "purge_orphans",
]
