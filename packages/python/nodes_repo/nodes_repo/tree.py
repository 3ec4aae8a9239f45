"""Pure tree assembly helpers over flat parent-pointer records.

Nothing in here touches storage: callers load the records and hand them in.
All walks are iterative so deep chains never hit the recursion limit.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Dict, Iterable, List, Optional

from .models import Node, TreeNode


def _display_order(node: Node):
    return (node.created_at, node.id)


def _group_by_parent(records: Iterable[Node]) -> Dict[Optional[str], List[Node]]:
    groups: Dict[Optional[str], List[Node]] = defaultdict(list)
    for record in records:
        groups[record.parent_id].append(record)
    for siblings in groups.values():
        siblings.sort(key=_display_order)
    return groups


def _to_tree_node(record: Node) -> TreeNode:
    return TreeNode.model_validate({**record.model_dump(), "children": []})


def build_tree(records: Iterable[Node]) -> List[TreeNode]:
    """
    Turn flat records into a list of root trees.

    - Roots are records with ``parent_id = None``, ordered by ``created_at``.
    - Orphans (parent id pointing at a missing record) are left out.
    - A record is placed at most once, so a cycle already present in storage
      is skipped instead of looping forever.
    """

    groups = _group_by_parent(records)
    placed: set[str] = set()
    roots: List[TreeNode] = []
    stack: List[TreeNode] = []

    for record in groups.get(None, []):
        if record.id in placed:
            continue
        placed.add(record.id)
        root = _to_tree_node(record)
        roots.append(root)
        stack.append(root)

    while stack:
        current = stack.pop()
        for record in groups.get(current.id, []):
            if record.id in placed:
                continue
            placed.add(record.id)
            child = _to_tree_node(record)
            current.children.append(child)
            stack.append(child)

    return roots


def collect_descendant_ids(records: Iterable[Node], node_id: str) -> set[str]:
    """Return every id below ``node_id`` (the node itself excluded)."""

    groups = _group_by_parent(records)
    found: set[str] = set()
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        for child in groups.get(current, []):
            if child.id == node_id or child.id in found:
                continue
            found.add(child.id)
            queue.append(child.id)
    return found


def find_orphans(records: Iterable[Node]) -> List[Node]:
    """Records whose parent reference points at no existing record."""

    nodes = list(records)
    known = {node.id for node in nodes}
    orphans = [
        node for node in nodes if node.parent_id is not None and node.parent_id not in known
    ]
    return sorted(orphans, key=_display_order)


def flatten(trees: Iterable[TreeNode]) -> List[Node]:
    """Pre-order flattening of built trees back into plain nodes."""

    result: List[Node] = []
    stack = list(reversed(list(trees)))
    while stack:
        current = stack.pop()
        result.append(Node.model_validate(current.model_dump(exclude={"children"})))
        stack.extend(reversed(current.children))
    return result
