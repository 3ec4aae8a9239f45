"""Domain-level errors for the node repository.

Each error carries a ``kind`` so the API layer can report the three failure
families distinctly.
"""

from __future__ import annotations

from typing import Iterable


class NodeNotFoundError(Exception):
    """Raised when a node, or a referenced parent node, cannot be located."""

    kind = "NotFound"

    def __init__(self, node_id: str, message: str | None = None):
        self.node_id = node_id
        super().__init__(message or f"Node {node_id} not found")


class InvalidOperationError(Exception):
    """Raised when a move would introduce a cycle or is otherwise unsupported."""

    kind = "InvalidOperation"


class PartialDeleteError(Exception):
    """Raised when a cascading delete could not remove the whole subtree."""

    kind = "PartialFailure"

    def __init__(
        self,
        node_id: str,
        removed: Iterable[str],
        remaining: Iterable[str],
        verified: bool = True,
    ):
        self.node_id = node_id
        self.removed = sorted(removed)
        self.remaining = sorted(remaining)
        self.verified = verified
        if verified:
            message = (
                f"Deleting {node_id} left {len(self.remaining)} node(s) behind "
                f"after removing {len(self.removed)}"
            )
        else:
            message = (
                f"Deleting {node_id} could not be verified; "
                f"{len(self.remaining)} node(s) may or may not have been removed"
            )
        super().__init__(message)


class StoreError(Exception):
    """Raised by a store backend when the underlying database call fails."""

    kind = "StoreUnavailable"
