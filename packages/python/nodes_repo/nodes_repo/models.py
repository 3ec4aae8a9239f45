"""Pydantic models describing mind-map nodes."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serialize as camelCase on the wire, accept either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Node(_CamelModel):
    """Representation of a node stored as a flat MongoDB document."""

    id: str
    text: str
    parent_id: Optional[str] = None
    created_at: datetime


class TreeNode(Node):
    """A node with its derived children attached; never persisted."""

    children: List["TreeNode"] = Field(default_factory=list)


class NodeCreate(_CamelModel):
    """Payload for creating a root (no parent) or child node."""

    text: str = Field(min_length=1)
    parent_id: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("text must not be blank")
        return stripped

    @field_validator("parent_id")
    @classmethod
    def _empty_parent_is_root(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class NodeMove(_CamelModel):
    """Payload for re-parenting a node."""

    new_parent_id: Optional[str] = None

    @field_validator("new_parent_id")
    @classmethod
    def _empty_parent_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


TreeNode.model_rebuild()
