"""Configuration for the nodes API package."""

import os

from pydantic import BaseModel, Field


class NodesApiSettings(BaseModel):
    """Which store backs the node routes."""

    store_backend: str = Field(
        default_factory=lambda: os.getenv("NODES_STORE_BACKEND", "mongo")
    )
    collection_name: str = Field(
        default_factory=lambda: os.getenv("NODES_COLLECTION", "nodes")
    )


settings = NodesApiSettings()
