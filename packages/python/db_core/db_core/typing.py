"""Lightweight typing helpers shared by Mongo-backed stores."""

from typing import Any, Mapping

MongoDocument = Mapping[str, Any]
