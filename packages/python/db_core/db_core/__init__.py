"""Minimal MongoDB helpers shared by the node repository.

Example usage in a domain repository:

    from db_core import get_db

    async def list_roots():
        db = get_db()
        cursor = db["nodes"].find({"parent_id": None}).sort("created_at", 1)
        return await cursor.to_list(length=None)
"""

from .settings import MongoSettings, settings
from .mongo import get_mongo_client, get_db, ping

__all__ = [
    "MongoSettings",
    "settings",
    "get_mongo_client",
    "get_db",
    "ping",
]
