from __future__ import annotations

import logging
from typing import Protocol

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from tripplanner.core.errors import PersistenceError
from tripplanner.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Byte store behind the trip repository. Backend failures raise PersistenceError."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Used for tests and the default memory backend."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class MongoKeyValueStore:
    """Stores each key as a ``{key, value}`` document in a MongoDB collection."""

    def __init__(self, mongodb_uri: str, database_name: str, collection: str = "trip_records"):
        if not mongodb_uri:
            raise ValueError("MONGODB_URI environment variable is required")

        self.client = MongoClient(
            mongodb_uri,
            serverSelectionTimeoutMS=5000,  # 5 second timeout
            connectTimeoutMS=10000,
            socketTimeoutMS=20000,
            retryWrites=True,
            retryReads=True,
        )
        self.collection = self.client[database_name][collection]

        try:
            self.collection.create_index("key", unique=True)
            logger.info("[Repository] MongoDB key index ready on %s.%s", database_name, collection)
        except Exception as index_error:
            logger.warning("[Repository] Index creation failed (might already exist): %s", index_error)

    def get(self, key: str) -> bytes | None:
        try:
            doc = self.collection.find_one({"key": key})
        except PyMongoError as e:
            logger.error("[Repository] Failed to read %s: %s", key, e)
            raise PersistenceError(f"Failed to read {key}: {e}") from e
        if not doc:
            return None
        return bytes(doc["value"])

    def set(self, key: str, value: bytes) -> None:
        try:
            self.collection.update_one({"key": key}, {"$set": {"value": bytes(value)}}, upsert=True)
        except PyMongoError as e:
            logger.error("[Repository] Failed to write %s: %s", key, e)
            raise PersistenceError(f"Failed to write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self.collection.delete_one({"key": key})
        except PyMongoError as e:
            logger.error("[Repository] Failed to remove %s: %s", key, e)
            raise PersistenceError(f"Failed to remove {key}: {e}") from e


def build_store(settings: Settings | None = None) -> KeyValueStore:
    settings = settings or get_settings()
    if settings.storage_backend == "mongo":
        return MongoKeyValueStore(settings.mongodb_uri, settings.database_name)
    return InMemoryKeyValueStore()
