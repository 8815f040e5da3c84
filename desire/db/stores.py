"""
desire/db/stores.py

Purpose: Storage collaborators of the session engine

- KeyValueStore: scalar flags (get / set)
- DocumentStore: per-identity profile document and pantry collection
- Motor-backed implementations of both
- Every driver failure surfaces as a project exception
"""

from typing import Any, Dict, List, Optional, Protocol

from pymongo.errors import PyMongoError

from desire.core.exceptions import LocalPersistenceError, RemoteStoreError
from desire.core.logging import get_logger
from desire.db.mongo import (
    get_device_flags_collection,
    get_pantry_collection,
    get_profiles_collection,
)

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...


class DocumentStore(Protocol):
    async def get_profile(self, identity_id: str) -> Optional[Dict[str, Any]]: ...

    async def update_profile(self, identity_id: str, data: Dict[str, Any]) -> None: ...

    async def list_pantry(self, identity_id: str) -> List[str]: ...

    async def upsert_pantry_item(self, identity_id: str, name: str) -> None: ...

    async def delete_pantry_item(self, identity_id: str, name: str) -> None: ...


class MongoKeyValueStore:
    """
    Flag store kept in the device_flags collection.
    Keys are prefixed with the namespace (a device id) when one is given.
    """

    def __init__(self, namespace: Optional[str] = None, collection=None):
        self.namespace = namespace
        self._collection = collection

    @property
    def collection(self):
        return self._collection if self._collection is not None else get_device_flags_collection()

    def _doc_id(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await self.collection.find_one({"_id": self._doc_id(key)})
        except PyMongoError as e:
            logger.error(f"Failed to read flag {key}: {e}")
            raise LocalPersistenceError("Failed to read onboarding progress") from e
        return doc.get("value") if doc else None

    async def set(self, key: str, value: str) -> None:
        try:
            await self.collection.update_one(
                {"_id": self._doc_id(key)},
                {"$set": {"value": value}},
                upsert=True
            )
        except PyMongoError as e:
            logger.error(f"Failed to write flag {key}: {e}")
            raise LocalPersistenceError() from e


class MongoDocumentStore:
    """
    Remote profile and pantry documents.

    Pantry documents are keyed by (identity_id, name); deleting a missing
    document is not an error.
    """

    def __init__(self, profiles=None, pantry=None):
        self._profiles = profiles
        self._pantry = pantry

    @property
    def profiles(self):
        return self._profiles if self._profiles is not None else get_profiles_collection()

    @property
    def pantry(self):
        return self._pantry if self._pantry is not None else get_pantry_collection()

    async def get_profile(self, identity_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.profiles.find_one({"_id": identity_id})
        except PyMongoError as e:
            logger.error(f"get_profile failed: {e}", extra={"identity_id": identity_id})
            raise RemoteStoreError("Failed to retrieve profile") from e
        if doc:
            doc.pop("_id", None)
        return doc

    async def update_profile(self, identity_id: str, data: Dict[str, Any]) -> None:
        try:
            await self.profiles.update_one(
                {"_id": identity_id},
                {"$set": data},
                upsert=True
            )
        except PyMongoError as e:
            logger.error(f"update_profile failed: {e}", extra={"identity_id": identity_id})
            raise RemoteStoreError("Failed to update user profile") from e

    async def list_pantry(self, identity_id: str) -> List[str]:
        try:
            cursor = self.pantry.find({"identity_id": identity_id}, {"name": 1})
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"list_pantry failed: {e}", extra={"identity_id": identity_id})
            raise RemoteStoreError("Failed to retrieve pantry") from e
        return [doc["name"] for doc in docs]

    async def upsert_pantry_item(self, identity_id: str, name: str) -> None:
        try:
            await self.pantry.update_one(
                {"identity_id": identity_id, "name": name},
                {"$set": {"identity_id": identity_id, "name": name}},
                upsert=True
            )
        except PyMongoError as e:
            logger.error(f"upsert_pantry_item failed: {e}", extra={"identity_id": identity_id, "item": name})
            raise RemoteStoreError("Failed to add item to pantry") from e

    async def delete_pantry_item(self, identity_id: str, name: str) -> None:
        try:
            await self.pantry.delete_one({"identity_id": identity_id, "name": name})
        except PyMongoError as e:
            logger.error(f"delete_pantry_item failed: {e}", extra={"identity_id": identity_id, "item": name})
            raise RemoteStoreError("Failed to remove item from pantry") from e
