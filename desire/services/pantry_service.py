"""
desire/services/pantry_service.py

Purpose: Pantry synchronization

- Remote write first, local mirror second, for every mutation
- Bulk replace at the end of onboarding
- Per-item write serialization
- Recipe ingredient comparison against the mirror
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List

from desire.core.exceptions import (
    PartialSyncError,
    PreconditionError,
    RemoteStoreError,
    ValidationError,
)
from desire.core.logging import get_logger, LogContext
from desire.db.stores import DocumentStore
from desire.models.session import PantryMirror, UserSession
from desire.utils.constants import (
    MSG_ADD_FAILED,
    MSG_IDENTITY_MISSING,
    MSG_REMOVE_FAILED,
    MSG_SAVE_PANTRY_FAILED,
)
from desire.utils.time_utils import Clock, now_ms
from desire.utils.validation_utils import normalize_item_name, normalize_item_names

logger = get_logger(__name__)


class PantrySynchronizer:
    """
    Owns the local pantry mirror of one session.

    The mirror only changes after the remote store has confirmed the write.
    Writes to the same item are queued behind one another; writes to
    different items run freely.
    """

    def __init__(
        self,
        session: UserSession,
        mirror: PantryMirror,
        documents: DocumentStore,
        clock: Clock = now_ms
    ):
        self.session = session
        self.mirror = mirror
        self.documents = documents
        self.clock = clock
        # Live locks only; an entry is dropped once nobody holds or awaits it
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Counter = Counter()

    def _require_identity(self) -> str:
        if not self.session.identity_id:
            logger.warning("Pantry operation attempted without identity")
            raise PreconditionError(MSG_IDENTITY_MISSING)
        return self.session.identity_id

    async def add_item(self, name: str) -> str:
        """
        Adds one item.

        Returns:
            The normalized name

        Raises:
            PreconditionError: No signed-in identity
            ValidationError: Empty name
            RemoteStoreError: Remote upsert failed; mirror unchanged
        """
        identity_id = self._require_identity()
        key = normalize_item_name(name)

        with LogContext(identity_id=identity_id, item=key):
            async with self._item_lock(key):
                try:
                    await self.documents.upsert_pantry_item(identity_id, key)
                except RemoteStoreError as e:
                    raise RemoteStoreError(MSG_ADD_FAILED, details={"item": key, "cause": e.message}) from e
                if identity_id != self.session.identity_id:
                    logger.info("Session changed during pantry add, mirror left alone")
                    return key
                self.mirror.add(key)
                await self._touch(identity_id)

            logger.info(f"Pantry item added: {key}")
            return key

    async def remove_item(self, name: str) -> str:
        """
        Removes one item. The remote delete is attempted even when the
        mirror does not hold the name.

        Raises:
            PreconditionError: No signed-in identity
            RemoteStoreError: Remote delete failed; mirror unchanged
        """
        identity_id = self._require_identity()
        key = normalize_item_name(name)

        with LogContext(identity_id=identity_id, item=key):
            async with self._item_lock(key):
                try:
                    await self.documents.delete_pantry_item(identity_id, key)
                except RemoteStoreError as e:
                    raise RemoteStoreError(MSG_REMOVE_FAILED, details={"item": key, "cause": e.message}) from e
                if identity_id != self.session.identity_id:
                    logger.info("Session changed during pantry remove, mirror left alone")
                    return key
                self.mirror.discard(key)
                await self._touch(identity_id)

            logger.info(f"Pantry item removed: {key}")
            return key

    async def replace_all(self, names: Iterable[str]) -> List[str]:
        """
        Upserts every name concurrently, then swaps the mirror to exactly
        that set. If any upsert fails the mirror is not touched and the
        upserts that did succeed are left in place remotely.

        Raises:
            PreconditionError: No signed-in identity
            PartialSyncError: At least one upsert failed
        """
        identity_id = self._require_identity()
        keys = normalize_item_names(names)

        with LogContext(identity_id=identity_id):
            results = await asyncio.gather(
                *(self._locked_upsert(identity_id, key) for key in keys),
                return_exceptions=True
            )

            failed = [key for key, result in zip(keys, results) if isinstance(result, BaseException)]
            if failed:
                succeeded = [key for key in keys if key not in failed]
                logger.error(
                    f"Bulk pantry write failed for {len(failed)} of {len(keys)} items",
                    extra={"failed": failed}
                )
                unexpected = [r for r in results if isinstance(r, BaseException) and not isinstance(r, RemoteStoreError)]
                error = PartialSyncError(MSG_SAVE_PANTRY_FAILED, details={"failed": failed, "succeeded": succeeded})
                if unexpected:
                    raise error from unexpected[0]
                raise error

            if identity_id != self.session.identity_id:
                logger.info("Session changed during bulk pantry write, mirror left alone")
                return keys

            self.mirror.replace(keys)
            await self._touch(identity_id)
            logger.info(f"Pantry replaced with {len(keys)} items")
            return keys

    def compare(self, ingredients: Iterable[str]) -> Dict[str, List[str]]:
        """
        Splits recipe ingredients into those already in the pantry and
        those still to buy. Original spelling is kept in the output.
        """
        have, need = [], []
        for ingredient in ingredients:
            try:
                key = normalize_item_name(ingredient)
            except ValidationError:
                continue
            if key in self.mirror:
                have.append(ingredient)
            else:
                need.append(ingredient)
        return {"have": have, "need": need}

    def seed(self, names: Iterable[str]) -> None:
        """Replaces the mirror with hydrated remote names."""
        self.mirror.replace(normalize_item_names(names))

    def reset(self) -> None:
        # Locks are kept: a write still in flight must finish before the
        # next session writes the same item
        self.mirror.clear()

    @asynccontextmanager
    async def _item_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _locked_upsert(self, identity_id: str, key: str) -> None:
        async with self._item_lock(key):
            await self.documents.upsert_pantry_item(identity_id, key)

    async def _touch(self, identity_id: str) -> None:
        """
        Records the sync time locally, then mirrors it to the profile.
        The item write already succeeded, so a failed profile write is
        logged rather than raised.
        """
        timestamp = self.clock()
        self.session.pantry_last_synced_at = timestamp
        try:
            await self.documents.update_profile(identity_id, {"pantryLastUpdated": timestamp})
        except RemoteStoreError as e:
            logger.warning(f"pantryLastUpdated not mirrored: {e.message}")
