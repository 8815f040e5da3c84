"""
desire/api/deps.py

Purpose: Per-device session engines for the HTTP layer

- One SessionEngine per device id, each with its own event sources
- Engines are started on first use and closed on request or shutdown
- Engines idle longer than SESSION_IDLE_TIMEOUT_SECONDS are closed on the next open
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional

from fastapi import Request

from desire.core.config import settings
from desire.core.exceptions import ResourceNotFoundError
from desire.core.logging import get_logger
from desire.db.stores import DocumentStore, KeyValueStore, MongoDocumentStore, MongoKeyValueStore
from desire.flow.engine import SessionEngine

logger = get_logger(__name__)


class SessionRegistry:
    """
    Keeps the live engines of all connected devices.

    Devices that stop calling without closing their session are swept
    once their last request is older than idle_timeout seconds.
    """

    def __init__(
        self,
        kv_factory: Callable[[str], KeyValueStore] = MongoKeyValueStore,
        documents: DocumentStore = None,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.kv_factory = kv_factory
        self.documents = documents if documents is not None else MongoDocumentStore()
        self.idle_timeout = idle_timeout if idle_timeout is not None else settings.SESSION_IDLE_TIMEOUT_SECONDS
        self.clock = clock
        self._engines: Dict[str, SessionEngine] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._engines)

    async def open(self, device_id: str) -> SessionEngine:
        async with self._lock:
            await self._sweep_locked()
            engine = self._engines.get(device_id)
            if engine is None:
                engine = SessionEngine(self.kv_factory(device_id), self.documents)
                await engine.start()
                self._engines[device_id] = engine
                logger.info("Device session opened", extra={"device_id": device_id})
            self._last_seen[device_id] = self.clock()
            return engine

    def get(self, device_id: str) -> SessionEngine:
        engine = self._engines.get(device_id)
        if engine is None:
            raise ResourceNotFoundError(f"No session for device {device_id}")
        self._last_seen[device_id] = self.clock()
        return engine

    async def close(self, device_id: str) -> None:
        async with self._lock:
            engine = self._engines.pop(device_id, None)
            self._last_seen.pop(device_id, None)
        if engine is None:
            raise ResourceNotFoundError(f"No session for device {device_id}")
        await engine.close()
        logger.info("Device session closed", extra={"device_id": device_id})

    async def sweep(self) -> List[str]:
        """
        Closes every engine idle longer than idle_timeout.

        Returns:
            Device ids whose sessions were closed
        """
        async with self._lock:
            return await self._sweep_locked()

    async def _sweep_locked(self) -> List[str]:
        now = self.clock()
        expired = [
            device_id
            for device_id, seen in self._last_seen.items()
            if now - seen > self.idle_timeout
        ]
        for device_id in expired:
            engine = self._engines.pop(device_id)
            del self._last_seen[device_id]
            await engine.close()
            logger.info("Idle device session closed", extra={"device_id": device_id})
        return expired

    async def close_all(self) -> None:
        async with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
            self._last_seen.clear()
        for engine in engines:
            await engine.close()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions
