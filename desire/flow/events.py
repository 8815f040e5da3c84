"""
desire/flow/events.py

Purpose: Event sources feeding the session engine

- Subscription handles with explicit release
- Identity provider (signed-in identity or None)
- App lifecycle source (active / inactive / background)
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from desire.core.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class AppState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class Subscription:
    """
    Handle returned by EventChannel.subscribe.
    Once released the handler is never called again.
    """

    def __init__(self, channel: "EventChannel", token: int):
        self._channel = channel
        self._token = token
        self.active = True

    def release(self) -> None:
        if self.active:
            self._channel._remove(self._token)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class EventChannel:
    """
    Minimal publish/subscribe channel.

    Coroutine handlers are scheduled as tasks on the running loop, so
    emit() returns before they finish, the way a platform callback would.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: Dict[int, Handler] = {}
        self._next_token = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._handlers[token] = handler
        logger.debug(f"Subscribed to {self.name} (token={token})")
        return Subscription(self, token)

    def _remove(self, token: int) -> None:
        self._handlers.pop(token, None)
        logger.debug(f"Released {self.name} subscription (token={token})")

    def emit(self, value: Any) -> List[asyncio.Task]:
        tasks = []
        for handler in list(self._handlers.values()):
            result = handler(value)
            if inspect.isawaitable(result):
                tasks.append(asyncio.ensure_future(result))
        return tasks


class IdentityProvider(EventChannel):
    """
    Emits the current signed-in identity id, or None when signed out.

    Until the first emission the identity is unresolved. Late subscribers
    read `resolved` and `current` for the value they missed.
    """

    def __init__(self):
        super().__init__("identity")
        self.resolved = False
        self.current: Optional[str] = None

    def emit(self, identity_id: Optional[str]) -> List[asyncio.Task]:
        self.resolved = True
        self.current = identity_id
        return super().emit(identity_id)


class AppLifecycle(EventChannel):
    """Emits AppState changes of the host application."""

    def __init__(self, initial: AppState = AppState.ACTIVE):
        super().__init__("app_state")
        self.current = initial

    def emit(self, state: AppState) -> List[asyncio.Task]:
        self.current = AppState(state)
        return super().emit(self.current)
