"""Pytest fixtures and in-memory stand-ins for the storage collaborators."""

import asyncio
from typing import Dict, Optional, Set

import pytest
import pytest_asyncio

from desire.core.exceptions import LocalPersistenceError, RemoteStoreError
from desire.flow.engine import SessionEngine
from desire.flow.events import AppLifecycle, IdentityProvider
from desire.models.session import PantryMirror, UserSession
from desire.services.hydration_service import ProfileHydrator
from desire.services.onboarding_service import OnboardingStateMachine
from desire.services.pantry_service import PantrySynchronizer
from desire.services.session_service import SessionTracker

NOW = 1_700_000_000_000


class InMemoryKeyValueStore:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data = dict(data or {})
        self.fail_writes = False
        self.writes = []
        # When set, the next write blocks on this event; `held` fires once it does
        self.gate: Optional[asyncio.Event] = None
        self.held = asyncio.Event()

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.writes.append((key, value))
        gate, self.gate = self.gate, None
        if gate is not None:
            self.held.set()
            await gate.wait()
        if self.fail_writes:
            raise LocalPersistenceError()
        self.data[key] = value


class InMemoryDocumentStore:
    """
    Profile and pantry documents in dicts.

    fail: operation names ("get_profile", "update_profile", "list_pantry")
    or "upsert:<name>" / "delete:<name>" that should raise.
    gates: operation name -> asyncio.Event the call waits on first.
    """

    def __init__(self):
        self.profiles: Dict[str, dict] = {}
        self.pantry: Dict[str, Set[str]] = {}
        self.fail: Set[str] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls = []

    async def _enter(self, op, key=None):
        self.calls.append((op, key))
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.fail or (key is not None and f"{op}:{key}" in self.fail):
            raise RemoteStoreError(f"{op} rejected")

    async def get_profile(self, identity_id):
        await self._enter("get_profile")
        profile = self.profiles.get(identity_id)
        return dict(profile) if profile is not None else None

    async def update_profile(self, identity_id, data):
        await self._enter("update_profile")
        self.profiles.setdefault(identity_id, {}).update(data)

    async def list_pantry(self, identity_id):
        await self._enter("list_pantry")
        return sorted(self.pantry.get(identity_id, set()))

    async def upsert_pantry_item(self, identity_id, name):
        await self._enter("upsert", name)
        self.pantry.setdefault(identity_id, set()).add(name)

    async def delete_pantry_item(self, identity_id, name):
        await self._enter("delete", name)
        self.pantry.get(identity_id, set()).discard(name)


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def session():
    return UserSession(identity_id="user-1")


@pytest.fixture
def mirror():
    return PantryMirror()


@pytest.fixture
def onboarding(session, kv, documents):
    return OnboardingStateMachine(session, kv, documents, flag_key="onboardingStep")


@pytest.fixture
def pantry(session, mirror, documents, clock):
    return PantrySynchronizer(session, mirror, documents, clock=clock)


@pytest.fixture
def hydrator(session, onboarding, pantry, documents):
    return ProfileHydrator(session, onboarding, pantry, documents)


@pytest.fixture
def tracker(session, documents):
    return SessionTracker(session, documents)


@pytest.fixture
def identity():
    return IdentityProvider()


@pytest.fixture
def lifecycle():
    return AppLifecycle()


@pytest_asyncio.fixture
async def engine(kv, documents, identity, lifecycle, clock):
    engine = SessionEngine(kv, documents, identity, lifecycle, clock=clock)
    await engine.start()
    yield engine
    await engine.close()
