"""
desire/services/onboarding_service.py

Purpose: Onboarding progress management

- Enforces forward-only step transitions
- Persists every step locally before updating memory
- Mirrors completion to the remote profile
- Resets on sign-out without touching remote state
"""

import asyncio
from typing import Callable, Optional

from desire.core.config import settings
from desire.core.exceptions import LocalPersistenceError
from desire.core.logging import get_logger, LogContext
from desire.db.stores import DocumentStore, KeyValueStore
from desire.flow.states import OnboardingStep, is_valid_transition, parse_step
from desire.models.session import UserSession
from desire.utils.constants import MSG_PROGRESS_SAVE_FAILED

logger = get_logger(__name__)


class OnboardingStateMachine:
    """
    Authoritative onboarding progress for one session.

    The in-memory step never runs ahead of what the key-value store holds.
    """

    def __init__(
        self,
        session: UserSession,
        kv_store: KeyValueStore,
        documents: DocumentStore,
        flag_key: Optional[str] = None
    ):
        self.session = session
        self.kv_store = kv_store
        self.documents = documents
        self.flag_key = flag_key or settings.ONBOARDING_FLAG_KEY
        # Serializes every write of the flag, including the sign-out reset
        self._write_lock = asyncio.Lock()

    @property
    def step(self) -> OnboardingStep:
        return self.session.onboarding_step

    async def read_persisted(self) -> OnboardingStep:
        """Reads the stored step without changing memory."""
        return parse_step(await self.kv_store.get(self.flag_key))

    async def hydrate(self) -> OnboardingStep:
        """
        Loads the persisted step; missing or unreadable values mean unstarted.
        """
        self.session.onboarding_step = await self.read_persisted()
        logger.debug(f"Hydrated onboarding step: {self.session.onboarding_step.value}")
        return self.session.onboarding_step

    async def advance(self, step: OnboardingStep, archetype: Optional[str] = None) -> bool:
        """
        Moves to the next step.

        Args:
            step: Target step; must be the direct successor of the current one
            archetype: Archetype title, recorded when moving to ARCHETYPE_SELECTED

        Returns:
            True if the step was taken, False if the call was rejected

        Raises:
            RemoteStoreError: Completion could not be mirrored remotely
            LocalPersistenceError: The new step could not be persisted
        """
        step = OnboardingStep(step)
        current = self.session.onboarding_step

        with LogContext(identity_id=self.session.identity_id, step=current.value):
            if not is_valid_transition(current, step):
                logger.warning(f"Invalid onboarding transition rejected: {current.value} -> {step.value}")
                return False

            next_archetype = self.session.onboarding_archetype
            if step == OnboardingStep.ARCHETYPE_SELECTED:
                next_archetype = archetype

            if step == OnboardingStep.FINISHED and self.session.identity_id:
                await self.documents.update_profile(
                    self.session.identity_id,
                    {
                        "onboardingArchetype": next_archetype,
                        "onboardingComplete": True,
                    }
                )

            await self._persist(step)

            self.session.onboarding_step = step
            self.session.onboarding_archetype = next_archetype
            logger.info(f"Onboarding advanced: {current.value} -> {step.value}")
            return True

    async def seed(
        self,
        step: OnboardingStep,
        archetype: Optional[str] = None,
        is_current: Callable[[], bool] = lambda: True
    ) -> bool:
        """
        Sets progress from hydrated remote data, bypassing transition rules.
        Nothing is written once is_current() turns false, and memory is left
        alone if it turns false while the write was in flight.
        """
        if not await self._persist(step, is_current=is_current):
            return False
        if not is_current():
            return False
        self.session.onboarding_step = step
        self.session.onboarding_archetype = archetype
        return True

    async def reset(self) -> None:
        """
        Returns to unstarted (sign-out). Memory is cleared first and always.
        The stored flag is written after any flag write already in flight,
        so a late write from a discarded hydration cannot win.
        """
        self.session.onboarding_step = OnboardingStep.UNSTARTED
        self.session.onboarding_archetype = None
        async with self._write_lock:
            try:
                await self.kv_store.set(self.flag_key, OnboardingStep.UNSTARTED.value)
            except LocalPersistenceError as e:
                logger.warning(f"Could not clear persisted onboarding step: {e.message}")

    async def _persist(
        self,
        step: OnboardingStep,
        is_current: Optional[Callable[[], bool]] = None
    ) -> bool:
        """
        Writes the step under the flag lock.

        Returns:
            False if is_current() was already false and nothing was written
        """
        async with self._write_lock:
            if is_current is not None and not is_current():
                return False
            try:
                await self.kv_store.set(self.flag_key, step.value)
            except LocalPersistenceError:
                raise
            except Exception as e:
                logger.error(f"Persisting onboarding step failed: {e}", exc_info=True)
                raise LocalPersistenceError(MSG_PROGRESS_SAVE_FAILED, details={"step": step.value}) from e
        return True
