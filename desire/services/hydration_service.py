"""
desire/services/hydration_service.py

Purpose: Profile hydration on sign-in

- Fetches remote profile, remote pantry and the local step concurrently
- Seeds onboarding progress, engagement counters and the pantry mirror
- Drops results that arrive after sign-out or an identity switch
"""

import asyncio

from pydantic import ValidationError as PydanticValidationError

from desire.core.exceptions import RemoteStoreError, ValidationError
from desire.core.logging import get_logger, LogContext
from desire.db.stores import DocumentStore
from desire.flow.states import OnboardingStep
from desire.models.session import UserSession
from desire.schemas.profile import RemoteProfile
from desire.services.onboarding_service import OnboardingStateMachine
from desire.services.pantry_service import PantrySynchronizer
from desire.utils.time_utils import format_timestamp
from desire.utils.validation_utils import normalize_item_names

logger = get_logger(__name__)


class ProfileHydrator:
    """
    Pulls one identity's remote state into the session.

    Every hydrate() call and every invalidate() bumps a generation counter;
    a hydration only applies its results if the generation it started
    with is still current.
    """

    def __init__(
        self,
        session: UserSession,
        onboarding: OnboardingStateMachine,
        pantry: PantrySynchronizer,
        documents: DocumentStore
    ):
        self.session = session
        self.onboarding = onboarding
        self.pantry = pantry
        self.documents = documents
        self._generation = 0

    def invalidate(self) -> None:
        """Discards any hydration still in flight."""
        self._generation += 1

    def _is_current(self, generation: int, identity_id: str) -> bool:
        return generation == self._generation and self.session.identity_id == identity_id

    async def hydrate(self, identity_id: str) -> bool:
        """
        Loads profile and pantry for identity_id.

        Returns:
            True if the results were applied, False if they went stale

        Raises:
            RemoteStoreError: A fetch failed or the profile is malformed
            LocalPersistenceError: The derived step could not be persisted
        """
        self._generation += 1
        generation = self._generation

        with LogContext(identity_id=identity_id):
            logger.info("Hydrating session from remote profile")

            raw_profile, names, local_step = await asyncio.gather(
                self.documents.get_profile(identity_id),
                self.documents.list_pantry(identity_id),
                self.onboarding.read_persisted(),
            )

            if not self._is_current(generation, identity_id):
                logger.info("Discarding stale hydration")
                return False

            profile = None
            if raw_profile is not None:
                try:
                    profile = RemoteProfile.model_validate(raw_profile)
                except PydanticValidationError as e:
                    logger.error(f"Malformed profile document: {e}")
                    raise RemoteStoreError("Malformed user profile", details=e.errors()) from e

            try:
                keys = normalize_item_names(names)
            except ValidationError as e:
                logger.error(f"Malformed pantry item: {e.details}")
                raise RemoteStoreError("Malformed pantry item", details=e.details) from e

            archetype = None
            if profile is not None and profile.is_onboarded:
                step = OnboardingStep.FINISHED
                archetype = profile.onboarding_archetype
            elif local_step != OnboardingStep.FINISHED:
                # Partial progress is only ever recorded locally
                step = local_step
            else:
                step = OnboardingStep.UNSTARTED

            applied = await self.onboarding.seed(
                step,
                archetype,
                is_current=lambda: self._is_current(generation, identity_id)
            )
            if not applied:
                logger.info("Discarding stale hydration")
                return False

            self.pantry.seed(keys)
            self.session.pantry_last_synced_at = profile.pantry_last_updated if profile else None
            self.session.consecutive_inactive_opens = profile.consecutive_inactive_opens if profile else 0

            logger.info(
                f"Hydrated: step={step.value}, items={len(keys)}, "
                f"pantry synced {format_timestamp(self.session.pantry_last_synced_at)}"
            )
            return True
