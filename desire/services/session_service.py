"""
desire/services/session_service.py

Purpose: Engagement tracking across app sessions

- Tracks whether a search happened in the current foreground session
- Counts consecutive opens without a search
- Derives pantry staleness and the home prompt
"""

from typing import Optional

from desire.core.config import settings
from desire.core.logging import get_logger, LogContext
from desire.db.stores import DocumentStore
from desire.flow.events import AppState
from desire.models.session import UserSession
from desire.utils.constants import PROMPT_ALTERNATE, PROMPT_DEFAULT
from desire.utils.time_utils import is_pantry_stale

logger = get_logger(__name__)


def needs_pantry_update(last_synced_at: Optional[int], now: int, stale_after_days: Optional[int] = None) -> bool:
    """
    True when the pantry was never synced or was synced more than
    PANTRY_STALE_AFTER_DAYS ago.
    """
    if stale_after_days is None:
        stale_after_days = settings.PANTRY_STALE_AFTER_DAYS
    return is_pantry_stale(last_synced_at, now, stale_after_days)


def show_alternate_prompt(consecutive_inactive_opens: int, threshold: Optional[int] = None) -> bool:
    if threshold is None:
        threshold = settings.ALTERNATE_PROMPT_THRESHOLD
    return consecutive_inactive_opens >= threshold


def prompt_text(consecutive_inactive_opens: int) -> str:
    """Home screen prompt for the given streak."""
    if show_alternate_prompt(consecutive_inactive_opens):
        return PROMPT_ALTERNATE
    return PROMPT_DEFAULT


class SessionTracker:
    """
    Reacts to foreground/background transitions.

    A foreground transition that follows background or inactive starts a
    new session: the previous one counts as inactive if no search was
    made, and the search flag starts over.
    """

    def __init__(
        self,
        session: UserSession,
        documents: DocumentStore,
        initial_state: AppState = AppState.ACTIVE
    ):
        self.session = session
        self.documents = documents
        self.search_performed = False
        self._last_state = initial_state

    def mark_search_performed(self) -> None:
        self.search_performed = True

    def reset_inactive_opens(self) -> bool:
        """
        Clears the streak.

        Returns:
            True if the counter changed
        """
        changed = self.session.consecutive_inactive_opens != 0
        self.session.consecutive_inactive_opens = 0
        return changed

    def on_app_state(self, state: AppState) -> bool:
        """
        Handles one transition.

        Returns:
            True if the inactive-open counter was incremented
        """
        state = AppState(state)
        previous = self._last_state
        self._last_state = state

        if state != AppState.ACTIVE or previous == AppState.ACTIVE:
            return False

        counted = not self.search_performed
        if counted:
            self.session.consecutive_inactive_opens += 1
            logger.info(
                f"Inactive open recorded ({self.session.consecutive_inactive_opens} in a row)",
                extra={"identity_id": self.session.identity_id}
            )
        self.search_performed = False
        return counted

    async def mirror_counter(self) -> None:
        """
        Copies the counter to the remote profile.

        Raises:
            RemoteStoreError: The profile update failed
        """
        identity_id = self.session.identity_id
        if not identity_id:
            return
        with LogContext(identity_id=identity_id):
            await self.documents.update_profile(
                identity_id,
                {"consecutiveInactiveOpens": self.session.consecutive_inactive_opens}
            )

    def reset(self) -> None:
        self.search_performed = False
