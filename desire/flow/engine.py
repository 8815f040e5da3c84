"""
desire/flow/engine.py

Purpose: Session-scoped state container

- Wires onboarding, pantry, hydration and engagement tracking for one session
- Subscribes to identity and app-lifecycle events, releases them on close
- Orchestrates the onboarding screens and home search
- Catches failures from event handlers and surfaces them as user messages
"""

import asyncio
from typing import Any, Callable, Coroutine, Dict, Iterable, List, Optional, Set, Tuple

from desire.core.exceptions import DesireError, PreconditionError, ResourceNotFoundError
from desire.core.logging import get_logger, LogContext
from desire.db.stores import DocumentStore, KeyValueStore
from desire.flow.events import AppLifecycle, AppState, IdentityProvider, Subscription
from desire.flow.navigation import FlowSelection, select_flow
from desire.flow.states import OnboardingStep
from desire.models.session import PantryMirror, UserSession
from desire.services.hydration_service import ProfileHydrator
from desire.services.onboarding_service import OnboardingStateMachine
from desire.services.pantry_service import PantrySynchronizer
from desire.services.session_service import (
    SessionTracker,
    needs_pantry_update,
    prompt_text,
    show_alternate_prompt,
)
from desire.utils.constants import (
    ARCHETYPES,
    MSG_AUTH_STATE_FAILED,
    MSG_IDENTITY_MISSING,
    MSG_PROFILE_UPDATE_FAILED,
)
from desire.utils.time_utils import Clock, now_ms

logger = get_logger(__name__)

Notifier = Callable[[str], None]


class SessionEngine:
    """
    One engine per app session. Nothing here is process-wide, so several
    engines (one per device, one per test) never share state.

    Usage:
        async with SessionEngine(kv, documents, identity, lifecycle) as engine:
            engine.current_flow()
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        documents: DocumentStore,
        identity_provider: Optional[IdentityProvider] = None,
        lifecycle: Optional[AppLifecycle] = None,
        clock: Clock = now_ms,
        notifier: Optional[Notifier] = None
    ):
        self.identity_provider = identity_provider or IdentityProvider()
        self.lifecycle = lifecycle or AppLifecycle()
        self.clock = clock
        self.notices: List[str] = []
        self._notifier = notifier or self.notices.append

        self.session = UserSession()
        self.mirror = PantryMirror()
        self.onboarding = OnboardingStateMachine(self.session, kv_store, documents)
        self.pantry = PantrySynchronizer(self.session, self.mirror, documents, clock=clock)
        self.hydrator = ProfileHydrator(self.session, self.onboarding, self.pantry, documents)
        self.tracker = SessionTracker(self.session, documents, initial_state=self.lifecycle.current)

        self._subscriptions: List[Subscription] = []
        self._tasks: Set[asyncio.Task] = set()
        self._hydrating_for: Optional[str] = None
        self.started = False
        self.closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> "SessionEngine":
        if self.started:
            return self
        try:
            await self.onboarding.hydrate()
        except DesireError as e:
            self._surface(e)

        self._subscriptions = [
            self.identity_provider.subscribe(self._on_identity),
            self.lifecycle.subscribe(self._on_app_state),
        ]
        self.started = True

        # The provider may have answered before we subscribed
        if self.identity_provider.resolved:
            self._on_identity(self.identity_provider.current)

        logger.info("Session engine started")
        return self

    async def close(self) -> None:
        """
        Releases subscriptions, cancels in-flight handlers and tears the
        session down. No handler runs against this engine afterwards.
        """
        if self.closed:
            return
        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions = []

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self._teardown()
        self.closed = True
        logger.info("Session engine closed")

    async def __aenter__(self) -> "SessionEngine":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def wait_idle(self) -> None:
        """Waits until every scheduled event handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _track(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_identity(self, identity_id: Optional[str]) -> asyncio.Task:
        # Mark loading before the handler gets scheduled
        self._hydrating_for = identity_id
        return self._track(self._handle_identity(identity_id))

    async def _handle_identity(self, identity_id: Optional[str]) -> None:
        with LogContext(identity_id=identity_id):
            try:
                if identity_id is None:
                    logger.info("Identity cleared, tearing session down")
                    await self._teardown()
                    return

                if self.session.identity_id and self.session.identity_id != identity_id:
                    logger.info("Identity switched, tearing previous session down")
                    await self._teardown(loading_for=identity_id)

                self.session.identity_id = identity_id
                await self.hydrator.hydrate(identity_id)
            except DesireError as e:
                self._surface(e, MSG_AUTH_STATE_FAILED)
            finally:
                if self._hydrating_for == identity_id:
                    self._hydrating_for = None

    def _on_app_state(self, state: AppState) -> Optional[asyncio.Task]:
        counted = self.tracker.on_app_state(state)
        if counted and self.session.identity_id:
            return self._track(self._mirror_counter())
        return None

    async def _mirror_counter(self) -> None:
        try:
            await self.tracker.mirror_counter()
        except DesireError as e:
            self._surface(e, MSG_PROFILE_UPDATE_FAILED)

    async def _teardown(self, loading_for: Optional[str] = None) -> None:
        """
        Resets the session. loading_for keeps the gate on LOADING while the
        next identity is waiting to be hydrated.
        """
        self.hydrator.invalidate()
        self._hydrating_for = loading_for
        self.session.reset()
        self.pantry.reset()
        self.tracker.reset()
        await self.onboarding.reset()

    def _surface(self, error: DesireError, message: Optional[str] = None) -> None:
        """Logs the failure and shows message (or the error's own) to the user."""
        logger.error(
            f"{type(error).__name__}: {error.message}",
            extra={"identity_id": self.session.identity_id}
        )
        self._notifier(message or error.message)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def identity_id(self) -> Optional[str]:
        return self.session.identity_id

    def current_flow(self) -> FlowSelection:
        resolved = self.identity_provider.resolved and self._hydrating_for is None
        return select_flow(
            identity_present=self.session.identity_id is not None,
            step=self.session.onboarding_step,
            resolved=resolved
        )

    def home_state(self, now: Optional[int] = None) -> Dict[str, Any]:
        now = self.clock() if now is None else now
        count = self.session.consecutive_inactive_opens
        return {
            "prompt_text": prompt_text(count),
            "show_alternate_prompt": show_alternate_prompt(count),
            "needs_pantry_update": needs_pantry_update(self.session.pantry_last_synced_at, now),
            "consecutive_inactive_opens": count,
        }

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _require_identity(self) -> str:
        if not self.session.identity_id:
            raise PreconditionError(MSG_IDENTITY_MISSING)
        return self.session.identity_id

    async def sign_out(self) -> None:
        """Returns every piece of session state to its initial value."""
        await self._teardown()

    async def submit_search(self, query: str) -> Optional[str]:
        """
        Records a search from the home prompt. Blank queries are ignored.

        Returns:
            The trimmed query, or None if nothing was searched
        """
        query = (query or "").strip()
        if not query:
            return None
        changed = self.tracker.reset_inactive_opens()
        self.tracker.mark_search_performed()
        if changed:
            await self._mirror_counter()
        return query

    async def select_archetype(self, key: str) -> Tuple[bool, List[str]]:
        """
        Picks an archetype preset.

        Returns:
            (accepted, suggested ingredients for the checklist)
        """
        self._require_identity()
        archetype = ARCHETYPES.get(key)
        if archetype is None:
            raise ResourceNotFoundError(f"Unknown archetype: {key}")
        accepted = await self.onboarding.advance(
            OnboardingStep.ARCHETYPE_SELECTED,
            archetype=archetype["title"]
        )
        return accepted, list(archetype["ingredients"])

    async def confirm_checklist(self, names: Iterable[str]) -> bool:
        """
        Saves the checklist selection as the whole pantry, then moves on to
        advanced setup. Nothing is written unless an archetype was chosen.
        """
        self._require_identity()
        if self.session.onboarding_step != OnboardingStep.ARCHETYPE_SELECTED:
            logger.warning(f"Checklist confirmed at step {self.session.onboarding_step.value}, ignored")
            return False
        await self.pantry.replace_all(names)
        return await self.onboarding.advance(OnboardingStep.PANTRY_COMPLETE)

    async def finish_onboarding(self, extra_names: Iterable[str] = ()) -> bool:
        """
        Adds the advanced-setup picks to the pantry, records completion
        remotely and locally, and clears the inactive-open streak.
        """
        self._require_identity()
        if self.session.onboarding_step != OnboardingStep.PANTRY_COMPLETE:
            logger.warning(f"Onboarding finish requested at step {self.session.onboarding_step.value}, ignored")
            return False

        extra_names = list(extra_names)
        if extra_names:
            await self.pantry.replace_all(list(self.mirror) + extra_names)

        accepted = await self.onboarding.advance(OnboardingStep.FINISHED)
        if accepted and self.tracker.reset_inactive_opens():
            await self._mirror_counter()
        return accepted
