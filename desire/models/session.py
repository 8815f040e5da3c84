"""
desire/models/session.py

Purpose: In-memory session state

- UserSession: identity, onboarding progress, engagement counters
- PantryMirror: local copy of the remote pantry keys
- Both reset to initial values on sign-out
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Set

from desire.flow.states import OnboardingStep


@dataclass
class UserSession:
    identity_id: Optional[str] = None
    onboarding_step: OnboardingStep = OnboardingStep.UNSTARTED
    onboarding_archetype: Optional[str] = None
    pantry_last_synced_at: Optional[int] = None  # epoch ms
    consecutive_inactive_opens: int = 0

    def reset(self) -> None:
        self.identity_id = None
        self.onboarding_step = OnboardingStep.UNSTARTED
        self.onboarding_archetype = None
        self.pantry_last_synced_at = None
        self.consecutive_inactive_opens = 0


@dataclass
class PantryMirror:
    """Normalized item names known to exist remotely."""

    _items: Set[str] = field(default_factory=set)

    def __contains__(self, name: str) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(sorted(self._items))

    @property
    def items(self) -> FrozenSet[str]:
        return frozenset(self._items)

    def add(self, name: str) -> None:
        self._items.add(name)

    def discard(self, name: str) -> None:
        self._items.discard(name)

    def replace(self, names: Iterable[str]) -> None:
        # Build first, then swap, so readers never see a half-filled set
        self._items = set(names)

    def clear(self) -> None:
        self._items = set()
