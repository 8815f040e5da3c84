"""
desire/schemas/session.py

Purpose: Request and response models for the session API
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from desire.flow.events import AppState
from desire.flow.navigation import Flow
from desire.flow.states import OnboardingStep


class IdentityEvent(BaseModel):
    identity_id: Optional[str] = Field(default=None, description="Signed-in identity, null on sign-out")


class AppStateEvent(BaseModel):
    state: AppState


class ArchetypeSelection(BaseModel):
    key: str


class ItemList(BaseModel):
    items: List[str] = Field(default_factory=list)


class ItemName(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class IngredientList(BaseModel):
    ingredients: List[str]


class SearchRequest(BaseModel):
    query: str


class HomeState(BaseModel):
    prompt_text: str
    show_alternate_prompt: bool
    needs_pantry_update: bool
    consecutive_inactive_opens: int


class SessionView(BaseModel):
    """Snapshot of one device session."""
    device_id: str
    flow: Flow
    entry: Optional[str] = None
    identity_id: Optional[str] = None
    onboarding_step: OnboardingStep
    onboarding_archetype: Optional[str] = None
    progress: str = ""
    pantry: List[str]
    pantry_last_synced_at: Optional[int] = None
    home: HomeState
    notices: List[str] = Field(default_factory=list)


class ArchetypeResult(BaseModel):
    accepted: bool
    ingredients: List[str]


class StepResult(BaseModel):
    accepted: bool
    session: SessionView


class PantryComparison(BaseModel):
    have: List[str]
    need: List[str]


class SearchResult(BaseModel):
    query: Optional[str]
    home: HomeState


class ArchetypeInfo(BaseModel):
    key: str
    title: str
    description: str
    ingredients: List[str]


class CategoryItems(BaseModel):
    categories: Dict[str, List[str]]
    matches: List[str] = Field(default_factory=list)
