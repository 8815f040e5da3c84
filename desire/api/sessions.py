"""
desire/api/sessions.py

Purpose: HTTP surface of the session engine

- Opens and closes one engine per device
- Forwards identity and app-lifecycle events
- Exposes the selected flow, home prompt state and pantry
- Onboarding, pantry and search actions
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends

from desire.api.deps import SessionRegistry, get_registry
from desire.core.logging import get_logger
from desire.flow.engine import SessionEngine
from desire.flow.states import get_progress_message
from desire.schemas.session import (
    AppStateEvent,
    ArchetypeInfo,
    ArchetypeResult,
    ArchetypeSelection,
    CategoryItems,
    HomeState,
    IdentityEvent,
    IngredientList,
    ItemList,
    ItemName,
    PantryComparison,
    SearchRequest,
    SearchResult,
    SessionView,
    StepResult,
)
from desire.utils.constants import ARCHETYPES, CATEGORY_ITEMS

logger = get_logger(__name__)
router = APIRouter()


def build_view(device_id: str, engine: SessionEngine) -> SessionView:
    """Snapshots the engine and drains its pending notices."""
    selection = engine.current_flow()
    notices = list(engine.notices)
    engine.notices.clear()
    return SessionView(
        device_id=device_id,
        flow=selection.flow,
        entry=selection.entry,
        identity_id=engine.session.identity_id,
        onboarding_step=engine.session.onboarding_step,
        onboarding_archetype=engine.session.onboarding_archetype,
        progress=get_progress_message(engine.session.onboarding_step),
        pantry=list(engine.mirror),
        pantry_last_synced_at=engine.session.pantry_last_synced_at,
        home=HomeState(**engine.home_state()),
        notices=notices,
    )


# ==============================================
# Session lifecycle
# ==============================================

@router.post("/devices/{device_id}/session", response_model=SessionView)
async def open_session(device_id: str, registry: SessionRegistry = Depends(get_registry)):
    engine = await registry.open(device_id)
    return build_view(device_id, engine)


@router.get("/devices/{device_id}/session", response_model=SessionView)
async def get_session(device_id: str, registry: SessionRegistry = Depends(get_registry)):
    return build_view(device_id, registry.get(device_id))


@router.delete("/devices/{device_id}/session")
async def close_session(device_id: str, registry: SessionRegistry = Depends(get_registry)):
    await registry.close(device_id)
    return {"status": "closed", "device_id": device_id}


# ==============================================
# Events
# ==============================================

@router.post("/devices/{device_id}/identity", response_model=SessionView)
async def identity_changed(
    device_id: str,
    event: IdentityEvent,
    registry: SessionRegistry = Depends(get_registry)
):
    """
    Forwards a sign-in (identity id) or sign-out (null) and waits for the
    resulting hydration or teardown before answering.
    """
    engine = registry.get(device_id)
    tasks = engine.identity_provider.emit(event.identity_id)
    await asyncio.gather(*tasks)
    return build_view(device_id, engine)


@router.post("/devices/{device_id}/app-state", response_model=SessionView)
async def app_state_changed(
    device_id: str,
    event: AppStateEvent,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    tasks = engine.lifecycle.emit(event.state)
    await asyncio.gather(*tasks)
    return build_view(device_id, engine)


# ==============================================
# Onboarding
# ==============================================

@router.get("/archetypes", response_model=List[ArchetypeInfo])
async def list_archetypes():
    return [ArchetypeInfo(key=key, **preset) for key, preset in ARCHETYPES.items()]


@router.get("/categories", response_model=CategoryItems)
async def list_categories(q: Optional[str] = None):
    """Ingredient categories for advanced setup, with optional substring search."""
    matches = []
    if q:
        needle = q.casefold()
        matches = [
            item
            for items in CATEGORY_ITEMS.values()
            for item in items
            if needle in item.casefold()
        ]
    return CategoryItems(categories=CATEGORY_ITEMS, matches=matches)


@router.post("/devices/{device_id}/onboarding/archetype", response_model=ArchetypeResult)
async def choose_archetype(
    device_id: str,
    selection: ArchetypeSelection,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    accepted, ingredients = await engine.select_archetype(selection.key)
    return ArchetypeResult(accepted=accepted, ingredients=ingredients)


@router.post("/devices/{device_id}/onboarding/checklist", response_model=StepResult)
async def confirm_checklist(
    device_id: str,
    selection: ItemList,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    accepted = await engine.confirm_checklist(selection.items)
    return StepResult(accepted=accepted, session=build_view(device_id, engine))


@router.post("/devices/{device_id}/onboarding/finish", response_model=StepResult)
async def finish_onboarding(
    device_id: str,
    selection: ItemList,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    accepted = await engine.finish_onboarding(selection.items)
    return StepResult(accepted=accepted, session=build_view(device_id, engine))


# ==============================================
# Pantry
# ==============================================

@router.post("/devices/{device_id}/pantry/items", response_model=SessionView)
async def add_pantry_item(
    device_id: str,
    item: ItemName,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    await engine.pantry.add_item(item.name)
    return build_view(device_id, engine)


@router.delete("/devices/{device_id}/pantry/items/{name}", response_model=SessionView)
async def remove_pantry_item(
    device_id: str,
    name: str,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    await engine.pantry.remove_item(name)
    return build_view(device_id, engine)


@router.post("/devices/{device_id}/pantry/compare", response_model=PantryComparison)
async def compare_with_pantry(
    device_id: str,
    recipe: IngredientList,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    return PantryComparison(**engine.pantry.compare(recipe.ingredients))


# ==============================================
# Search
# ==============================================

@router.post("/devices/{device_id}/search", response_model=SearchResult)
async def search(
    device_id: str,
    request: SearchRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    engine = registry.get(device_id)
    query = await engine.submit_search(request.query)
    return SearchResult(query=query, home=HomeState(**engine.home_state()))
