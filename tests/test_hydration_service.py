import asyncio

import pytest

from desire.core.exceptions import RemoteStoreError
from desire.flow.states import OnboardingStep


@pytest.mark.asyncio
async def test_onboarded_profile_seeds_finished(hydrator, documents, session, mirror, kv):
    documents.profiles["user-1"] = {
        "onboardingArchetype": "The Baker",
        "onboardingComplete": True,
        "pantryLastUpdated": 1_699_000_000_000,
        "consecutiveInactiveOpens": 2,
    }
    documents.pantry["user-1"] = {"flour", "yeast"}

    assert await hydrator.hydrate("user-1") is True

    assert session.onboarding_step == OnboardingStep.FINISHED
    assert session.onboarding_archetype == "The Baker"
    assert session.pantry_last_synced_at == 1_699_000_000_000
    assert session.consecutive_inactive_opens == 2
    assert list(mirror) == ["flour", "yeast"]
    assert kv.data["onboardingStep"] == "finished"


@pytest.mark.asyncio
async def test_legacy_profile_with_archetype_counts_as_onboarded(hydrator, documents, session):
    documents.profiles["user-1"] = {"onboardingArchetype": "The Ascetic"}

    await hydrator.hydrate("user-1")

    assert session.onboarding_step == OnboardingStep.FINISHED


@pytest.mark.asyncio
async def test_missing_profile_keeps_local_partial_progress(hydrator, kv, session, mirror):
    kv.data["onboardingStep"] = "pantry_complete"

    assert await hydrator.hydrate("user-1") is True

    assert session.onboarding_step == OnboardingStep.PANTRY_COMPLETE
    assert session.pantry_last_synced_at is None
    assert session.consecutive_inactive_opens == 0
    assert len(mirror) == 0


@pytest.mark.asyncio
async def test_local_finished_without_remote_marker_restarts(hydrator, kv, session):
    # Another account finished on this device; this one has no profile
    kv.data["onboardingStep"] = "finished"

    await hydrator.hydrate("user-1")

    assert session.onboarding_step == OnboardingStep.UNSTARTED
    assert kv.data["onboardingStep"] == "unstarted"


@pytest.mark.asyncio
async def test_malformed_profile_is_remote_error(hydrator, documents, session):
    documents.profiles["user-1"] = {"consecutiveInactiveOpens": "lots"}

    with pytest.raises(RemoteStoreError):
        await hydrator.hydrate("user-1")

    assert session.onboarding_step == OnboardingStep.UNSTARTED


@pytest.mark.asyncio
async def test_fetch_failure_propagates(hydrator, documents):
    documents.fail.add("list_pantry")

    with pytest.raises(RemoteStoreError):
        await hydrator.hydrate("user-1")


@pytest.mark.asyncio
async def test_invalidated_hydration_is_discarded(hydrator, documents, session, mirror):
    documents.profiles["user-1"] = {"onboardingComplete": True}
    documents.pantry["user-1"] = {"rice"}
    gate = asyncio.Event()
    documents.gates["get_profile"] = gate

    pending = asyncio.ensure_future(hydrator.hydrate("user-1"))
    await asyncio.sleep(0)

    hydrator.invalidate()
    session.reset()
    gate.set()

    assert await pending is False
    assert session.onboarding_step == OnboardingStep.UNSTARTED
    assert len(mirror) == 0


@pytest.mark.asyncio
async def test_unreadable_pantry_name_applies_nothing(hydrator, documents, kv, session, mirror):
    kv.data["onboardingStep"] = "archetype_selected"
    documents.pantry["user-1"] = {"rice", "<>"}

    with pytest.raises(RemoteStoreError):
        await hydrator.hydrate("user-1")

    assert session.onboarding_step == OnboardingStep.UNSTARTED
    assert kv.writes == []
    assert len(mirror) == 0
