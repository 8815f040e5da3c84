import asyncio

import pytest

from conftest import NOW
from desire.core.exceptions import PreconditionError, ResourceNotFoundError
from desire.flow.engine import SessionEngine
from desire.flow.events import AppState
from desire.flow.navigation import Flow, FlowSelection
from desire.flow.states import OnboardingStep
from desire.utils.constants import (
    MSG_AUTH_STATE_FAILED,
    MSG_PROFILE_UPDATE_FAILED,
    PROMPT_ALTERNATE,
    PROMPT_DEFAULT,
)


async def sign_in(identity, identity_id="user-1"):
    await asyncio.gather(*identity.emit(identity_id))


async def foreground_cycle(lifecycle):
    lifecycle.emit(AppState.BACKGROUND)
    await asyncio.gather(*lifecycle.emit(AppState.ACTIVE))


@pytest.mark.asyncio
async def test_loading_until_identity_resolves(engine):
    assert engine.current_flow().flow == Flow.LOADING


@pytest.mark.asyncio
async def test_signed_out_goes_to_auth(engine, identity):
    await sign_in(identity, None)

    assert engine.current_flow() == FlowSelection(Flow.AUTH, "login")


@pytest.mark.asyncio
async def test_new_user_starts_onboarding(engine, identity):
    await sign_in(identity)

    assert engine.identity_id == "user-1"
    assert engine.current_flow() == FlowSelection(Flow.ONBOARDING, "welcome")


@pytest.mark.asyncio
async def test_onboarded_user_goes_home(engine, identity, documents):
    documents.profiles["user-1"] = {"onboardingComplete": True, "onboardingArchetype": "The Baker"}

    await sign_in(identity)

    assert engine.current_flow() == FlowSelection(Flow.MAIN, "home")


@pytest.mark.asyncio
async def test_loading_while_hydration_in_flight(engine, identity, documents):
    gate = asyncio.Event()
    documents.gates["get_profile"] = gate

    tasks = identity.emit("user-1")
    await asyncio.sleep(0)
    assert engine.current_flow().flow == Flow.LOADING

    gate.set()
    await asyncio.gather(*tasks)
    assert engine.current_flow().flow == Flow.ONBOARDING


@pytest.mark.asyncio
async def test_provider_resolved_before_start(kv, documents, identity, lifecycle, clock):
    identity.emit("user-1")

    async with SessionEngine(kv, documents, identity, lifecycle, clock=clock) as engine:
        await engine.wait_idle()
        assert engine.identity_id == "user-1"
        assert engine.current_flow().flow == Flow.ONBOARDING


@pytest.mark.asyncio
async def test_sign_out_resets_everything(engine, identity, documents, kv):
    documents.profiles["user-1"] = {
        "onboardingComplete": True,
        "onboardingArchetype": "The Foundation",
        "pantryLastUpdated": NOW,
        "consecutiveInactiveOpens": 4,
    }
    documents.pantry["user-1"] = {"salt", "eggs"}
    await sign_in(identity)
    assert len(engine.mirror) == 2

    await sign_in(identity, None)

    assert engine.identity_id is None
    assert engine.session.onboarding_step == OnboardingStep.UNSTARTED
    assert engine.session.onboarding_archetype is None
    assert engine.session.pantry_last_synced_at is None
    assert engine.session.consecutive_inactive_opens == 0
    assert len(engine.mirror) == 0
    assert kv.data["onboardingStep"] == "unstarted"
    assert engine.current_flow() == FlowSelection(Flow.AUTH, "login")
    # Remote state is left alone
    assert documents.pantry["user-1"] == {"salt", "eggs"}


@pytest.mark.asyncio
async def test_hydration_finishing_after_sign_out_is_ignored(engine, identity, documents):
    documents.profiles["user-1"] = {"onboardingComplete": True}
    documents.pantry["user-1"] = {"rice"}
    gate = asyncio.Event()
    documents.gates["get_profile"] = gate

    identity.emit("user-1")
    await asyncio.sleep(0)
    await asyncio.gather(*identity.emit(None))

    gate.set()
    await engine.wait_idle()

    assert engine.identity_id is None
    assert engine.session.onboarding_step == OnboardingStep.UNSTARTED
    assert len(engine.mirror) == 0
    assert engine.current_flow().flow == Flow.AUTH


@pytest.mark.asyncio
async def test_identity_switch_rehydrates(engine, identity, documents):
    documents.pantry["user-1"] = {"rice"}
    documents.profiles["user-2"] = {"onboardingComplete": True}
    documents.pantry["user-2"] = {"kale"}
    await sign_in(identity, "user-1")

    await sign_in(identity, "user-2")

    assert engine.identity_id == "user-2"
    assert list(engine.mirror) == ["kale"]
    assert engine.current_flow().flow == Flow.MAIN


@pytest.mark.asyncio
async def test_hydration_failure_is_surfaced(engine, identity, documents):
    documents.fail.add("get_profile")

    await sign_in(identity)

    assert engine.notices == [MSG_AUTH_STATE_FAILED]


@pytest.mark.asyncio
async def test_close_releases_subscriptions(kv, documents, identity, lifecycle, clock):
    engine = SessionEngine(kv, documents, identity, lifecycle, clock=clock)
    await engine.start()
    assert identity.subscriber_count == 1
    assert lifecycle.subscriber_count == 1

    await engine.close()

    assert identity.subscriber_count == 0
    assert lifecycle.subscriber_count == 0
    assert identity.emit("user-1") == []
    assert engine.identity_id is None


@pytest.mark.asyncio
async def test_close_cancels_pending_hydration(kv, documents, identity, lifecycle, clock):
    documents.gates["get_profile"] = asyncio.Event()
    engine = SessionEngine(kv, documents, identity, lifecycle, clock=clock)
    await engine.start()
    identity.emit("user-1")
    await asyncio.sleep(0)

    await engine.close()

    assert engine.closed
    assert engine.identity_id is None


@pytest.mark.asyncio
async def test_full_onboarding(engine, identity, documents):
    await sign_in(identity)

    accepted, ingredients = await engine.select_archetype("baker")
    assert accepted is True
    assert "yeast" in ingredients
    assert engine.current_flow() == FlowSelection(Flow.ONBOARDING, "checklist")

    assert await engine.confirm_checklist(["Flour", "Sugar", "Yeast"]) is True
    assert engine.current_flow() == FlowSelection(Flow.ONBOARDING, "advanced_setup")
    assert documents.pantry["user-1"] == {"flour", "sugar", "yeast"}

    assert await engine.finish_onboarding(["Vanilla"]) is True
    assert engine.current_flow() == FlowSelection(Flow.MAIN, "home")
    assert list(engine.mirror) == ["flour", "sugar", "vanilla", "yeast"]
    assert documents.profiles["user-1"]["onboardingComplete"] is True
    assert documents.profiles["user-1"]["onboardingArchetype"] == "The Baker"


@pytest.mark.asyncio
async def test_checklist_before_archetype_is_ignored(engine, identity, documents):
    await sign_in(identity)

    assert await engine.confirm_checklist(["rice"]) is False
    assert "user-1" not in documents.pantry


@pytest.mark.asyncio
async def test_finish_before_pantry_is_ignored(engine, identity):
    await sign_in(identity)
    await engine.select_archetype("ascetic")

    assert await engine.finish_onboarding() is False
    assert engine.session.onboarding_step == OnboardingStep.ARCHETYPE_SELECTED


@pytest.mark.asyncio
async def test_unknown_archetype(engine, identity):
    await sign_in(identity)

    with pytest.raises(ResourceNotFoundError):
        await engine.select_archetype("carnivore")


@pytest.mark.asyncio
async def test_onboarding_requires_identity(engine, identity):
    await sign_in(identity, None)

    with pytest.raises(PreconditionError):
        await engine.select_archetype("baker")


@pytest.mark.asyncio
async def test_idle_opens_switch_prompt_until_search(engine, identity, lifecycle, documents):
    documents.profiles["user-1"] = {"onboardingComplete": True}
    await sign_in(identity)

    for _ in range(3):
        await foreground_cycle(lifecycle)

    home = engine.home_state()
    assert home["show_alternate_prompt"] is True
    assert home["prompt_text"] == PROMPT_ALTERNATE
    assert documents.profiles["user-1"]["consecutiveInactiveOpens"] == 3

    assert await engine.submit_search("  pasta ") == "pasta"

    home = engine.home_state()
    assert home["prompt_text"] == PROMPT_DEFAULT
    assert home["consecutive_inactive_opens"] == 0
    assert documents.profiles["user-1"]["consecutiveInactiveOpens"] == 0

    # The search belongs to this session, so the next foreground does not count
    await foreground_cycle(lifecycle)
    assert engine.session.consecutive_inactive_opens == 0


@pytest.mark.asyncio
async def test_blank_search_is_ignored(engine, identity):
    await sign_in(identity)

    assert await engine.submit_search("   ") is None
    assert engine.tracker.search_performed is False


@pytest.mark.asyncio
async def test_pantry_update_hint(engine, identity):
    await sign_in(identity)
    assert engine.home_state(now=NOW)["needs_pantry_update"] is True

    await engine.pantry.add_item("rice")

    assert engine.home_state(now=NOW)["needs_pantry_update"] is False


@pytest.mark.asyncio
async def test_late_flag_write_does_not_survive_sign_out(engine, identity, kv):
    kv.data["onboardingStep"] = "pantry_complete"
    gate = kv.gate = asyncio.Event()

    identity.emit("user-1")
    # Hydration is now blocked writing pantry_complete back to the flag
    await kv.held.wait()
    identity.emit(None)
    await asyncio.sleep(0)

    gate.set()
    await engine.wait_idle()
    assert kv.data["onboardingStep"] == "unstarted"

    await sign_in(identity, "user-2")
    assert engine.session.onboarding_step == OnboardingStep.UNSTARTED
    assert engine.current_flow() == FlowSelection(Flow.ONBOARDING, "welcome")


@pytest.mark.asyncio
async def test_account_switch_stays_loading_during_teardown(engine, identity, kv, documents):
    documents.profiles["user-2"] = {"onboardingComplete": True}
    await sign_in(identity, "user-1")
    kv.held.clear()
    gate = kv.gate = asyncio.Event()

    tasks = identity.emit("user-2")
    # The teardown is blocked clearing the flag of user-1
    await kv.held.wait()
    assert engine.identity_id is None
    assert engine.current_flow().flow == Flow.LOADING

    gate.set()
    await asyncio.gather(*tasks)
    assert engine.current_flow() == FlowSelection(Flow.MAIN, "home")


@pytest.mark.asyncio
async def test_counter_mirror_failure_is_surfaced(engine, identity, lifecycle, documents):
    await sign_in(identity)
    documents.fail.add("update_profile")

    await foreground_cycle(lifecycle)

    assert engine.session.consecutive_inactive_opens == 1
    assert engine.notices == [MSG_PROFILE_UPDATE_FAILED]
