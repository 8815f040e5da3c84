"""
desire/flow/navigation.py

Purpose: Navigation gate

- Selects the active flow from identity presence and onboarding step
- Picks the onboarding sub-step to resume at
- Pure: no state, no I/O
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from desire.flow.states import OnboardingStep, get_step_metadata


class Flow(str, Enum):
    LOADING = "loading"
    AUTH = "auth"
    ONBOARDING = "onboarding"
    MAIN = "main"


@dataclass(frozen=True)
class FlowSelection:
    flow: Flow
    entry: Optional[str] = None


LOADING = FlowSelection(Flow.LOADING)


def select_flow(
    identity_present: bool,
    step: OnboardingStep,
    resolved: bool = True
) -> FlowSelection:
    """
    Maps (identity present?, onboarding step) to the flow to present.

    Args:
        identity_present: Whether a signed-in identity exists
        step: Current onboarding step
        resolved: False while the identity provider has not answered yet

    Returns:
        FlowSelection with the flow and the screen it opens on
    """
    if not resolved:
        return LOADING

    if not identity_present:
        return FlowSelection(Flow.AUTH, "login")

    if step != OnboardingStep.FINISHED:
        return FlowSelection(Flow.ONBOARDING, get_step_metadata(step).resume_screen.value)

    return FlowSelection(Flow.MAIN, "home")
