"""
desire/flow/states.py

Purpose: Defines all onboarding states

- Enum for each onboarding step
  (UNSTARTED, ARCHETYPE_SELECTED, PANTRY_COMPLETE, FINISHED)
- Single source of truth for onboarding progress
- State transition validation
- Metadata for each step (display name, resume screen)
"""

from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass


class OnboardingStep(str, Enum):
    """
    Defines the onboarding progress marker.
    Steps only move forward; a sign-out reset is the one way back.
    """

    UNSTARTED = "unstarted"
    ARCHETYPE_SELECTED = "archetype_selected"
    PANTRY_COMPLETE = "pantry_complete"
    FINISHED = "finished"


class OnboardingScreen(str, Enum):
    """Sub-steps of the onboarding flow."""

    WELCOME = "welcome"
    ARCHETYPE = "archetype"
    CHECKLIST = "checklist"
    ADVANCED_SETUP = "advanced_setup"


@dataclass
class StepMetadata:
    """
    Metadata associated with each onboarding step.
    """
    name: OnboardingStep
    display_name: str
    step_number: Optional[int] = None  # For progress tracking
    total_steps: int = 3
    resume_screen: OnboardingScreen = OnboardingScreen.WELCOME
    description: str = ""


STEP_METADATA: Dict[OnboardingStep, StepMetadata] = {
    OnboardingStep.UNSTARTED: StepMetadata(
        name=OnboardingStep.UNSTARTED,
        display_name="Welcome",
        step_number=0,
        resume_screen=OnboardingScreen.WELCOME,
        description="Nothing chosen yet"
    ),
    OnboardingStep.ARCHETYPE_SELECTED: StepMetadata(
        name=OnboardingStep.ARCHETYPE_SELECTED,
        display_name="Review pantry",
        step_number=1,
        resume_screen=OnboardingScreen.CHECKLIST,
        description="Archetype picked, suggested items not yet confirmed"
    ),
    OnboardingStep.PANTRY_COMPLETE: StepMetadata(
        name=OnboardingStep.PANTRY_COMPLETE,
        display_name="Build your pantry",
        step_number=2,
        resume_screen=OnboardingScreen.ADVANCED_SETUP,
        description="Pantry saved, advanced setup pending"
    ),
    OnboardingStep.FINISHED: StepMetadata(
        name=OnboardingStep.FINISHED,
        display_name="Done",
        step_number=3,
        description="Onboarding complete"
    ),
}


# Valid forward transitions - no skipping, no going back
STEP_TRANSITIONS: Dict[OnboardingStep, List[OnboardingStep]] = {
    OnboardingStep.UNSTARTED: [OnboardingStep.ARCHETYPE_SELECTED],
    OnboardingStep.ARCHETYPE_SELECTED: [OnboardingStep.PANTRY_COMPLETE],
    OnboardingStep.PANTRY_COMPLETE: [OnboardingStep.FINISHED],
    OnboardingStep.FINISHED: [],
}


# Values written by the older single-flag representation
LEGACY_FLAG_VALUES: Dict[str, OnboardingStep] = {
    "true": OnboardingStep.FINISHED,
    "false": OnboardingStep.UNSTARTED,
}


def is_valid_transition(from_step: OnboardingStep, to_step: OnboardingStep) -> bool:
    """
    Checks if a step transition is valid.

    Args:
        from_step: Current step
        to_step: Target step

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = STEP_TRANSITIONS.get(from_step, [])
    return to_step in allowed_transitions


def parse_step(raw: Optional[str]) -> OnboardingStep:
    """
    Reads a persisted progress marker. Unknown or missing values mean
    the user has not started.
    """
    if raw is None:
        return OnboardingStep.UNSTARTED
    if raw in LEGACY_FLAG_VALUES:
        return LEGACY_FLAG_VALUES[raw]
    try:
        return OnboardingStep(raw)
    except ValueError:
        return OnboardingStep.UNSTARTED


def get_step_metadata(step: OnboardingStep) -> StepMetadata:
    """
    Retrieves metadata for a given step.

    Args:
        step: Onboarding step

    Returns:
        StepMetadata for the step
    """
    return STEP_METADATA.get(step, StepMetadata(
        name=step,
        display_name=step.value,
        description="Unknown step"
    ))


def get_progress_message(step: OnboardingStep) -> str:
    """
    Generates a progress message for the current step.

    Args:
        step: Current onboarding step

    Returns:
        Progress message (e.g., "Step 1 of 3")
    """
    metadata = get_step_metadata(step)
    if metadata.step_number and metadata.step_number > 0:
        return f"Step {metadata.step_number} of {metadata.total_steps}"
    return ""
