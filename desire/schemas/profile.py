from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class RemoteProfile(BaseModel):
    """
    Per-identity profile document as stored remotely.
    Field names follow the stored camelCase keys.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    onboarding_archetype: Optional[str] = Field(default=None, alias="onboardingArchetype")
    onboarding_complete: bool = Field(default=False, alias="onboardingComplete")
    pantry_last_updated: Optional[int] = Field(default=None, alias="pantryLastUpdated")
    consecutive_inactive_opens: int = Field(default=0, ge=0, alias="consecutiveInactiveOpens")

    @property
    def is_onboarded(self) -> bool:
        # Older documents only carry the archetype, written on completion
        return self.onboarding_complete or bool(self.onboarding_archetype)
