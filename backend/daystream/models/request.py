"""Request models - one generation run's immutable input."""

from datetime import date
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GroupProfile(BaseModel):
    """Travel group composition used by the logistics checks."""

    model_config = ConfigDict(frozen=True)

    has_toddler: bool = False
    has_elderly: bool = False
    has_mobility_issues: bool = False
    group_size: Annotated[int, Field(ge=1)] = 2


class GenerationRequest(BaseModel):
    """User input for a single streaming generation run."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    destination: str = Field(..., min_length=1)
    start_date: date
    num_days: Annotated[int, Field(ge=1)]
    travel_style: str = "standard"
    budget: Annotated[float, Field(ge=0)]
    currency: str = "USD"
    group_size: Annotated[int, Field(ge=1)] = 2
    passport: str | None = None
    origin: str | None = None
    group_profile: GroupProfile | None = None

    enable_validation: bool = True
    enable_cost_verification: bool = True
    enable_places_enrichment: bool = True

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Upper-case ISO currency code."""
        return v.strip().upper() or "USD"

    def effective_group_profile(self) -> GroupProfile:
        """Return the supplied profile or a default one sized from group_size."""
        if self.group_profile is not None:
            return self.group_profile
        return GroupProfile(group_size=self.group_size)

    @property
    def daily_budget(self) -> float:
        """Naive per-day target cost shown to the provider."""
        return self.budget / self.num_days
