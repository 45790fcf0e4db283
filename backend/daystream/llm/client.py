"""Generative provider clients for day generation.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic stub when no key is present for testing.
"""

import json
import logging
from typing import Protocol

from openai import AsyncOpenAI

from backend.daystream.config import get_settings

logger = logging.getLogger(__name__)

_STUB_PLACES = [
    ("Old Town Walking Tour", "activity", 0, "2 hours"),
    ("Central Market Lunch", "meal", 18, "1 hour"),
    ("City History Museum", "activity", 15, "2 hours"),
    ("Riverside Dinner", "meal", 35, "1.5 hours"),
    ("Botanical Garden", "activity", 8, "1.5 hours"),
    ("Street Food Alley", "meal", 12, "1 hour"),
    ("Cathedral Visit", "activity", 10, "1 hour"),
    ("Rooftop Bar", "meal", 25, "1.5 hours"),
]

_STUB_TIMES = ["09:00", "12:30", "15:00", "19:00"]


class DayProvider(Protocol):
    """Protocol for generative provider implementations."""

    async def complete_json(self, *, system: str, prompt: str, temperature: float) -> str:
        """Return the provider's raw reply, expected to be a JSON object.

        Args:
            system: System prompt
            prompt: User prompt
            temperature: Sampling temperature

        Returns:
            Raw reply text (untrusted)
        """
        ...


class DeterministicStubProvider:
    """Deterministic stub provider (no API key required).

    Produces a plausible day per call, keyed by the "Day N" number found in
    the prompt, so repeated runs with the same inputs are identical.
    """

    def __init__(self, activities_per_day: int = 3, cost_multiplier: float = 1.0):
        self.activities_per_day = activities_per_day
        self.cost_multiplier = cost_multiplier

    async def complete_json(self, *, system: str, prompt: str, temperature: float) -> str:
        day_number = _day_number_from_prompt(prompt)
        offset = (day_number - 1) * self.activities_per_day

        activities = []
        for i in range(self.activities_per_day):
            name, kind, cost, duration = _STUB_PLACES[(offset + i) % len(_STUB_PLACES)]
            activities.append(
                {
                    "time": _STUB_TIMES[i % len(_STUB_TIMES)],
                    "name": f"{name} {day_number}",
                    "description": f"{name} (stub)",
                    "type": kind,
                    "estimated_cost": round(cost * self.cost_multiplier, 2),
                    "duration": duration,
                    "location": name,
                    "transport_mode": "walk",
                }
            )

        return json.dumps(
            {
                "day": day_number,
                "title": f"Day {day_number} Highlights",
                "activities": activities,
                "local_food": [],
            }
        )


def _day_number_from_prompt(prompt: str) -> int:
    for marker in ("Regenerate Day ", "Generate Day "):
        if marker in prompt:
            digits = ""
            for ch in prompt.split(marker, 1)[1]:
                if not ch.isdigit():
                    break
                digits += ch
            if digits:
                return int(digits)
    return 1


class OpenAIDayProvider:
    """OpenAI-backed provider using JSON response format."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        max_tokens: int = 1500,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            base_url: Optional OpenAI-compatible endpoint
            max_tokens: Reply token cap per day
        """
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.max_tokens = max_tokens

    async def complete_json(self, *, system: str, prompt: str, temperature: float) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or "{}"

    async def ping(self, timeout: float = 5.0) -> None:
        """Check the endpoint is reachable and the model exists."""
        await self.client.with_options(timeout=timeout).models.retrieve(self.model)


def get_day_provider() -> DayProvider:
    """Factory function to get appropriate provider based on config.

    Returns:
        OpenAIDayProvider if API key is configured, DeterministicStubProvider otherwise
    """
    settings = get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI provider for day generation")
        return OpenAIDayProvider(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            max_tokens=settings.provider_max_tokens,
        )

    logger.warning("No OpenAI API key configured, using deterministic stub provider")
    return DeterministicStubProvider()
