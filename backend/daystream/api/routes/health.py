"""Health check endpoints.

- /health: liveness, always ok while the process runs
- /healthz: component status (provider, trip store) with 503 when the
  configured OpenAI provider cannot reach its model
"""

import json
from typing import Any

from fastapi import APIRouter, Response

from backend.daystream.config import Settings, get_settings
from backend.daystream.db.inmemory import get_trip_store
from backend.daystream.llm.client import OpenAIDayProvider

router = APIRouter()


async def check_provider(settings: Settings) -> tuple[bool, str]:
    """Check the generative provider runs will use.

    The stub needs no check; an OpenAI provider must reach its model.

    Returns:
        (is_ok, status_message)
    """
    key = settings.openai_api_key
    if not key or not key.get_secret_value():
        return (True, "stub")

    try:
        provider = OpenAIDayProvider(
            api_key=key.get_secret_value(),
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )
        await provider.ping()
        return (True, f"openai:{settings.openai_model}")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_store() -> tuple[bool, str]:
    """Report the trip store in use (in-process, always available)."""
    store = get_trip_store()
    return (True, f"in_memory:{store.trip_count()} trips")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | Response:
    """Component health.

    Returns:
        200 with component status if everything is ok
        503 if a component fails
    """
    settings = get_settings()

    provider_ok, provider_status = await check_provider(settings)
    store_ok, store_status = await check_store()

    core_ok = provider_ok and store_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "provider": provider_status,
            "store": store_status,
            "streaming": "enabled" if settings.streaming_enabled else "disabled",
        },
    }

    if not core_ok:
        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
