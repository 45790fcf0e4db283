"""FastAPI application."""

from fastapi import FastAPI

from backend.daystream.api.routes.health import router as health_router
from backend.daystream.api.routes.itineraries import router as itineraries_router
from backend.daystream.api.routes.metrics import router as metrics_router

app = FastAPI(title="Daystream Itinerary API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(itineraries_router, tags=["itineraries"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Daystream Itinerary API", "version": "0.1.0"}
