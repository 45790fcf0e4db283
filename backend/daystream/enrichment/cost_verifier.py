"""Cost verification - confidence-scored price metadata for activities.

The price source itself is a collaborator behind the CostVerifier protocol.
Confidence thresholds are hand-tuned and kept as overridable configuration.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from backend.daystream.config import Settings
from backend.daystream.models.common import ActivityCategory
from backend.daystream.models.itinerary import Activity, Confidence, CostVerification, Day
from backend.daystream.orchestration.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

LOOKUP_BATCH_SIZE = 3


@dataclass(frozen=True)
class PriceQuote:
    """A price found by a verifier, with where it came from."""

    price: float
    source_name: str
    source_url: str | None = None
    last_verified: datetime | None = None


class CostVerifier(Protocol):
    """Protocol for price knowledge sources."""

    async def is_available(self) -> bool:
        """Whether the source has any pricing data at all."""
        ...

    async def lookup_price(self, activity: Activity, destination: str) -> PriceQuote | None:
        """Find a price for an activity, or None if nothing matched."""
        ...


@dataclass(frozen=True)
class CostConfidenceConfig:
    """Named thresholds for cost confidence (pending domain review)."""

    high_variance_pct: float = 20.0
    medium_variance_pct: float = 40.0
    fresh_days: int = 180
    recent_days: int = 365
    trusted_source_markers: tuple[str, ...] = (
        "gov",
        "official",
        "tripadvisor",
        "viator",
        "getyourguide",
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CostConfidenceConfig":
        return cls(
            high_variance_pct=settings.cost_high_variance_pct,
            medium_variance_pct=settings.cost_medium_variance_pct,
            fresh_days=settings.cost_fresh_days,
            recent_days=settings.cost_recent_days,
        )


@dataclass
class CostVerificationStats:
    verified: int = 0
    unverified: int = 0
    skipped: int = 0
    duration_ms: int = 0
    confidence: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "verified": self.verified,
            "unverified": self.unverified,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "confidence": dict(self.confidence),
        }


def determine_confidence(
    source_name: str,
    price_variance_pct: float,
    last_verified: datetime | None,
    config: CostConfidenceConfig | None = None,
    now: datetime | None = None,
) -> Confidence:
    """Score how far a verified price can be trusted.

    Args:
        source_name: Name of the price source
        price_variance_pct: (verified - estimate) / estimate * 100
        last_verified: When the source was last checked
        config: Threshold overrides
        now: Reference time (defaults to current UTC time)

    Returns:
        "high" for a trusted, fresh, accurate source; "medium" for a
        reasonable price from a trusted-and-recent or fresh source; "low" otherwise
    """
    cfg = config or CostConfidenceConfig()
    current = now or datetime.now(UTC)

    lower = source_name.lower()
    trusted = any(marker in lower for marker in cfg.trusted_source_markers)

    if last_verified is not None and last_verified.tzinfo is None:
        last_verified = last_verified.replace(tzinfo=UTC)
    age = current - last_verified if last_verified else None
    fresh = age is not None and age <= timedelta(days=cfg.fresh_days)
    recent = age is not None and age <= timedelta(days=cfg.recent_days)

    accurate = abs(price_variance_pct) <= cfg.high_variance_pct
    reasonable = abs(price_variance_pct) <= cfg.medium_variance_pct

    if trusted and fresh and accurate:
        return "high"
    if ((trusted and recent) or fresh) and reasonable:
        return "medium"
    return "low"


def annotate_with_verification(days: Sequence[Day], budget_verified: bool) -> list[Day]:
    """Label every unlabelled activity as an AI estimate.

    Confidence is "medium" when the budget passed validation, "low" otherwise.
    """
    confidence: Confidence = "medium" if budget_verified else "low"
    stamp = datetime.now(UTC).isoformat()

    annotated: list[Day] = []
    for day in days:
        activities = [
            a
            if a.cost_verification
            else a.model_copy(
                update={
                    "cost_verification": CostVerification(
                        source="ai_estimate", confidence=confidence, last_verified=stamp
                    )
                }
            )
            for a in day.activities
        ]
        annotated.append(day.model_copy(update={"activities": activities}))
    return annotated


def _needs_lookup(activity: Activity) -> bool:
    return activity.estimated_cost > 0 and activity.category != ActivityCategory.transport


async def verify_activity_cost(
    verifier: CostVerifier,
    activity: Activity,
    destination: str,
    config: CostConfidenceConfig | None = None,
) -> CostVerification | None:
    """Verify one activity; None means nothing usable was found."""
    if activity.estimated_cost == 0:
        # Free is usually reliable
        return CostVerification(source="ai_estimate", confidence="medium", original_estimate=0)

    try:
        quote = await verifier.lookup_price(activity, destination)
    except Exception as e:
        logger.warning(f"[CostVerifier] Lookup failed for {activity.name}: {e}")
        return None

    if quote is None:
        logger.info(f"[CostVerifier] No pricing data found for: {activity.name}")
        return None

    variance = (quote.price - activity.estimated_cost) / activity.estimated_cost * 100
    confidence = determine_confidence(quote.source_name, variance, quote.last_verified, config)
    logger.info(
        f"[CostVerifier] Verified {activity.name}: ${activity.estimated_cost:g} -> "
        f"${quote.price:g} ({variance:.1f}% variance, {confidence} confidence)"
    )

    return CostVerification(
        source="rag_knowledge",
        confidence=confidence,
        last_verified=quote.last_verified.isoformat() if quote.last_verified else None,
        citation=quote.source_name,
        original_estimate=activity.estimated_cost,
    )


async def verify_costs(
    days: Sequence[Day],
    destination: str,
    verifier: CostVerifier | None,
    config: CostConfidenceConfig | None = None,
) -> tuple[list[Day], CostVerificationStats]:
    """Attach verified cost metadata to paid, non-transport activities.

    Raises:
        CollaboratorUnavailable: No verifier, or it has no pricing data
    """
    if verifier is None or not await verifier.is_available():
        raise CollaboratorUnavailable("cost verifier unavailable")

    started = time.monotonic()
    stats = CostVerificationStats()
    targets = [
        (d, a)
        for d, day in enumerate(days)
        for a, activity in enumerate(day.activities)
        if _needs_lookup(activity)
    ]
    stats.skipped = sum(len(day.activities) for day in days) - len(targets)
    logger.info(f"[CostVerifier] Verifying {len(targets)} paid activities in {destination}")

    results: dict[tuple[int, int], CostVerification] = {}
    for start in range(0, len(targets), LOOKUP_BATCH_SIZE):
        batch = targets[start : start + LOOKUP_BATCH_SIZE]
        verifications = await asyncio.gather(
            *(
                verify_activity_cost(verifier, days[d].activities[a], destination, config)
                for d, a in batch
            )
        )
        for position, verification in zip(batch, verifications):
            if verification is not None and verification.source == "rag_knowledge":
                results[position] = verification
                stats.verified += 1
                stats.confidence[verification.confidence] = (
                    stats.confidence.get(verification.confidence, 0) + 1
                )
            else:
                stats.unverified += 1

    verified_days = [
        day.model_copy(
            update={
                "activities": [
                    activity.model_copy(update={"cost_verification": results[(d, a)]})
                    if (d, a) in results
                    else activity
                    for a, activity in enumerate(day.activities)
                ]
            }
        )
        for d, day in enumerate(days)
    ]

    stats.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        f"[CostVerifier] Verified: {stats.verified}, Unverified: {stats.unverified}",
        extra={"structured": stats.as_dict()},
    )
    return verified_days, stats
