"""Tests for cost verification and confidence scoring."""

from datetime import UTC, datetime, timedelta

import pytest

from backend.daystream.config import Settings
from backend.daystream.enrichment.cost_verifier import (
    CostConfidenceConfig,
    PriceQuote,
    annotate_with_verification,
    determine_confidence,
    verify_activity_cost,
    verify_costs,
)
from backend.daystream.models.common import ActivityCategory
from backend.daystream.models.itinerary import Activity
from backend.daystream.orchestration.errors import CollaboratorUnavailable
from tests.support import make_activity, make_day

NOW = datetime(2025, 6, 1, tzinfo=UTC)


class DictVerifier:
    """Prices by activity name; missing names return None."""

    def __init__(self, prices: dict[str, float], available: bool = True, source: str = "Official site"):
        self.prices = prices
        self.available = available
        self.source = source
        self.lookups: list[str] = []

    async def is_available(self) -> bool:
        return self.available

    async def lookup_price(self, activity: Activity, destination: str) -> PriceQuote | None:
        self.lookups.append(activity.name)
        if activity.name == "Broken":
            raise ConnectionError("index offline")
        price = self.prices.get(activity.name)
        if price is None:
            return None
        recent = datetime.now(UTC) - timedelta(days=10)
        return PriceQuote(price=price, source_name=self.source, last_verified=recent)


@pytest.mark.parametrize(
    ("source", "variance", "age_days", "expected"),
    [
        ("official museum site", 10, 30, "high"),
        ("official museum site", 30, 30, "medium"),
        ("official museum site", 10, 300, "medium"),
        ("official museum site", 10, 500, "low"),
        ("some blog", 10, 30, "medium"),
        ("some blog", 10, 300, "low"),
        ("TripAdvisor", -50, 30, "low"),
    ],
)
def test_determine_confidence(source: str, variance: float, age_days: int, expected: str) -> None:
    last_verified = NOW - timedelta(days=age_days)

    assert determine_confidence(source, variance, last_verified, now=NOW) == expected


def test_confidence_without_date_is_never_high() -> None:
    assert determine_confidence("official", 0, None, now=NOW) == "low"


def test_confidence_accepts_naive_timestamps() -> None:
    naive = (NOW - timedelta(days=1)).replace(tzinfo=None)

    assert determine_confidence("official", 0, naive, now=NOW) == "high"


def test_confidence_thresholds_are_configurable() -> None:
    strict = CostConfidenceConfig(high_variance_pct=5)
    recent = NOW - timedelta(days=1)

    assert determine_confidence("official", 10, recent, strict, now=NOW) == "medium"
    assert CostConfidenceConfig.from_settings(Settings(cost_fresh_days=7)).fresh_days == 7


def test_annotate_with_verification_keeps_existing_labels() -> None:
    day = make_day(1, [make_activity("Castle", cost=15)])
    verified_day = annotate_with_verification([day], budget_verified=True)[0]

    relabelled = annotate_with_verification([verified_day], budget_verified=False)[0]

    assert verified_day.activities[0].cost_verification is not None
    assert verified_day.activities[0].cost_verification.confidence == "medium"
    assert relabelled.activities[0].cost_verification == verified_day.activities[0].cost_verification
    assert annotate_with_verification([day], False)[0].activities[0].cost_verification.confidence == "low"
    assert day.activities[0].cost_verification is None


@pytest.mark.asyncio
async def test_free_activity_needs_no_lookup() -> None:
    verifier = DictVerifier({})

    result = await verify_activity_cost(verifier, make_activity("Park"), "Lisbon")

    assert result is not None
    assert (result.source, result.confidence) == ("ai_estimate", "medium")
    assert verifier.lookups == []


@pytest.mark.asyncio
async def test_verify_costs_annotates_paid_activities() -> None:
    day = make_day(
        1,
        [
            make_activity("Castle", cost=15),
            make_activity("Park"),
            make_activity("Taxi", cost=12, category=ActivityCategory.transport),
            make_activity("Unknown Bar", cost=30),
            make_activity("Broken", cost=5),
        ],
    )
    verifier = DictVerifier({"Castle": 16})

    days, stats = await verify_costs([day], "Lisbon", verifier)

    assert sorted(verifier.lookups) == ["Broken", "Castle", "Unknown Bar"]
    castle = days[0].activities[0]
    assert castle.cost_verification is not None
    assert castle.cost_verification.source == "rag_knowledge"
    assert castle.cost_verification.citation == "Official site"
    assert castle.cost_verification.original_estimate == 15
    assert days[0].activities[3].cost_verification is None
    assert (stats.verified, stats.unverified, stats.skipped) == (1, 2, 2)
    assert stats.confidence == {"high": 1}


@pytest.mark.asyncio
async def test_verify_costs_requires_available_source() -> None:
    day = make_day(1, [make_activity("Castle", cost=15)])

    with pytest.raises(CollaboratorUnavailable):
        await verify_costs([day], "Lisbon", None)
    with pytest.raises(CollaboratorUnavailable):
        await verify_costs([day], "Lisbon", DictVerifier({}, available=False))
