import itertools

import pytest
from pydantic import ValidationError

from triagedesk.common.enums import ClassificationTask, CompensationTier, IssueType, PlayerImpact, Tone, Urgency
from triagedesk.core.triage.compensation import CompensationRecommender
from triagedesk.core.triage.fallbacks import REASONING
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.schemas import (
    CompensationBundle,
    CompensationRecommendation,
    Gold,
    IssueDetectionResult,
    Item,
    PlayerContext,
    Resource,
    SentimentResult,
)
from triagedesk.tests.fakes import REASONING_TEXT, FakeTextClient


def _issue(impact=PlayerImpact.MODERATE, issue_type=IssueType.TECHNICAL):
    return IssueDetectionResult(
        detected=True, issue_type=issue_type, description="x", player_impact=impact, confidence_score=0.9
    )


@pytest.fixture
def recommender(policy):
    client = FakeTextClient({ClassificationTask.REASONING: REASONING_TEXT})
    return CompensationRecommender(TextClassifierGateway(client), policy)


# ---------- Rewards ----------


def test_rewards_validate_at_construction():
    with pytest.raises(ValidationError):
        Gold(amount=0)
    with pytest.raises(ValidationError):
        Resource(resource="", amount=10)
    with pytest.raises(ValidationError):
        Item(name="Chest", quantity=-1)


def test_bundle_build_and_views():
    bundle = CompensationBundle.build(gold=375.4, gems=0, resources={"food": 1000, "wood": 0}, items={"Chest": 1})

    assert bundle.gold == 375
    assert bundle.gems == 0
    assert bundle.resources == {"food": 1000}
    assert bundle.items == {"Chest": 1}
    assert bundle.describe() == "375 gold, 1,000 food, 1x Chest"


def test_bundle_parses_tagged_rewards():
    bundle = CompensationBundle.model_validate(
        {"rewards": [{"kind": "gems", "amount": 20}, {"kind": "resource", "resource": "stone", "amount": 500}]}
    )
    assert bundle.gems == 20
    assert bundle.resources == {"stone": 500}


def test_denied_recommendation_must_be_empty_p5():
    with pytest.raises(ValidationError):
        CompensationRecommendation(
            tier=CompensationTier.P5,
            reasoning="no",
            suggested_compensation=CompensationBundle.build(gold=100),
            denied=True,
        )
    with pytest.raises(ValidationError):
        CompensationRecommendation(tier=CompensationTier.P3, reasoning="no", denied=True)


def test_tier_helpers():
    assert CompensationTier.P2.raised() == CompensationTier.P1
    assert CompensationTier.P0.raised() == CompensationTier.P0
    assert CompensationTier.P1.is_at_least(CompensationTier.P2)
    assert not CompensationTier.P4.is_at_least(CompensationTier.P3)


# ---------- Pricing ----------


@pytest.mark.parametrize(
    "impact, tier, gold, gems",
    [
        (PlayerImpact.CRITICAL, CompensationTier.P1, 1000, 50),
        (PlayerImpact.SEVERE, CompensationTier.P2, 500, 25),
        (PlayerImpact.MODERATE, CompensationTier.P3, 250, 10),
        (PlayerImpact.MINOR, CompensationTier.P4, 150, 5),
        (PlayerImpact.MINIMAL, CompensationTier.P4, 100, 0),
    ],
)
def test_base_tier_by_impact(recommender, impact, tier, gold, gems):
    draft = recommender.price(_issue(impact), SentimentResult(), PlayerContext(player_id="p"))

    assert draft.tier == tier
    assert draft.gold == gold
    assert draft.gems == gems


def test_vip_bonus_and_urgency(recommender):
    draft = recommender.price(
        _issue(PlayerImpact.MODERATE),
        SentimentResult(urgency=Urgency.HIGH),
        PlayerContext(player_id="p", vip_level=5),
    )

    assert draft.tier == CompensationTier.P2
    assert draft.gold == 750
    assert draft.gems == 20
    assert draft.requires_review is True


def test_churn_risk_bias(recommender):
    draft = recommender.price(
        _issue(PlayerImpact.SEVERE), SentimentResult(), PlayerContext(player_id="p", churn_risk=80)
    )

    assert draft.gold == 625
    assert draft.requires_review is False


def test_review_floor_for_high_tier_vip(recommender):
    draft = recommender.price(
        _issue(PlayerImpact.MINOR), SentimentResult(), PlayerContext(player_id="p", vip_level=10)
    )
    assert draft.requires_review is True


def test_critical_impact_stays_at_p1_or_above(recommender):
    grid = itertools.product([0, 4, 5, 10, 15], list(Urgency), list(Tone))
    for vip, urgency, tone in grid:
        draft = recommender.price(
            _issue(PlayerImpact.CRITICAL),
            SentimentResult(tone=tone, urgency=urgency),
            PlayerContext(player_id="p", vip_level=vip),
        )
        assert draft.tier.is_at_least(CompensationTier.P1), (vip, urgency, tone)
        assert draft.requires_review is True


# ---------- Recommendation ----------


@pytest.mark.asyncio
async def test_account_issue_gets_resource_pack(recommender):
    result = await recommender.recommend(
        _issue(PlayerImpact.MODERATE, IssueType.ACCOUNT), SentimentResult(), PlayerContext(player_id="p")
    )

    assert result.suggested_compensation.resources == {"food": 1000, "wood": 1000, "stone": 500}
    assert result.reasoning == REASONING_TEXT
    assert result.requires_human_review is False
    assert result.estimated_review_time is None
    assert result.alternative_actions == ["Reset password", "Account verification"]
    assert "Enable two-factor authentication" in result.prevention_suggestions


@pytest.mark.asyncio
async def test_critical_issue_gets_restoration_item(recommender):
    result = await recommender.recommend(_issue(PlayerImpact.CRITICAL), SentimentResult(), PlayerContext(player_id="p"))

    assert result.suggested_compensation.items == {"Account Restoration Chest": 1}
    assert result.alternative_actions == []
    assert result.requires_human_review is True
    assert result.estimated_review_time is not None


@pytest.mark.asyncio
async def test_reasoning_template_when_generation_fails(policy):
    recommender = CompensationRecommender(TextClassifierGateway(FakeTextClient()), policy)

    result = await recommender.recommend(_issue(), SentimentResult(), PlayerContext(player_id="p"))

    assert result.reasoning == REASONING.defaults["text"]
