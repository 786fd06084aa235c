"""Compensation recommender.

Turns a detected issue, the player's sentiment and the player's value into a
tier and a concrete reward bundle. Every number comes from
:class:`CompensationPolicy`, which is loaded from settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from triagedesk.common.enums import CompensationTier, IssueType, PlayerImpact, Tone, Urgency
from triagedesk.common.logging import get_logger
from triagedesk.config import settings
from triagedesk.core.triage import fallbacks, prompts
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.schemas import (
    CompensationBundle,
    CompensationRecommendation,
    IssueDetectionResult,
    PlayerContext,
    SentimentResult,
)

logger = get_logger("triage.compensation")

TIER_BY_IMPACT = {
    PlayerImpact.CRITICAL: CompensationTier.P1,
    PlayerImpact.SEVERE: CompensationTier.P2,
    PlayerImpact.MODERATE: CompensationTier.P3,
    PlayerImpact.MINOR: CompensationTier.P4,
    PlayerImpact.MINIMAL: CompensationTier.P4,
}

REVIEW_TIME_BY_TIER = {
    CompensationTier.P0: "4-8h",
    CompensationTier.P1: "2-4h",
    CompensationTier.P2: "1-2h",
    CompensationTier.P3: "1-2h",
    CompensationTier.P4: "under 1h",
}

# Agent-side follow-ups offered next to the rewards: (alternative actions, prevention suggestions)
FOLLOW_UPS_BY_ISSUE: dict[IssueType, tuple[list[str], list[str]]] = {
    IssueType.ACCOUNT: (
        ["Reset password", "Account verification"],
        ["Enable two-factor authentication", "Regular password updates"],
    ),
}


@dataclass(frozen=True)
class CompensationPolicy:
    gold_by_impact: dict[str, int]
    gems_by_impact: dict[str, int]
    account_resource_pack: dict[str, int] = field(default_factory=dict)
    critical_restoration_item: str | None = None
    vip_bonus_threshold: int = 5
    vip_bonus_multiplier: float = 2.0
    high_tier_vip_threshold: int = 10
    urgency_gold_multiplier: float = 1.5
    churn_risk_threshold: int = 70
    churn_gold_multiplier: float = 1.25

    @classmethod
    def from_settings(cls) -> CompensationPolicy:
        return cls(
            gold_by_impact=dict(settings.GOLD_BY_IMPACT),
            gems_by_impact=dict(settings.GEMS_BY_IMPACT),
            account_resource_pack=dict(settings.ACCOUNT_RESOURCE_PACK),
            critical_restoration_item=settings.CRITICAL_RESTORATION_ITEM or None,
            vip_bonus_threshold=settings.VIP_BONUS_THRESHOLD,
            vip_bonus_multiplier=settings.VIP_BONUS_MULTIPLIER,
            high_tier_vip_threshold=settings.HIGH_TIER_VIP_THRESHOLD,
            urgency_gold_multiplier=settings.URGENCY_GOLD_MULTIPLIER,
            churn_risk_threshold=settings.CHURN_RISK_THRESHOLD,
            churn_gold_multiplier=settings.CHURN_GOLD_MULTIPLIER,
        )


@dataclass
class _Draft:
    tier: CompensationTier
    gold: float
    gems: float
    requires_review: bool = False
    notes: list[str] = field(default_factory=list)


class CompensationRecommender:
    def __init__(self, gateway: TextClassifierGateway, policy: CompensationPolicy | None = None):
        self.gateway = gateway
        self.policy = policy or CompensationPolicy.from_settings()

    def price(
        self, issue: IssueDetectionResult, sentiment: SentimentResult, player: PlayerContext
    ) -> _Draft:
        """Apply the tier and reward rules; no text generation."""
        p = self.policy
        impact = issue.player_impact or PlayerImpact.MODERATE
        draft = _Draft(
            tier=TIER_BY_IMPACT[impact],
            gold=p.gold_by_impact.get(impact.value, 0),
            gems=p.gems_by_impact.get(impact.value, 0),
        )

        if player.vip_level >= p.vip_bonus_threshold:
            draft.gold *= p.vip_bonus_multiplier
            draft.gems *= p.vip_bonus_multiplier
            draft.tier = draft.tier.raised()
            draft.notes.append(f"vip {player.vip_level} bonus")

        if sentiment.urgency == Urgency.HIGH or sentiment.tone == Tone.ANGRY:
            draft.gold *= p.urgency_gold_multiplier
            draft.requires_review = True
            draft.notes.append("urgency bonus")

        if player.churn_risk >= p.churn_risk_threshold:
            draft.gold *= p.churn_gold_multiplier
            draft.notes.append(f"churn risk {player.churn_risk}")

        if impact == PlayerImpact.CRITICAL or player.vip_level >= p.high_tier_vip_threshold:
            draft.requires_review = True

        return draft

    def bundle(self, draft: _Draft, issue: IssueDetectionResult) -> CompensationBundle:
        resources = self.policy.account_resource_pack if issue.issue_type == IssueType.ACCOUNT else None
        items = None
        if issue.player_impact == PlayerImpact.CRITICAL and self.policy.critical_restoration_item:
            items = {self.policy.critical_restoration_item: 1}
        return CompensationBundle.build(gold=draft.gold, gems=draft.gems, resources=resources, items=items)

    async def explain(self, issue: IssueDetectionResult, tier: CompensationTier) -> str:
        text = await self.gateway.generate(
            prompts.REASONING,
            {
                "issue_type": issue.issue_type.value if issue.issue_type else "unknown",
                "issue_description": issue.description or "n/a",
                "player_impact": issue.player_impact.value if issue.player_impact else "unknown",
                "tier_label": tier.label,
                "tier": tier.value,
            },
        )
        if text is None:
            logger.info("Reasoning generation unusable, using template for %s", tier.value)
            return fallbacks.REASONING.defaults["text"]
        return text

    async def recommend(
        self,
        issue: IssueDetectionResult,
        sentiment: SentimentResult,
        player: PlayerContext,
        evidence_exists: bool = False,
    ) -> CompensationRecommendation:
        draft = self.price(issue, sentiment, player)
        bundle = self.bundle(draft, issue)
        reasoning = await self.explain(issue, draft.tier)
        alternatives, prevention = FOLLOW_UPS_BY_ISSUE.get(issue.issue_type, ([], []))

        logger.info(
            "Recommended %s for player %s (%s)%s",
            draft.tier.value,
            player.player_id,
            bundle.describe(),
            f" [{', '.join(draft.notes)}]" if draft.notes else "",
        )
        return CompensationRecommendation(
            tier=draft.tier,
            reasoning=reasoning,
            suggested_compensation=bundle,
            requires_human_review=draft.requires_review,
            estimated_review_time=REVIEW_TIME_BY_TIER.get(draft.tier) if draft.requires_review else None,
            evidence_exists=evidence_exists,
            alternative_actions=list(alternatives),
            prevention_suggestions=list(prevention),
        )
