"""Claim validation: does the system log contradict what the player says?

A contradiction is not an error. It is its own outcome: non-VIP players are
denied outright, high-tier VIPs are sent to a specialist instead, so a
valuable account is never auto-rejected on the strength of a log line.
"""

from __future__ import annotations

from triagedesk.common.enums import CompensationTier
from triagedesk.common.logging import get_logger
from triagedesk.core.triage import fallbacks, prompts
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.schemas import (
    ClaimValidation,
    CompensationBundle,
    CompensationRecommendation,
    IssueDetectionResult,
    PlayerContext,
)

logger = get_logger("triage.claim_validator")

SPECIALIST_REVIEW_TIME = "1-2h"
CONFIDENCE_BOOST = 0.1


def keyword_validation(system_log: str) -> ClaimValidation:
    table = fallbacks.CLAIM_VALIDATION
    if table.matches(system_log):
        return ClaimValidation(
            contradiction_detected=True,
            confidence_score=table.extra["contradiction_confidence"],
            reasoning=table.extra["contradiction_reasoning"],
            evidence_exists=True,
        )
    return ClaimValidation.model_validate(table.defaults)


class ClaimValidator:
    def __init__(self, gateway: TextClassifierGateway, high_tier_vip_threshold: int = 10):
        self.gateway = gateway
        self.high_tier_vip_threshold = high_tier_vip_threshold

    async def validate(
        self, message: str, player: PlayerContext, issue: IssueDetectionResult
    ) -> ClaimValidation | None:
        """Return ``None`` when the player has no system log to check against."""
        if not player.has_system_log:
            return None

        outcome = await self.gateway.classify(
            prompts.CLAIM_VALIDATION,
            {
                "message": message,
                "system_log": player.system_log,
                "issue_type": issue.issue_type.value if issue.issue_type else "unknown",
                "issue_description": issue.description or "n/a",
            },
            ClaimValidation,
        )
        if outcome.parsed:
            return outcome.result

        result = keyword_validation(player.system_log or "")
        logger.info(
            "Claim validation keyword fallback for %s: contradiction=%s",
            player.player_id,
            result.contradiction_detected,
        )
        return result

    def adjust_issue(
        self, issue: IssueDetectionResult, validation: ClaimValidation | None
    ) -> IssueDetectionResult:
        if validation is None:
            return issue
        if validation.contradiction_detected:
            confidence = min(issue.confidence_score, 1.0 - validation.confidence_score)
        else:
            confidence = min(1.0, issue.confidence_score + CONFIDENCE_BOOST)
        return issue.model_copy(update={"confidence_score": round(confidence, 4)})

    def contradiction_outcome(
        self, player: PlayerContext, validation: ClaimValidation
    ) -> CompensationRecommendation:
        if player.vip_level >= self.high_tier_vip_threshold:
            logger.info(
                "Contradiction for VIP %d player %s, escalating to specialist team",
                player.vip_level,
                player.player_id,
            )
            return CompensationRecommendation(
                tier=CompensationTier.P3,
                reasoning=(
                    "Our records don't fully match this report, so it has been escalated to "
                    "our specialist team for a personal review of your account."
                ),
                suggested_compensation=CompensationBundle(),
                requires_human_review=True,
                estimated_review_time=SPECIALIST_REVIEW_TIME,
                denied=False,
                evidence_exists=validation.evidence_exists,
            )

        logger.info("Contradiction for player %s, denying compensation", player.player_id)
        return CompensationRecommendation(
            tier=CompensationTier.P5,
            reasoning=validation.reasoning or fallbacks.CLAIM_VALIDATION.extra["contradiction_reasoning"],
            suggested_compensation=CompensationBundle(),
            requires_human_review=False,
            denied=True,
            evidence_exists=validation.evidence_exists,
        )
