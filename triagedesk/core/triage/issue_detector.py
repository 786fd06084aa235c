from triagedesk.common.enums import IssueType, PlayerImpact
from triagedesk.common.logging import get_logger
from triagedesk.core.triage import fallbacks, prompts
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.schemas import IssueDetectionResult, PlayerContext

logger = get_logger("triage.issue_detector")


def locked_account_override(message: str, player: PlayerContext) -> IssueDetectionResult | None:
    """A locked account plus an access complaint is critical without asking the model."""
    if not player.is_locked:
        return None
    lowered = message.lower()
    if not any(term in lowered for term in fallbacks.ACCOUNT_ACCESS_TERMS):
        return None
    reason = player.lock_reason or "unspecified reason"
    return IssueDetectionResult(
        detected=True,
        issue_type=IssueType.ACCOUNT,
        description=f"Account locked ({reason}) - player cannot access their account",
        player_impact=PlayerImpact.CRITICAL,
        confidence_score=1.0,
    )


def keyword_detection(message: str) -> IssueDetectionResult:
    table = fallbacks.ISSUE_DETECTION
    if not table.matches(message):
        return IssueDetectionResult.model_validate(table.defaults)
    issue_type = IssueType.ACCOUNT if table.matches_secondary(message) else IssueType.TECHNICAL
    return IssueDetectionResult(
        detected=True,
        issue_type=issue_type,
        description=f"Keyword analysis: {issue_type.value} issue reported",
        player_impact=PlayerImpact(table.extra["keyword_impact"]),
        confidence_score=table.extra["keyword_confidence"],
    )


class IssueDetector:
    def __init__(self, gateway: TextClassifierGateway):
        self.gateway = gateway

    async def detect(self, message: str, player: PlayerContext) -> IssueDetectionResult:
        override = locked_account_override(message, player)
        if override is not None:
            logger.info("Locked account override for player %s", player.player_id)
            return override

        outcome = await self.gateway.classify(
            prompts.ISSUE_DETECTION, {"message": message}, IssueDetectionResult
        )
        if not outcome.parsed:
            result = keyword_detection(message)
            logger.info("Keyword fallback for player %s: detected=%s", player.player_id, result.detected)
            return result

        result = outcome.result
        # A detected issue without a category cannot be routed; treat it as technical
        if result.detected and result.issue_type is None:
            result = result.model_copy(update={"issue_type": IssueType.TECHNICAL})
        if result.detected and result.player_impact is None:
            result = result.model_copy(update={"player_impact": PlayerImpact.MODERATE})
        return result
