import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta

from triagedesk.common import events
from triagedesk.common.enums import CaseEvent, CaseState, RequestStatus
from triagedesk.common.logging import get_logger
from triagedesk.config import settings
from triagedesk.core.triage.claim_validator import ClaimValidator
from triagedesk.core.triage.compensation import CompensationPolicy, CompensationRecommender
from triagedesk.core.triage.escalation import HELD_STATES, TERMINAL_STATES, route, transition
from triagedesk.core.triage.gateway import TextClassifierGateway
from triagedesk.core.triage.issue_detector import IssueDetector
from triagedesk.core.triage.ledger import RequestLedger
from triagedesk.core.triage.resolution import GENERIC_REJECTION, build_plan, compose_response
from triagedesk.core.triage.schemas import (
    AnalysisResult,
    CompensationRequest,
    EscalationCase,
    LedgerStats,
    PlayerContext,
)
from triagedesk.core.triage.sentiment import SentimentAnalyzer, tone_to_frustration, tone_to_intensity
from triagedesk.integrations.ai_client import TextGenerationClient
from triagedesk.integrations.base import TextGenerationIntegration

logger = get_logger("triage.service")


class TriageService:
    """Entry points for one player complaint, from analysis to released response."""

    def __init__(
        self,
        client: TextGenerationIntegration | None = None,
        ledger: RequestLedger | None = None,
        policy: CompensationPolicy | None = None,
    ):
        self.gateway = TextClassifierGateway(client or TextGenerationClient())
        self.ledger = ledger or RequestLedger()
        self.policy = policy or CompensationPolicy.from_settings()
        self.issue_detector = IssueDetector(self.gateway)
        self.sentiment = SentimentAnalyzer(self.gateway)
        self.claim_validator = ClaimValidator(self.gateway, self.policy.high_tier_vip_threshold)
        self.recommender = CompensationRecommender(self.gateway, self.policy)
        self._case_locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def _guard(self, case: EscalationCase):
        """Serialise work on one case; once it is terminal drop its lock and close it out."""
        async with self._case_locks.setdefault(case.id, asyncio.Lock()):
            yield
        if case.state in TERMINAL_STATES:
            self._case_locks.pop(case.id, None)
            self.ledger.close_case(case)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_message(self, message: str, player: PlayerContext) -> AnalysisResult:
        """Run the classifier graph for one message.

        Issue detection goes first; nothing else runs when no issue is found.
        Claim validation and sentiment then run concurrently, and the
        recommendation comes last. Raises ``TextServiceUnavailableError``
        when the text service cannot be reached.
        """
        issue = await self.issue_detector.detect(message, player)
        if not issue.detected:
            logger.info("No compensable issue for player %s", player.player_id)
            return AnalysisResult(issue_detected=False, issue=issue)

        try:
            async with asyncio.TaskGroup() as tg:
                validation_task = tg.create_task(self.claim_validator.validate(message, player, issue))
                sentiment_task = tg.create_task(self.sentiment.analyze(message))
        except ExceptionGroup as group:
            # The sibling is already cancelled; surface the first failure as-is
            raise group.exceptions[0] from None
        validation, sentiment = validation_task.result(), sentiment_task.result()
        issue = self.claim_validator.adjust_issue(issue, validation)

        if validation is not None and validation.contradiction_detected:
            recommendation = self.claim_validator.contradiction_outcome(player, validation)
        else:
            recommendation = await self.recommender.recommend(
                issue,
                sentiment,
                player,
                evidence_exists=validation.evidence_exists if validation else False,
            )

        return AnalysisResult(
            issue_detected=True,
            issue=issue,
            sentiment=sentiment,
            claim_validation=validation,
            recommendation=recommendation,
            emotional_intensity=tone_to_intensity(sentiment.tone),
            frustration_level=tone_to_frustration(sentiment.tone),
        )

    async def open_case(self, message: str, player: PlayerContext) -> EscalationCase:
        case = EscalationCase(message=message, player=player)
        transition(case, CaseState.ANALYZING, "analysis started")
        analysis = await self.analyze_message(message, player)
        case.analysis = analysis

        if analysis.issue_detected and analysis.recommendation is not None:
            case.resolution = build_plan(message, analysis.issue, player)
            case.pending_response_text = compose_response(analysis.recommendation, case.resolution, player)
        return self.ledger.register_case(case)

    # ------------------------------------------------------------------
    # Submission and approval gate
    # ------------------------------------------------------------------

    async def submit_case(self, case_id: str) -> EscalationCase:
        case = self.ledger.get_case(case_id)
        async with self._guard(case):
            if case.submitted:
                logger.info("Case %s already submitted, ignoring", case_id)
                return case
            case.submitted = True

            decision = route(case.analysis or AnalysisResult(issue_detected=False))
            case.route_reason = decision.reason
            case.personal_delivery = decision.personal_delivery
            transition(case, decision.state, decision.reason)

            if decision.state != CaseState.NO_ISSUE:
                request = await self._create_request(case)
                case.request_id = request.id

            await events.emit(
                CaseEvent.CASE_ROUTED.value,
                {
                    "case_id": case.id,
                    "state": case.state.value,
                    "reason": decision.reason,
                    "personal_delivery": decision.personal_delivery,
                },
            )

            if decision.holds_response:
                case.awaiting_approval = True
            elif decision.state == CaseState.AUTO_RESOLVED:
                recommendation = case.analysis.recommendation
                if recommendation.denied:
                    await self.ledger.reject(case.request_id, notes="denied automatically")
                else:
                    await self.ledger.approve(case.request_id, notes="resolved automatically")
                await self._release(case, case.pending_response_text)
            return case

    async def triage(self, message: str, player: PlayerContext) -> EscalationCase:
        case = await self.open_case(message, player)
        return await self.submit_case(case.id)

    async def approve_case(
        self, case_id: str, reviewed_by: str = "agent", notes: str | None = None
    ) -> EscalationCase:
        """Release the held text verbatim. A no-op unless the case is waiting on a human."""
        case = self.ledger.get_case(case_id)
        async with self._guard(case):
            if case.state not in HELD_STATES:
                logger.warning("Approve ignored for case %s in state %s", case_id, case.state.value)
                return case
            # Approving a drafted denial confirms the denial
            if case.analysis.recommendation.denied:
                await self.ledger.reject(case.request_id, reviewed_by, notes)
            else:
                await self.ledger.approve(case.request_id, reviewed_by, notes)
            transition(case, CaseState.APPROVED, f"approved by {reviewed_by}")
            await self._release(case, case.pending_response_text)
            return case

    async def reject_case(
        self, case_id: str, reviewed_by: str = "agent", notes: str | None = None
    ) -> EscalationCase:
        """Discard the held text and release the generic no-compensation message."""
        case = self.ledger.get_case(case_id)
        async with self._guard(case):
            if case.state not in HELD_STATES:
                logger.warning("Reject ignored for case %s in state %s", case_id, case.state.value)
                return case
            await self.ledger.reject(case.request_id, reviewed_by, notes)
            transition(case, CaseState.REJECTED, f"rejected by {reviewed_by}")
            await self._release(case, GENERIC_REJECTION)
            return case

    async def _create_request(self, case: EscalationCase) -> CompensationRequest:
        recommendation = case.analysis.recommendation
        return await self.ledger.create(
            CompensationRequest(
                case_id=case.id,
                player_id=case.player.player_id,
                tier=recommendation.tier,
                issue_type=case.analysis.issue.issue_type,
                requires_human_review=recommendation.requires_human_review,
                compensation=recommendation.suggested_compensation,
                player_context_snapshot=case.player.model_dump(mode="json"),
            )
        )

    async def _release(self, case: EscalationCase, text: str | None) -> None:
        case.awaiting_approval = False
        case.pending_response_text = None
        case.released_text = text
        await events.emit(
            CaseEvent.RESPONSE_RELEASED.value,
            {
                "case_id": case.id,
                "player_id": case.player.player_id,
                "state": case.state.value,
                "text": text,
                "personal_delivery": case.personal_delivery,
            },
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_case(self, case_id: str) -> EscalationCase:
        return self.ledger.get_case(case_id)

    def case_age(self, case_id: str) -> timedelta:
        return self.ledger.get_case(case_id).age()

    async def get_request(self, request_id: str) -> CompensationRequest:
        return await self.ledger.get(request_id)

    async def get_status(self, request_id: str) -> RequestStatus:
        return await self.ledger.get_status(request_id)

    async def list_requests(
        self, player_id: str | None = None, status: RequestStatus | None = None
    ) -> list[CompensationRequest]:
        return await self.ledger.list(player_id=player_id, status=status)

    async def distribute(self, request_id: str) -> CompensationRequest:
        request, _ = await self.ledger.distribute(request_id)
        return request

    async def stats(self) -> LedgerStats:
        return await self.ledger.stats()

    async def ai_health(self) -> dict:
        healthy = await self.gateway.health_check()
        return {
            "healthy": healthy,
            "provider": settings.AI_PROVIDER,
            "model": settings.OLLAMA_MODEL if settings.AI_PROVIDER == "ollama" else settings.AI_MODEL,
        }


