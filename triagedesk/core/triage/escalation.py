from dataclasses import dataclass

from triagedesk.common.enums import CaseState
from triagedesk.common.exceptions import InvalidTransitionError
from triagedesk.common.logging import get_logger
from triagedesk.core.triage.resolution import is_auto_resolvable
from triagedesk.core.triage.schemas import AnalysisResult, CaseTransition, EscalationCase
from triagedesk.core.triage.sentiment import HUMAN_DELIVERY_TONES

logger = get_logger("triage.escalation")

ALLOWED_TRANSITIONS: dict[CaseState, frozenset[CaseState]] = {
    CaseState.INTAKE: frozenset({CaseState.ANALYZING}),
    CaseState.ANALYZING: frozenset({
        CaseState.NO_ISSUE,
        CaseState.AUTO_RESOLVED,
        CaseState.AWAITING_APPROVAL,
        CaseState.ESCALATED,
    }),
    CaseState.AWAITING_APPROVAL: frozenset({CaseState.APPROVED, CaseState.REJECTED}),
    CaseState.ESCALATED: frozenset({CaseState.APPROVED, CaseState.REJECTED}),
    CaseState.NO_ISSUE: frozenset(),
    CaseState.AUTO_RESOLVED: frozenset(),
    CaseState.APPROVED: frozenset(),
    CaseState.REJECTED: frozenset(),
}

# States in which drafted text is held for a human decision
HELD_STATES = frozenset({CaseState.AWAITING_APPROVAL, CaseState.ESCALATED})

TERMINAL_STATES = frozenset(state for state, targets in ALLOWED_TRANSITIONS.items() if not targets)


@dataclass(frozen=True)
class RoutingDecision:
    state: CaseState
    reason: str
    personal_delivery: bool = False

    @property
    def holds_response(self) -> bool:
        return self.state in HELD_STATES


def can_transition(current: CaseState, target: CaseState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(case: EscalationCase, target: CaseState, reason: str) -> None:
    """Move a case to ``target`` and record the step in its history."""
    if not can_transition(case.state, target):
        raise InvalidTransitionError("case", case.state.value, target.value)
    case.history.append(CaseTransition(from_state=case.state, to_state=target, reason=reason))
    logger.info("Case %s: %s -> %s (%s)", case.id, case.state.value, target.value, reason)
    case.state = target
    case.updated_at = case.history[-1].at


def route(analysis: AnalysisResult) -> RoutingDecision:
    """Pick the post-analysis state for a case.

    Checked in order: nothing to compensate, upset player (human delivers
    even a finished resolution), mandatory review, category a human must
    handle, and finally full automation.
    """
    if not analysis.issue_detected or analysis.recommendation is None:
        return RoutingDecision(CaseState.NO_ISSUE, "no compensable issue detected")

    recommendation = analysis.recommendation
    tone = analysis.sentiment.tone if analysis.sentiment else None
    if tone in HUMAN_DELIVERY_TONES:
        return RoutingDecision(
            CaseState.ESCALATED,
            f"player tone is {tone.value}, human delivers the outcome",
            personal_delivery=True,
        )

    if recommendation.requires_human_review:
        return RoutingDecision(CaseState.AWAITING_APPROVAL, f"{recommendation.tier.value} requires human review")

    issue_type = analysis.issue.issue_type if analysis.issue else None
    if not is_auto_resolvable(issue_type):
        label = issue_type.value if issue_type else "unknown"
        return RoutingDecision(CaseState.ESCALATED, f"{label} issues require specialised human review")

    if recommendation.denied:
        return RoutingDecision(CaseState.AUTO_RESOLVED, "claim contradicted by system log, denied")
    return RoutingDecision(CaseState.AUTO_RESOLVED, "resolved automatically")
