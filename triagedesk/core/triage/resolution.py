from triagedesk.common.enums import IssueType
from triagedesk.common.logging import get_logger
from triagedesk.core.triage.schemas import (
    CompensationRecommendation,
    IssueDetectionResult,
    PlayerContext,
    ResolutionPlan,
)

logger = get_logger("triage.resolution")

# Categories the automated pipeline may close without a human
AUTO_RESOLVABLE = {
    IssueType.TECHNICAL: True,
    IssueType.ACCOUNT: True,
    IssueType.GAMEPLAY: False,
}

GENERIC_REJECTION = (
    "Thank you for contacting us. After reviewing your report we were unable to "
    "approve compensation for this issue. If you have more details, reply to this "
    "message and our team will take another look."
)


def is_auto_resolvable(issue_type: IssueType | None) -> bool:
    return AUTO_RESOLVABLE.get(issue_type, False) if issue_type else False


def _account_plan(text: str, player: PlayerContext) -> ResolutionPlan:
    if player.is_locked:
        return ResolutionPlan(
            category="Account Access - Security Verification",
            actions=[
                f"Reviewed the security lock on your account ({player.lock_reason or 'security'})",
                "Sent a verification link to your registered email",
                "Flagged your account for unlock once verification completes",
            ],
            timeline="Verification email should arrive within 5 minutes",
            follow_up="Open the link in the email to confirm it's you. Your account unlocks right after.",
        )
    if any(k in text for k in ("password", "login", "log in", "sign in")):
        return ResolutionPlan(
            category="Account Access - Password Reset",
            actions=[
                "Verified your identity using account details",
                "Sent a password reset link to your registered email",
                f"Added priority VIP {player.vip_level} processing flag",
            ],
            timeline="Password reset email should arrive within 5 minutes",
            follow_up="Check your email (including spam) for the reset link.",
        )
    if any(k in text for k in ("daily", "event", "tournament", "reward")):
        return ResolutionPlan(
            category="Missing Rewards",
            actions=[
                "Reviewed reward distribution records",
                "Redistributed missing rewards to your mailbox",
            ],
            timeline="Rewards should appear in your mailbox within 5 minutes",
            follow_up="Check your in-game mailbox. If nothing arrives, restart the game and check again.",
        )
    if any(k in text for k in ("purchase", "didn't receive", "missing items", "bought")):
        return ResolutionPlan(
            category="Purchase Issues - Missing Items",
            actions=[
                "Verified your recent purchase transaction",
                "Delivered the missing items to your account",
            ],
            timeline="Items should appear in your inventory within 10 minutes",
            follow_up="Restart the game to refresh your inventory. Keep your receipt handy if items are still missing.",
        )
    return ResolutionPlan(
        category="Account Access - General",
        actions=[
            "Verified account status and security settings",
            "Refreshed account authentication tokens",
            "Cleared temporary access restrictions",
        ],
        timeline="Changes should take effect within 2-3 minutes",
        follow_up="Try accessing your account again.",
    )


def _technical_plan(text: str) -> ResolutionPlan:
    if any(k in text for k in ("crash", "freeze", "frozen", "lag")):
        return ResolutionPlan(
            category="Technical Issues - Performance",
            actions=[
                "Identified a known performance issue pattern",
                "Cleared cached game data remotely",
                "Enabled performance monitoring for your account",
            ],
            timeline="Improvements apply on your next game restart",
            follow_up="Restart the game and keep your app updated.",
        )
    if any(k in text for k in ("connect", "network", "loading", "server")):
        return ResolutionPlan(
            category="Technical Issues - Connectivity",
            actions=[
                "Checked server status for your region",
                "Reset your session on our servers",
            ],
            timeline="Effective immediately",
            follow_up="Switch between Wi-Fi and mobile data if loading is still slow.",
        )
    return ResolutionPlan(
        category="Technical Issues - General",
        actions=[
            "Logged the issue with our technical team",
            "Applied a refresh to your account data",
        ],
        timeline="Resolution applied within 10 minutes",
        follow_up="Restart the game. If the issue continues, reply with your device model.",
    )


def build_plan(message: str, issue: IssueDetectionResult, player: PlayerContext) -> ResolutionPlan | None:
    """Automated resolution plan for the issue's category, ``None`` when a human must handle it."""
    text = message.lower()
    if issue.issue_type == IssueType.ACCOUNT:
        return _account_plan(text, player)
    if issue.issue_type == IssueType.TECHNICAL:
        return _technical_plan(text)
    logger.debug("No automated plan for %s issues", issue.issue_type)
    return None


def compose_response(
    recommendation: CompensationRecommendation,
    plan: ResolutionPlan | None,
    player: PlayerContext,
) -> str:
    """Draft the player-facing text for a case."""
    greeting = f"Hi {player.player_name}," if player.player_name else "Hi,"
    lines = [greeting, "", recommendation.reasoning]

    if recommendation.denied:
        return "\n".join(lines)

    if plan is not None:
        lines.append("")
        lines.append("What we did:")
        lines.extend(f"- {action}" for action in plan.actions)

    bundle = recommendation.suggested_compensation
    if not bundle.is_empty:
        lines.append("")
        lines.append(f"Compensation: {bundle.describe()}.")
    elif recommendation.requires_human_review and recommendation.estimated_review_time:
        lines.append("")
        lines.append(f"A specialist will follow up within {recommendation.estimated_review_time}.")

    if plan is not None:
        lines.append("")
        lines.append(f"{plan.timeline}. {plan.follow_up}")
    return "\n".join(lines)
