"""Fallback table: what each classification task answers when the model output
cannot be used.

The table is versioned on its own, independently of the prompt templates,
so keyword lists can be tuned without touching prompts (and vice versa).
Every call site reads its keywords from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from triagedesk.common.enums import ClassificationTask

FALLBACK_TABLE_VERSION = "2025.2"


@dataclass(frozen=True)
class TaskFallback:
    task: ClassificationTask
    defaults: dict[str, Any]
    keywords: tuple[str, ...] = ()
    secondary_keywords: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def matches(self, text: str | None) -> bool:
        lowered = (text or "").lower()
        return any(k in lowered for k in self.keywords)

    def matches_secondary(self, text: str | None) -> bool:
        lowered = (text or "").lower()
        return any(k in lowered for k in self.secondary_keywords)


ISSUE_DETECTION = TaskFallback(
    task=ClassificationTask.ISSUE_DETECTION,
    defaults={
        "detected": False,
        "issueType": None,
        "description": "Analysis incomplete - model output could not be parsed",
        "playerImpact": None,
        "confidenceScore": 0.0,
    },
    # Any of these marks the message as an issue
    keywords=(
        "broken", "help", "problem", "issue", "bug", "crash", "error",
        "cant", "can't", "cannot", "wont", "won't", "missing", "lost", "locked",
        "access", "login", "log in", "fail", "failed", "not work", "doesnt work",
        "doesn't work", "get in", "stuck", "freeze", "frozen",
    ),
    # Of those, these make it an account issue rather than a technical one
    secondary_keywords=("login", "log in", "sign in", "access", "locked", "get in", "password"),
    extra={"keyword_confidence": 0.8, "keyword_impact": "moderate"},
)

ACCOUNT_ACCESS_TERMS: tuple[str, ...] = (
    "login", "log in", "locked", "cannot", "can't", "cant", "sign in", "access",
)

SENTIMENT = TaskFallback(
    task=ClassificationTask.SENTIMENT,
    defaults={
        "tone": "neutral",
        "urgency": "medium",
        "repeatIssue": False,
        "issueFrequency": "unique",
    },
    # Keyword scan for when the model did not answer in time
    keywords=("frustrated", "annoying"),
    secondary_keywords=("help", "please"),
    extra={
        "anger_keyword": "broken",
        "anger_markers": ("!!!!", "fix it"),
        "keyword_frequency": "common",
    },
)

CLAIM_VALIDATION = TaskFallback(
    task=ClassificationTask.CLAIM_VALIDATION,
    defaults={
        "contradictionDetected": False,
        "confidenceScore": 0.3,
        "reasoning": "No clear contradiction detected in system context.",
        "evidenceExists": False,
    },
    keywords=(
        "player has made", "false claim", "already received", "already claimed",
        "rewards were delivered", "transaction logs show", "verification failed",
        "no evidence of", "contradicts player claim", "system check:",
        "0 errors", "zero errors", "no errors", "logs show no errors",
    ),
    extra={
        "contradiction_confidence": 0.7,
        "contradiction_reasoning": (
            "System context suggests the player's claim may be invalid based on keyword matching."
        ),
    },
)

REASONING = TaskFallback(
    task=ClassificationTask.REASONING,
    defaults={
        "text": (
            "We've reviewed your report and determined that compensation is appropriate. "
            "Thank you for your patience while we looked into it."
        ),
    },
    extra={"min_length": 10},
)

FALLBACKS: dict[ClassificationTask, TaskFallback] = {
    f.task: f for f in (ISSUE_DETECTION, SENTIMENT, CLAIM_VALIDATION, REASONING)
}
