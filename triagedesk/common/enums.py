import enum


class IssueType(str, enum.Enum):
    TECHNICAL = "technical"
    ACCOUNT = "account"
    GAMEPLAY = "gameplay"


class PlayerImpact(str, enum.Enum):
    MINIMAL = "minimal"
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


class Tone(str, enum.Enum):
    NEUTRAL = "neutral"
    FRUSTRATED = "frustrated"
    ANGRY = "angry"
    AGITATED = "agitated"
    CONFUSED = "confused"
    APPRECIATIVE = "appreciative"


class Urgency(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueFrequency(str, enum.Enum):
    UNIQUE = "unique"
    UNCOMMON = "uncommon"
    COMMON = "common"
    VERY_COMMON = "very_common"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    SUSPENDED = "suspended"
    BANNED = "banned"
    PENDING_VERIFICATION = "pending_verification"


class CompensationTier(str, enum.Enum):
    """P0 is the most severe (account restoration grade), P5 means no compensation."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"

    @property
    def rank(self) -> int:
        return int(self.value[1])

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    def is_at_least(self, other: "CompensationTier") -> bool:
        """True when this tier is as severe as ``other`` or more."""
        return self.rank <= other.rank

    def raised(self, steps: int = 1) -> "CompensationTier":
        return CompensationTier(f"P{max(0, self.rank - steps)}")


_TIER_LABELS = {
    CompensationTier.P0: "Critical",
    CompensationTier.P1: "Severe",
    CompensationTier.P2: "Moderate",
    CompensationTier.P3: "Minor",
    CompensationTier.P4: "Minimal",
    CompensationTier.P5: "None",
}


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISTRIBUTED = "distributed"


class CaseState(str, enum.Enum):
    INTAKE = "intake"
    ANALYZING = "analyzing"
    NO_ISSUE = "no_issue"
    AUTO_RESOLVED = "auto_resolved"
    AWAITING_APPROVAL = "awaiting_approval"
    ESCALATED = "escalated"
    APPROVED = "approved"
    REJECTED = "rejected"


class ClassificationTask(str, enum.Enum):
    ISSUE_DETECTION = "issue_detection"
    SENTIMENT = "sentiment"
    CLAIM_VALIDATION = "claim_validation"
    REASONING = "reasoning"


class CaseEvent(str, enum.Enum):
    REQUEST_CREATED = "request.created"
    REQUEST_APPROVED = "request.approved"
    REQUEST_REJECTED = "request.rejected"
    REQUEST_DISTRIBUTED = "request.distributed"
    CASE_ROUTED = "case.routed"
    RESPONSE_RELEASED = "case.response_released"
