"""Pydantic models for the triage pipeline.

Classifier results accept the camelCase keys the prompts ask the model for
(``issueType``, ``confidenceScore``...) as well as snake_case, and always
serialize in snake_case. Rewards are a tagged union validated at
construction, so a bundle can never carry a zero or negative grant.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from triagedesk.common.enums import (
    AccountStatus,
    CaseState,
    CompensationTier,
    IssueFrequency,
    IssueType,
    PlayerImpact,
    RequestStatus,
    Tone,
    Urgency,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp_unit(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        score = float(value)
    except TypeError as e:
        raise ValueError(f"not a number: {value!r}") from e
    return min(1.0, max(0.0, score))


def _normalize_choice(value: Any) -> Any:
    if isinstance(value, str):
        cleaned = value.strip().lower().replace(" ", "_").replace("-", "_")
        if cleaned in ("", "null", "none", "n/a"):
            return None
        return cleaned
    return value


# ---------------------------------------------------------------------------
# Player context
# ---------------------------------------------------------------------------


class PlayerContext(BaseModel):
    """Telemetry supplied by the caller. Immutable for the whole analysis."""

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(..., min_length=1)
    player_name: str | None = None
    game_level: int = Field(1, ge=0)
    vip_level: int = Field(0, ge=0, le=15)
    total_spend: float = Field(0.0, ge=0)
    session_days: int = Field(0, ge=0)
    churn_risk: int = Field(0, ge=0, le=100, description="Likelihood (0-100) the player stops playing")
    system_log: str | None = Field(None, description="Free-text system-log annotations for this player")
    account_status: AccountStatus = AccountStatus.ACTIVE
    lock_reason: str | None = None

    @property
    def has_system_log(self) -> bool:
        return bool(self.system_log and self.system_log.strip())

    @property
    def is_locked(self) -> bool:
        return self.account_status == AccountStatus.LOCKED


# ---------------------------------------------------------------------------
# Classifier results
# ---------------------------------------------------------------------------


class _ClassifierResult(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=AliasGenerator(validation_alias=to_camel),
    )


_ISSUE_TYPE_ALIASES = {
    "bug": "technical",
    "crash": "technical",
    "performance": "technical",
    "connectivity": "technical",
    "payment": "account",
    "billing": "account",
    "login": "account",
    "account_access": "account",
}


class IssueDetectionResult(_ClassifierResult):
    detected: bool = False
    issue_type: IssueType | None = None
    description: str = ""
    player_impact: PlayerImpact | None = None
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator("issue_type", mode="before")
    @classmethod
    def _issue_type(cls, v: Any) -> Any:
        v = _normalize_choice(v)
        return _ISSUE_TYPE_ALIASES.get(v, v) if isinstance(v, str) else v

    @field_validator("player_impact", mode="before")
    @classmethod
    def _impact(cls, v: Any) -> Any:
        return _normalize_choice(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return _clamp_unit(v)


class SentimentResult(_ClassifierResult):
    tone: Tone = Tone.NEUTRAL
    urgency: Urgency = Urgency.MEDIUM
    repeat_issue: bool = False
    issue_frequency: IssueFrequency = IssueFrequency.UNIQUE

    @field_validator("tone", "urgency", "issue_frequency", mode="before")
    @classmethod
    def _choices(cls, v: Any) -> Any:
        return _normalize_choice(v)


class ClaimValidation(_ClassifierResult):
    contradiction_detected: bool = False
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    evidence_exists: bool = False

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return _clamp_unit(v)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning(cls, v: Any) -> str:
        return "" if v is None else str(v)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class Gold(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["gold"] = "gold"
    amount: int = Field(..., gt=0)


class Gems(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["gems"] = "gems"
    amount: int = Field(..., gt=0)


class Resource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["resource"] = "resource"
    resource: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class Item(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["item"] = "item"
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0)


Reward = Annotated[Union[Gold, Gems, Resource, Item], Field(discriminator="kind")]


class CompensationBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    rewards: list[Reward] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        gold: float = 0,
        gems: float = 0,
        resources: dict[str, float] | None = None,
        items: dict[str, int] | None = None,
    ) -> CompensationBundle:
        """Assemble a bundle from plain amounts, dropping anything that rounds to zero."""
        rewards: list[Gold | Gems | Resource | Item] = []
        if round(gold) > 0:
            rewards.append(Gold(amount=round(gold)))
        if round(gems) > 0:
            rewards.append(Gems(amount=round(gems)))
        for name, amount in (resources or {}).items():
            if round(amount) > 0:
                rewards.append(Resource(resource=name, amount=round(amount)))
        for name, quantity in (items or {}).items():
            if quantity > 0:
                rewards.append(Item(name=name, quantity=quantity))
        return cls(rewards=rewards)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def gold(self) -> int:
        return sum(r.amount for r in self.rewards if isinstance(r, Gold))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def gems(self) -> int:
        return sum(r.amount for r in self.rewards if isinstance(r, Gems))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resources(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for r in self.rewards:
            if isinstance(r, Resource):
                totals[r.resource] = totals.get(r.resource, 0) + r.amount
        return totals

    @computed_field  # type: ignore[prop-decorator]
    @property
    def items(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for r in self.rewards:
            if isinstance(r, Item):
                totals[r.name] = totals.get(r.name, 0) + r.quantity
        return totals

    @property
    def is_empty(self) -> bool:
        return not self.rewards

    def describe(self) -> str:
        parts: list[str] = []
        if self.gold:
            parts.append(f"{self.gold:,} gold")
        if self.gems:
            parts.append(f"{self.gems:,} gems")
        parts.extend(f"{amount:,} {name}" for name, amount in self.resources.items())
        parts.extend(f"{qty}x {name}" for name, qty in self.items.items())
        return ", ".join(parts) if parts else "no compensation"


# ---------------------------------------------------------------------------
# Recommendation and analysis
# ---------------------------------------------------------------------------


class CompensationRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: CompensationTier
    reasoning: str = Field(..., min_length=1)
    suggested_compensation: CompensationBundle = Field(default_factory=CompensationBundle)
    requires_human_review: bool = False
    estimated_review_time: str | None = None
    denied: bool = False
    evidence_exists: bool = False
    alternative_actions: list[str] = Field(default_factory=list)
    prevention_suggestions: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _denial_grants_nothing(self) -> CompensationRecommendation:
        if self.denied and (self.tier != CompensationTier.P5 or not self.suggested_compensation.is_empty):
            raise ValueError("A denied recommendation must be tier P5 with no compensation")
        return self


class AnalysisResult(BaseModel):
    issue_detected: bool
    issue: IssueDetectionResult | None = None
    sentiment: SentimentResult | None = None
    claim_validation: ClaimValidation | None = None
    recommendation: CompensationRecommendation | None = None
    emotional_intensity: int | None = None
    frustration_level: int | None = None


class ResolutionPlan(BaseModel):
    category: str
    actions: list[str]
    timeline: str
    follow_up: str


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


class CompensationRequest(BaseModel):
    """A compensation request as held by the ledger.

    Frozen: status only changes by the ledger replacing the record.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=lambda: f"comp_{uuid.uuid4().hex}")
    case_id: str | None = None
    player_id: str
    tier: CompensationTier
    issue_type: IssueType | None = None
    status: RequestStatus = RequestStatus.PENDING
    requires_human_review: bool = False
    compensation: CompensationBundle = Field(default_factory=CompensationBundle)
    player_context_snapshot: dict[str, Any] = Field(default_factory=dict)
    reviewed_by: str | None = None
    review_notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status != RequestStatus.PENDING


class CaseTransition(BaseModel):
    from_state: CaseState
    to_state: CaseState
    reason: str
    at: datetime = Field(default_factory=_utcnow)


class EscalationCase(BaseModel):
    """One player complaint travelling through the approval state machine."""

    id: str = Field(default_factory=lambda: f"case_{uuid.uuid4().hex[:16]}")
    state: CaseState = CaseState.INTAKE
    message: str
    player: PlayerContext
    analysis: AnalysisResult | None = None
    resolution: ResolutionPlan | None = None
    request_id: str | None = None
    awaiting_approval: bool = False
    pending_response_text: str | None = None
    released_text: str | None = None
    submitted: bool = False
    personal_delivery: bool = False
    route_reason: str | None = None
    history: list[CaseTransition] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def age(self, now: datetime | None = None) -> timedelta:
        return (now or _utcnow()) - self.created_at


class LedgerStats(BaseModel):
    total_requests: int = 0
    pending_requests: int = 0
    completed_requests: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_tier: dict[str, int] = Field(default_factory=dict)
    by_issue_type: dict[str, int] = Field(default_factory=dict)
    rejection_rate_percent: float = 0.0
    automated_resolution_rate_percent: float = 0.0
    avg_resolution_minutes: float = 0.0
