from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from triagedesk.api.deps import get_triage_service
from triagedesk.core.triage.schemas import (
    AnalysisResult,
    CaseTransition,
    EscalationCase,
    PlayerContext,
    ResolutionPlan,
)
from triagedesk.core.triage.service import TriageService

router = APIRouter(prefix="/cases", tags=["Cases"])


# ---------- Schemas ----------


class CaseCreateRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    player: PlayerContext
    submit: bool = Field(True, description="Route the case right after analysis")


class CaseReviewRequest(BaseModel):
    reviewed_by: str = "agent"
    notes: str | None = None


class CaseResponse(BaseModel):
    id: str
    state: str
    message: str
    player_id: str
    analysis: AnalysisResult | None
    resolution: ResolutionPlan | None
    request_id: str | None
    awaiting_approval: bool
    pending_response_text: str | None
    released_text: str | None
    submitted: bool
    personal_delivery: bool
    route_reason: str | None
    history: list[CaseTransition]
    created_at: datetime
    updated_at: datetime
    age_seconds: float

    @classmethod
    def from_case(cls, case: EscalationCase) -> "CaseResponse":
        return cls(
            id=case.id,
            state=case.state.value,
            message=case.message,
            player_id=case.player.player_id,
            analysis=case.analysis,
            resolution=case.resolution,
            request_id=case.request_id,
            awaiting_approval=case.awaiting_approval,
            pending_response_text=case.pending_response_text,
            released_text=case.released_text,
            submitted=case.submitted,
            personal_delivery=case.personal_delivery,
            route_reason=case.route_reason,
            history=case.history,
            created_at=case.created_at,
            updated_at=case.updated_at,
            age_seconds=round(case.age().total_seconds(), 3),
        )


# ---------- Endpoints ----------


@router.post("", response_model=CaseResponse, status_code=201)
async def create_case(body: CaseCreateRequest, service: TriageService = Depends(get_triage_service)):
    if body.submit:
        case = await service.triage(body.message, body.player)
    else:
        case = await service.open_case(body.message, body.player)
    return CaseResponse.from_case(case)


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(case_id: str, service: TriageService = Depends(get_triage_service)):
    return CaseResponse.from_case(service.get_case(case_id))


@router.post("/{case_id}/submit", response_model=CaseResponse)
async def submit_case(case_id: str, service: TriageService = Depends(get_triage_service)):
    return CaseResponse.from_case(await service.submit_case(case_id))


@router.post("/{case_id}/approve", response_model=CaseResponse)
async def approve_case(
    case_id: str,
    body: CaseReviewRequest | None = None,
    service: TriageService = Depends(get_triage_service),
):
    body = body or CaseReviewRequest()
    case = await service.approve_case(case_id, reviewed_by=body.reviewed_by, notes=body.notes)
    return CaseResponse.from_case(case)


@router.post("/{case_id}/reject", response_model=CaseResponse)
async def reject_case(
    case_id: str,
    body: CaseReviewRequest | None = None,
    service: TriageService = Depends(get_triage_service),
):
    body = body or CaseReviewRequest()
    case = await service.reject_case(case_id, reviewed_by=body.reviewed_by, notes=body.notes)
    return CaseResponse.from_case(case)
