from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from triagedesk.api.deps import get_triage_service
from triagedesk.common.enums import RequestStatus
from triagedesk.core.triage.schemas import CompensationRequest, LedgerStats
from triagedesk.core.triage.service import TriageService

router = APIRouter(prefix="/compensation", tags=["Compensation"])


class CompensationListResponse(BaseModel):
    requests: list[CompensationRequest]
    total: int


class CompensationStatusResponse(BaseModel):
    request: CompensationRequest
    status: RequestStatus


@router.get("", response_model=CompensationListResponse)
async def list_requests(
    player_id: str | None = Query(None),
    status: RequestStatus | None = Query(None),
    service: TriageService = Depends(get_triage_service),
):
    requests = await service.list_requests(player_id=player_id, status=status)
    return CompensationListResponse(requests=requests, total=len(requests))


# Declared before /{request_id} so "stats" is not taken for an id
@router.get("/stats", response_model=LedgerStats)
async def request_stats(service: TriageService = Depends(get_triage_service)):
    return await service.stats()


@router.get("/{request_id}", response_model=CompensationStatusResponse)
async def get_request(request_id: str, service: TriageService = Depends(get_triage_service)):
    request = await service.get_request(request_id)
    return CompensationStatusResponse(request=request, status=request.status)


@router.post("/{request_id}/distribute", response_model=CompensationStatusResponse)
async def distribute_request(request_id: str, service: TriageService = Depends(get_triage_service)):
    request = await service.distribute(request_id)
    return CompensationStatusResponse(request=request, status=request.status)
