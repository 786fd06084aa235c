from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from triagedesk.api.deps import get_triage_service
from triagedesk.api.ws import manager
from triagedesk.config import settings
from triagedesk.core.triage.fallbacks import FALLBACK_TABLE_VERSION
from triagedesk.core.triage.service import TriageService

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "service": "triagedesk",
        "version": "1.0.0",
        "env": settings.APP_ENV,
        "ledger_backend": settings.LEDGER_BACKEND,
        "fallback_table_version": FALLBACK_TABLE_VERSION,
        "ws_connections": manager.active_connections,
    }


@router.get("/ai")
async def ai_health(service: TriageService = Depends(get_triage_service)):
    result = await service.ai_health()
    return JSONResponse(result, status_code=200 if result["healthy"] else 503)
