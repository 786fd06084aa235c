from fastapi import APIRouter

from triagedesk.api.v1.cases import router as cases_router
from triagedesk.api.v1.compensation import router as compensation_router
from triagedesk.api.v1.health import router as health_router

v1_router = APIRouter()

v1_router.include_router(cases_router)
v1_router.include_router(compensation_router)
v1_router.include_router(health_router)
