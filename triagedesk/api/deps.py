from fastapi import Request

from triagedesk.core.triage.service import TriageService


def get_triage_service(request: Request) -> TriageService:
    return request.app.state.triage_service
