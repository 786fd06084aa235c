from fastapi import HTTPException, status


class TriageDeskException(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundError(TriageDeskException):
    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(TriageDeskException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_409_CONFLICT)


class InvalidTransitionError(ConflictError):
    def __init__(self, kind: str, current: str, target: str):
        super().__init__(detail=f"Cannot move {kind} from '{current}' to '{target}'")
        self.current = current
        self.target = target


class ExternalServiceError(TriageDeskException):
    def __init__(self, service: str, detail: str | None = None):
        msg = f"External service error: {service}"
        if detail:
            msg += f" - {detail}"
        super().__init__(detail=msg, status_code=status.HTTP_502_BAD_GATEWAY)


class TextServiceUnavailableError(TriageDeskException):
    """The text-generation service cannot be reached; route the case to manual handling."""

    def __init__(self, service: str, detail: str | None = None):
        msg = f"Service unavailable: {service}"
        if detail:
            msg += f" - {detail}"
        super().__init__(detail=msg, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        self.service = service
