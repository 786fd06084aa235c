from triagedesk.db.models.compensation_request import CompensationRequestRecord

__all__ = ["CompensationRequestRecord"]
