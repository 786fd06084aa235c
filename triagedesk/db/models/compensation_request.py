from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from triagedesk.common.enums import RequestStatus
from triagedesk.db.base import Base, TimestampMixin


class CompensationRequestRecord(Base, TimestampMixin):
    __tablename__ = "compensation_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    case_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    player_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    tier: Mapped[str] = mapped_column(String(4), nullable=False)
    issue_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.PENDING.value, index=True
    )
    requires_human_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    compensation: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    player_context_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
