"""Request ledger: the one place compensation request status changes.

Status updates are compare-and-set against the store: the first writer wins,
later attempts on a resolved request are logged and leave it untouched. The
ledger also owns the escalation cases, addressed by id, and forgets the oldest
closed ones beyond a retention limit.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from triagedesk.common import events
from triagedesk.common.enums import CaseEvent, CompensationTier, RequestStatus
from triagedesk.common.exceptions import NotFoundError
from triagedesk.common.logging import get_logger
from triagedesk.config import settings
from triagedesk.core.triage.schemas import CompensationRequest, EscalationCase, LedgerStats
from triagedesk.db.models.compensation_request import CompensationRequestRecord

logger = get_logger("triage.ledger")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class LedgerStore(ABC):
    @abstractmethod
    async def create(self, request: CompensationRequest) -> CompensationRequest:
        """Insert ``request``; if its id already exists return the stored record unchanged."""

    @abstractmethod
    async def get(self, request_id: str) -> CompensationRequest | None: ...

    @abstractmethod
    async def update_status(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        status: RequestStatus,
        reviewed_by: str | None = None,
        review_notes: str | None = None,
    ) -> bool:
        """Set ``status`` only if the current status is one of ``expected``."""

    @abstractmethod
    async def list(
        self, player_id: str | None = None, status: RequestStatus | None = None
    ) -> list[CompensationRequest]: ...


class InMemoryLedgerStore(LedgerStore):
    def __init__(self) -> None:
        self._requests: dict[str, CompensationRequest] = {}
        self._lock = asyncio.Lock()

    async def create(self, request: CompensationRequest) -> CompensationRequest:
        async with self._lock:
            return self._requests.setdefault(request.id, request)

    async def get(self, request_id: str) -> CompensationRequest | None:
        return self._requests.get(request_id)

    async def update_status(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        status: RequestStatus,
        reviewed_by: str | None = None,
        review_notes: str | None = None,
    ) -> bool:
        async with self._lock:
            current = self._requests.get(request_id)
            if current is None or current.status not in set(expected):
                return False
            now = _utcnow()
            self._requests[request_id] = current.model_copy(
                update={
                    "status": status,
                    "reviewed_by": reviewed_by or current.reviewed_by,
                    "review_notes": review_notes or current.review_notes,
                    "updated_at": now,
                    "resolved_at": current.resolved_at or now,
                }
            )
            return True

    async def list(
        self, player_id: str | None = None, status: RequestStatus | None = None
    ) -> list[CompensationRequest]:
        return [
            r
            for r in sorted(self._requests.values(), key=lambda r: r.created_at)
            if (player_id is None or r.player_id == player_id) and (status is None or r.status == status)
        ]


class SqlLedgerStore(LedgerStore):
    """SQLAlchemy-backed store; the conditional UPDATE is the compare-and-set."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _to_request(record: CompensationRequestRecord) -> CompensationRequest:
        return CompensationRequest.model_validate(record)

    async def create(self, request: CompensationRequest) -> CompensationRequest:
        async with self.session_factory() as session:
            existing = await session.get(CompensationRequestRecord, request.id)
            if existing is not None:
                return self._to_request(existing)
            session.add(
                CompensationRequestRecord(
                    id=request.id,
                    case_id=request.case_id,
                    player_id=request.player_id,
                    tier=request.tier.value,
                    issue_type=request.issue_type.value if request.issue_type else None,
                    status=request.status.value,
                    requires_human_review=request.requires_human_review,
                    compensation=request.compensation.model_dump(mode="json"),
                    player_context_snapshot=request.player_context_snapshot,
                    reviewed_by=request.reviewed_by,
                    review_notes=request.review_notes,
                    created_at=request.created_at,
                    updated_at=request.updated_at,
                    resolved_at=request.resolved_at,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                # Lost an insert race on the same id
                await session.rollback()
                existing = await session.get(CompensationRequestRecord, request.id)
                if existing is None:
                    raise
                return self._to_request(existing)
        return request

    async def get(self, request_id: str) -> CompensationRequest | None:
        async with self.session_factory() as session:
            record = await session.get(CompensationRequestRecord, request_id)
            return self._to_request(record) if record else None

    async def update_status(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        status: RequestStatus,
        reviewed_by: str | None = None,
        review_notes: str | None = None,
    ) -> bool:
        now = _utcnow()
        values: dict = {"status": status.value, "updated_at": now}
        if reviewed_by:
            values["reviewed_by"] = reviewed_by
        if review_notes:
            values["review_notes"] = review_notes
        if status in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            values["resolved_at"] = now

        async with self.session_factory() as session:
            result = await session.execute(
                update(CompensationRequestRecord)
                .where(
                    CompensationRequestRecord.id == request_id,
                    CompensationRequestRecord.status.in_([s.value for s in expected]),
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount == 1

    async def list(
        self, player_id: str | None = None, status: RequestStatus | None = None
    ) -> list[CompensationRequest]:
        query = select(CompensationRequestRecord).order_by(CompensationRequestRecord.created_at)
        if player_id is not None:
            query = query.where(CompensationRequestRecord.player_id == player_id)
        if status is not None:
            query = query.where(CompensationRequestRecord.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [self._to_request(r) for r in result.scalars().all()]


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class RequestLedger:
    def __init__(self, store: LedgerStore | None = None, closed_case_retention: int | None = None):
        self.store = store or InMemoryLedgerStore()
        self._cases: dict[str, EscalationCase] = {}
        # Closed case ids, oldest first
        self._closed: OrderedDict[str, None] = OrderedDict()
        self.closed_case_retention = (
            settings.CLOSED_CASE_RETENTION if closed_case_retention is None else closed_case_retention
        )

    # -- cases --

    def register_case(self, case: EscalationCase) -> EscalationCase:
        return self._cases.setdefault(case.id, case)

    def close_case(self, case: EscalationCase) -> None:
        """Mark a finished case; beyond the retention limit the oldest closed cases are forgotten.

        Their compensation requests stay in the store.
        """
        if case.id in self._closed or case.id not in self._cases:
            return
        self._closed[case.id] = None
        while len(self._closed) > self.closed_case_retention:
            evicted, _ = self._closed.popitem(last=False)
            self._cases.pop(evicted, None)
            logger.debug("Evicted closed case %s", evicted)

    def get_case(self, case_id: str) -> EscalationCase:
        case = self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        return case

    def list_cases(self) -> list[EscalationCase]:
        return sorted(self._cases.values(), key=lambda c: c.created_at)

    # -- requests --

    async def create(self, request: CompensationRequest) -> CompensationRequest:
        stored = await self.store.create(request)
        if stored is request:
            logger.info("Created request %s (%s) for player %s", request.id, request.tier.value, request.player_id)
            await events.emit(CaseEvent.REQUEST_CREATED.value, _event_data(stored))
        return stored

    async def get(self, request_id: str) -> CompensationRequest:
        request = await self.store.get(request_id)
        if request is None:
            raise NotFoundError("Compensation request", request_id)
        return request

    async def get_status(self, request_id: str) -> RequestStatus:
        return (await self.get(request_id)).status

    async def list(
        self, player_id: str | None = None, status: RequestStatus | None = None
    ) -> list[CompensationRequest]:
        return await self.store.list(player_id=player_id, status=status)

    async def _move(
        self,
        request_id: str,
        expected: tuple[RequestStatus, ...],
        status: RequestStatus,
        event: CaseEvent,
        reviewed_by: str | None = None,
        review_notes: str | None = None,
    ) -> tuple[CompensationRequest, bool]:
        changed = await self.store.update_status(request_id, expected, status, reviewed_by, review_notes)
        request = await self.get(request_id)
        if not changed:
            logger.warning(
                "Ignored %s for request %s: status is already %s",
                status.value,
                request_id,
                request.status.value,
            )
            return request, False
        logger.info("Request %s -> %s", request_id, status.value)
        await events.emit(event.value, _event_data(request))
        return request, True

    async def approve(
        self, request_id: str, reviewed_by: str | None = None, notes: str | None = None
    ) -> tuple[CompensationRequest, bool]:
        """First resolution wins; returns the current record and whether this call changed it."""
        return await self._move(
            request_id,
            (RequestStatus.PENDING,),
            RequestStatus.APPROVED,
            CaseEvent.REQUEST_APPROVED,
            reviewed_by,
            notes,
        )

    async def reject(
        self, request_id: str, reviewed_by: str | None = None, notes: str | None = None
    ) -> tuple[CompensationRequest, bool]:
        return await self._move(
            request_id,
            (RequestStatus.PENDING,),
            RequestStatus.REJECTED,
            CaseEvent.REQUEST_REJECTED,
            reviewed_by,
            notes,
        )

    async def distribute(self, request_id: str) -> tuple[CompensationRequest, bool]:
        return await self._move(
            request_id,
            (RequestStatus.APPROVED,),
            RequestStatus.DISTRIBUTED,
            CaseEvent.REQUEST_DISTRIBUTED,
        )

    async def stats(self) -> LedgerStats:
        requests = await self.store.list()
        if not requests:
            return LedgerStats(by_tier={t.value: 0 for t in CompensationTier})

        by_status = Counter(r.status.value for r in requests)
        by_tier = Counter(r.tier.value for r in requests)
        by_issue_type = Counter(r.issue_type.value for r in requests if r.issue_type)

        resolved = [r for r in requests if r.is_resolved]
        rejected = by_status.get(RequestStatus.REJECTED.value, 0)
        automated = sum(1 for r in resolved if not r.requires_human_review and r.reviewed_by is None)
        durations = [
            (r.resolved_at - r.created_at).total_seconds() / 60
            for r in resolved
            if r.resolved_at is not None
        ]

        return LedgerStats(
            total_requests=len(requests),
            pending_requests=by_status.get(RequestStatus.PENDING.value, 0),
            completed_requests=len(resolved),
            by_status=dict(by_status),
            by_tier={t.value: by_tier.get(t.value, 0) for t in CompensationTier},
            by_issue_type=dict(by_issue_type),
            rejection_rate_percent=round(100 * rejected / len(resolved), 1) if resolved else 0.0,
            automated_resolution_rate_percent=round(100 * automated / len(resolved), 1) if resolved else 0.0,
            avg_resolution_minutes=round(sum(durations) / len(durations), 2) if durations else 0.0,
        )


def _event_data(request: CompensationRequest) -> dict:
    return {
        "request_id": request.id,
        "case_id": request.case_id,
        "player_id": request.player_id,
        "tier": request.tier.value,
        "status": request.status.value,
    }
