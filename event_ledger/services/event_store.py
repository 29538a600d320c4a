"""
Event Ledger - Event Store

Persistence and lifecycle of accounting event records:
- Creating pending events
- Event queries (by status, type, company, date range, source document)
- Status transitions with optimistic guards
- Event-to-journal traceability
- Audit trail of every transition
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic_core import to_jsonable_python
from sqlalchemy import String, cast, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from event_ledger.models.accounting_event import (
    AccountingEvent,
    AccountingEventAudit,
    AccountingEventType,
    EventAuditAction,
    EventJournalEntry,
    EventStatus,
)
from event_ledger.models.journal import JournalEntry
from event_ledger.schemas.accounting_events import EventStatistics

logger = logging.getLogger(__name__)


class EventStore:
    """Data access for accounting events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_event(
        self,
        event_type: AccountingEventType,
        event_date: date,
        affected_companies: Sequence[uuid.UUID],
        event_data: Dict[str, Any],
        source_document_type: Optional[str] = None,
        source_document_id: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> AccountingEvent:
        """Insert a pending event and commit it."""
        companies = list(dict.fromkeys(str(company_id) for company_id in affected_companies))

        event = AccountingEvent(
            event_type=AccountingEventType(event_type),
            event_date=event_date,
            status=EventStatus.PENDING,
            affected_companies=companies,
            event_data=to_jsonable_python(event_data or {}),
            source_document_type=source_document_type,
            source_document_id=source_document_id,
            created_by=created_by,
            retry_count=0,
            skipped_companies=[],
        )
        self.db.add(event)
        await self.db.flush()

        self.record_audit(
            event.id,
            EventAuditAction.CREATED,
            to_status=EventStatus.PENDING,
            details={"affected_companies": companies},
        )
        await self.db.commit()

        logger.info(f"Created {event.event_type.value} event {event.id} for {len(companies)} company(ies)")
        return event

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_event(self, event_id: uuid.UUID, refresh: bool = False) -> Optional[AccountingEvent]:
        """Get an event by ID. refresh=True reloads a copy already in the session."""
        result = await self.db.execute(
            select(AccountingEvent)
            .where(AccountingEvent.id == event_id)
            .execution_options(populate_existing=refresh)
        )
        return result.scalar_one_or_none()

    async def get_event_with_journals(
        self, event_id: uuid.UUID
    ) -> Tuple[Optional[AccountingEvent], List[JournalEntry]]:
        """Get an event together with the journals it produced (with lines)."""
        event = await self.get_event(event_id, refresh=True)
        if event is None:
            return None, []

        result = await self.db.execute(
            select(JournalEntry)
            .join(EventJournalEntry, EventJournalEntry.journal_entry_id == JournalEntry.id)
            .where(EventJournalEntry.event_id == event_id)
            .options(selectinload(JournalEntry.lines))
            .order_by(JournalEntry.created_at, JournalEntry.reference_number)
        )
        return event, list(result.scalars().all())

    async def list_events(
        self,
        status: Optional[EventStatus] = None,
        event_type: Optional[AccountingEventType] = None,
        company_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        source_document_type: Optional[str] = None,
        source_document_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[AccountingEvent], int]:
        """List events with filtering, newest first."""
        query = select(AccountingEvent)

        if status:
            query = query.where(AccountingEvent.status == status)
        if event_type:
            query = query.where(AccountingEvent.event_type == event_type)
        if company_id:
            # affected_companies is a JSON array of UUID strings
            query = query.where(
                cast(AccountingEvent.affected_companies, String).contains(str(company_id))
            )
        if start_date:
            query = query.where(AccountingEvent.event_date >= start_date)
        if end_date:
            query = query.where(AccountingEvent.event_date <= end_date)
        if source_document_type:
            query = query.where(AccountingEvent.source_document_type == source_document_type)
        if source_document_id:
            query = query.where(AccountingEvent.source_document_id == source_document_id)

        count_query = select(func.count()).select_from(query.subquery())
        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(desc(AccountingEvent.created_at), desc(AccountingEvent.event_date))
        query = query.limit(limit).offset(offset)
        query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_pending_event_ids(self, limit: int) -> List[uuid.UUID]:
        """IDs of pending events, oldest first."""
        result = await self.db.execute(
            select(AccountingEvent.id)
            .where(AccountingEvent.status == EventStatus.PENDING)
            .order_by(AccountingEvent.created_at, AccountingEvent.event_date)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_statistics(self) -> EventStatistics:
        """Event counts per status."""
        result = await self.db.execute(
            select(AccountingEvent.status, func.count(AccountingEvent.id))
            .group_by(AccountingEvent.status)
        )
        counts = {row[0]: row[1] for row in result.all()}

        stats = EventStatistics(
            pending=counts.get(EventStatus.PENDING, 0),
            processed=counts.get(EventStatus.PROCESSED, 0),
            failed=counts.get(EventStatus.FAILED, 0),
            cancelled=counts.get(EventStatus.CANCELLED, 0),
        )
        stats.total = stats.pending + stats.processed + stats.failed + stats.cancelled
        return stats

    async def check_duplicate(
        self,
        event_type: AccountingEventType,
        source_document_type: str,
        source_document_id: str,
    ) -> bool:
        """True if a non-cancelled event exists for (type, source document)."""
        result = await self.db.execute(
            select(func.count(AccountingEvent.id)).where(
                AccountingEvent.event_type == event_type,
                AccountingEvent.source_document_type == source_document_type,
                AccountingEvent.source_document_id == source_document_id,
                AccountingEvent.status != EventStatus.CANCELLED,
            )
        )
        return (result.scalar() or 0) > 0

    async def get_event_journal_links(self, event_id: uuid.UUID) -> List[EventJournalEntry]:
        result = await self.db.execute(
            select(EventJournalEntry)
            .where(EventJournalEntry.event_id == event_id)
            .order_by(EventJournalEntry.created_at)
        )
        return list(result.scalars().all())

    async def get_event_journal_entry_ids(self, event_id: uuid.UUID) -> List[uuid.UUID]:
        links = await self.get_event_journal_links(event_id)
        return [link.journal_entry_id for link in links]

    async def get_audit_trail(self, event_id: uuid.UUID) -> List[AccountingEventAudit]:
        result = await self.db.execute(
            select(AccountingEventAudit)
            .where(AccountingEventAudit.event_id == event_id)
            .order_by(AccountingEventAudit.created_at)
        )
        return list(result.scalars().all())

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    def record_audit(
        self,
        event_id: uuid.UUID,
        action: EventAuditAction,
        from_status: Optional[EventStatus] = None,
        to_status: Optional[EventStatus] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AccountingEventAudit:
        """Add an audit row to the current transaction (caller commits)."""
        audit = AccountingEventAudit(
            event_id=event_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            message=message,
            details=to_jsonable_python(details) if details else None,
        )
        self.db.add(audit)
        return audit

    async def _transition(
        self,
        event_id: uuid.UUID,
        allowed_from: Sequence[EventStatus],
        values: Dict[str, Any],
    ) -> bool:
        """
        Conditional status update. Returns False when the event is no longer
        in one of the allowed statuses.
        """
        result = await self.db.execute(
            update(AccountingEvent)
            .where(
                AccountingEvent.id == event_id,
                AccountingEvent.status.in_(list(allowed_from)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_processed(
        self,
        event_id: uuid.UUID,
        observed_status: EventStatus,
        skipped_companies: Sequence[uuid.UUID] = (),
    ) -> bool:
        """
        Compare-and-set the event to processed inside the caller's
        transaction. Does not commit.
        """
        return await self._transition(
            event_id,
            [observed_status],
            {
                "status": EventStatus.PROCESSED,
                "processed_at": datetime.now(timezone.utc),
                "error_message": None,
                "skipped_companies": [str(company_id) for company_id in skipped_companies],
            },
        )

    async def mark_processed_skipped(
        self,
        event_id: uuid.UUID,
        observed_status: EventStatus,
        skipped_companies: Sequence[uuid.UUID],
    ) -> bool:
        """Mark processed with no journals because every company was disabled."""
        claimed = await self.claim_processed(event_id, observed_status, skipped_companies)
        if not claimed:
            await self.db.rollback()
            return False

        self.record_audit(
            event_id,
            EventAuditAction.PROCESSED_SKIPPED,
            from_status=observed_status,
            to_status=EventStatus.PROCESSED,
            message="Journals skipped for disabled companies",
            details={"skipped_companies": [str(c) for c in skipped_companies]},
        )
        await self.db.commit()
        return True

    async def mark_failed(self, event_id: uuid.UUID, error_message: str) -> bool:
        """
        Record a processing failure: status failed, error message stored,
        retry_count incremented. A processed event is never moved back.
        """
        current = await self.db.execute(
            select(AccountingEvent.status).where(AccountingEvent.id == event_id)
        )
        from_status = current.scalar_one_or_none()
        if from_status is None:
            return False

        updated = await self._transition(
            event_id,
            [EventStatus.PENDING, EventStatus.FAILED],
            {
                "status": EventStatus.FAILED,
                "error_message": error_message,
                "retry_count": AccountingEvent.retry_count + 1,
            },
        )
        if not updated:
            await self.db.rollback()
            return False

        self.record_audit(
            event_id,
            EventAuditAction.FAILED,
            from_status=from_status,
            to_status=EventStatus.FAILED,
            message=error_message,
        )
        await self.db.commit()
        return True

    async def reset_for_retry(self, event_id: uuid.UUID) -> bool:
        """Move a pending or failed event back to pending and clear its error."""
        current = await self.db.execute(
            select(AccountingEvent.status).where(AccountingEvent.id == event_id)
        )
        from_status = current.scalar_one_or_none()

        updated = await self._transition(
            event_id,
            [EventStatus.PENDING, EventStatus.FAILED],
            {"status": EventStatus.PENDING, "error_message": None},
        )
        if not updated:
            await self.db.rollback()
            return False

        self.record_audit(
            event_id,
            EventAuditAction.RETRIED,
            from_status=from_status,
            to_status=EventStatus.PENDING,
        )
        await self.db.commit()
        return True

    async def cancel(self, event_id: uuid.UUID, reason: Optional[str] = None) -> bool:
        """Cancel a pending or failed event. Cancelled is terminal."""
        current = await self.db.execute(
            select(AccountingEvent.status).where(AccountingEvent.id == event_id)
        )
        from_status = current.scalar_one_or_none()

        updated = await self._transition(
            event_id,
            [EventStatus.PENDING, EventStatus.FAILED],
            {"status": EventStatus.CANCELLED},
        )
        if not updated:
            await self.db.rollback()
            return False

        self.record_audit(
            event_id,
            EventAuditAction.CANCELLED,
            from_status=from_status,
            to_status=EventStatus.CANCELLED,
            message=reason,
        )
        await self.db.commit()
        return True
