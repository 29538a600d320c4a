"""
Event Ledger - Event Processor

Core engine turning accounting events into journal entries.

Pipeline for one event:
1. Load the event; refuse processed/cancelled events
2. Look up the handler, validate the payload, generate journal specs
3. Drop companies whose settings disable the event type
4. Resolve default accounts and the draft/posted target per company
5. Validate the balance of every journal before anything is written
6. Write all journals and flip the event to processed in one transaction

Every path returns an EventProcessResult; no exception leaves the processor.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger.config import settings
from event_ledger.models.accounting_event import (
    AccountingEvent,
    AccountingEventType,
    EventAuditAction,
    EventStatus,
)
from event_ledger.models.journal import JournalEntryStatus
from event_ledger.schemas.accounting_events import EventProcessError, EventProcessResult
from event_ledger.schemas.journal import JournalSpec, PreparedJournal
from event_ledger.services.account_resolver import DefaultAccountResolver
from event_ledger.services.balance_validator import validate_balance
from event_ledger.services.event_handlers import EVENT_HANDLERS, EventHandler
from event_ledger.services.event_store import EventStore
from event_ledger.services.journal_event_settings_service import JournalEventSettingsService
from event_ledger.services.journal_writer import AtomicJournalWriter, StaleEventError

logger = logging.getLogger(__name__)


class EventProcessor:
    """
    Orchestrates event processing and the event lifecycle.

    One instance per unit of work; it shares the caller's session with the
    event store, the settings gate and the journal writer.
    """

    def __init__(
        self,
        db: AsyncSession,
        handlers: Optional[Mapping[AccountingEventType, EventHandler]] = None,
        writer: Optional[AtomicJournalWriter] = None,
        tolerance: Optional[Decimal] = None,
    ):
        self.db = db
        self.store = EventStore(db)
        self.handlers = EVENT_HANDLERS if handlers is None else handlers
        self.settings_service = JournalEventSettingsService(db)
        self.resolver = DefaultAccountResolver(self.settings_service)
        self.writer = writer or AtomicJournalWriter(db)
        self.tolerance = settings.balance_tolerance if tolerance is None else tolerance

    # =========================================================================
    # PROCESSING
    # =========================================================================

    async def process_event(self, event_id: uuid.UUID) -> EventProcessResult:
        """Process one event into journal entries."""
        try:
            return await self._process(event_id)
        except Exception as exc:
            logger.exception(f"Unexpected error processing event {event_id}")
            await self.db.rollback()
            return await self._fail(
                event_id,
                str(exc) or type(exc).__name__,
                EventProcessError.UNEXPECTED,
            )

    async def _process(self, event_id: uuid.UUID) -> EventProcessResult:
        event = await self.store.get_event(event_id, refresh=True)
        if event is None:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event not found",
                error_code=EventProcessError.NOT_FOUND,
            )

        if event.status == EventStatus.PROCESSED:
            return EventProcessResult(
                success=True,
                event_id=event_id,
                error="Event already processed",
                error_code=EventProcessError.ALREADY_PROCESSED,
                status=event.status,
            )

        if event.status == EventStatus.CANCELLED:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event has been cancelled",
                error_code=EventProcessError.CANCELLED,
                status=event.status,
            )

        observed_status = event.status
        event_type = event.event_type

        handler = self.handlers.get(event_type)
        if handler is None:
            return await self._fail(
                event_id,
                f"No handler registered for event type: {event_type.value}",
                EventProcessError.NO_HANDLER,
            )

        validation = handler.validate(event.event_data)
        if not validation.valid:
            return await self._fail(
                event_id,
                validation.error or "Event data validation failed",
                EventProcessError.VALIDATION_FAILED,
            )

        specs = handler.generate_journals(event)
        if not specs:
            return await self._fail(
                event_id, "No journal entries generated", EventProcessError.EMPTY_JOURNAL_SET
            )

        # Settings gate
        surviving: List[JournalSpec] = []
        skipped: List[uuid.UUID] = []
        for spec in specs:
            if await self.settings_service.is_enabled(spec.company_id, event_type):
                surviving.append(spec)
            elif spec.company_id not in skipped:
                skipped.append(spec.company_id)

        if skipped:
            logger.warning(
                f"Event {event_id} ({event_type.value}): journals skipped for disabled companies "
                f"{', '.join(str(c) for c in skipped)}"
            )

        if not surviving:
            return await self._complete_skipped(event_id, observed_status, skipped)

        # Resolve accounts and posting policy, then check every balance
        # before the first insert
        journals: List[PreparedJournal] = []
        resolved_specs: List[JournalSpec] = []
        for spec in surviving:
            resolved = await self.resolver.apply_default_accounts(spec, event_type)
            auto_post = await self.settings_service.should_auto_post(resolved.company_id, event_type)
            resolved_specs.append(resolved)
            journals.append(self._prepare(event, resolved, auto_post))

        for resolved in resolved_specs:
            check = validate_balance(resolved, self.tolerance)
            if not check.valid:
                return await self._fail(
                    event_id,
                    f"Unbalanced journal for company {check.company_id}: {check.message}",
                    EventProcessError.UNBALANCED,
                )

        async def finalize(journal_ids: List[uuid.UUID]) -> None:
            claimed = await self.store.claim_processed(event_id, observed_status, skipped)
            if not claimed:
                raise StaleEventError(f"Event {event_id} is no longer {observed_status.value}")
            self.store.record_audit(
                event_id,
                EventAuditAction.PROCESSED,
                from_status=observed_status,
                to_status=EventStatus.PROCESSED,
                details={
                    "journal_entry_ids": journal_ids,
                    "skipped_companies": skipped,
                },
            )

        write = await self.writer.save_journals_atomically(event_id, journals, finalize=finalize)

        if write.stale:
            return await self._stale(event_id)

        if not write.success:
            return await self._fail(
                event_id,
                f"Atomic journal write failed: {write.error}",
                EventProcessError.ATOMIC_WRITE_FAILURE,
            )

        logger.info(
            f"Processed {event_type.value} event {event_id}: "
            f"{len(write.journal_entry_ids)} journal(s) created"
        )
        return EventProcessResult(
            success=True,
            event_id=event_id,
            journal_entry_ids=write.journal_entry_ids,
            skipped_companies=skipped,
            status=EventStatus.PROCESSED,
        )

    def _prepare(self, event: AccountingEvent, spec: JournalSpec, auto_post: bool) -> PreparedJournal:
        return PreparedJournal(
            company_id=spec.company_id,
            entry_date=spec.entry_date,
            description=spec.description,
            status=JournalEntryStatus.POSTED if auto_post else JournalEntryStatus.DRAFT,
            total_debit=spec.total_debit,
            total_credit=spec.total_credit,
            lines=spec.lines,
            source_document_type=event.source_document_type,
            source_document_id=event.source_document_id,
            created_by=event.created_by,
        )

    async def _complete_skipped(
        self,
        event_id: uuid.UUID,
        observed_status: EventStatus,
        skipped: List[uuid.UUID],
    ) -> EventProcessResult:
        claimed = await self.store.mark_processed_skipped(event_id, observed_status, skipped)
        if not claimed:
            return await self._stale(event_id)

        message = (
            "Event processed but journals skipped for disabled companies: "
            f"{', '.join(str(c) for c in skipped)}"
        )
        logger.info(f"Event {event_id}: {message}")
        return EventProcessResult(
            success=True,
            event_id=event_id,
            message=message,
            skipped_companies=skipped,
            status=EventStatus.PROCESSED,
        )

    async def _stale(self, event_id: uuid.UUID) -> EventProcessResult:
        """Another processor moved the event on while this one was working."""
        event = await self.store.get_event(event_id, refresh=True)
        current = event.status if event else None

        self.store.record_audit(
            event_id,
            EventAuditAction.STALE,
            to_status=current,
            message="Status changed during processing; journals discarded",
        )
        await self.db.commit()
        logger.warning(f"Event {event_id} changed to {current} during processing; journals discarded")

        if current == EventStatus.PROCESSED:
            return EventProcessResult(
                success=True,
                event_id=event_id,
                error="Event already processed",
                error_code=EventProcessError.ALREADY_PROCESSED,
                status=current,
            )
        return EventProcessResult(
            success=False,
            event_id=event_id,
            error=f"Event status changed during processing: {current.value if current else 'missing'}",
            error_code=EventProcessError.CANCELLED if current == EventStatus.CANCELLED else EventProcessError.UNEXPECTED,
            status=current,
        )

    async def _fail(
        self,
        event_id: uuid.UUID,
        error: str,
        error_code: EventProcessError,
    ) -> EventProcessResult:
        """Mark the event failed and build the failure result."""
        status: Optional[EventStatus] = None
        try:
            await self.store.mark_failed(event_id, error)
            event = await self.store.get_event(event_id, refresh=True)
            status = event.status if event else None
        except Exception:
            logger.exception(f"Could not record failure for event {event_id}")
            await self.db.rollback()

        logger.warning(f"Event {event_id} failed ({error_code.value}): {error}")
        return EventProcessResult(
            success=False,
            event_id=event_id,
            error=error,
            error_code=error_code,
            status=status,
        )

    async def process_pending_events(self, limit: Optional[int] = None) -> List[EventProcessResult]:
        """Process pending events oldest first, one at a time."""
        event_ids = await self.store.get_pending_event_ids(limit or settings.pending_batch_limit)
        await self.db.commit()

        results = []
        for event_id in event_ids:
            results.append(await self.process_event(event_id))

        logger.info(
            f"Processed {len(results)} pending event(s): "
            f"{sum(1 for r in results if r.success)} succeeded"
        )
        return results

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def retry_event(self, event_id: uuid.UUID) -> EventProcessResult:
        """Reset a failed (or pending) event to pending and process it again."""
        event = await self.store.get_event(event_id, refresh=True)
        if event is None:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event not found",
                error_code=EventProcessError.NOT_FOUND,
            )

        if event.status == EventStatus.CANCELLED:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event has been cancelled",
                error_code=EventProcessError.CANCELLED,
                status=event.status,
            )

        if event.status == EventStatus.PROCESSED:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event already processed",
                error_code=EventProcessError.ALREADY_PROCESSED,
                status=event.status,
            )

        if not await self.store.reset_for_retry(event_id):
            # Lost a race with another processor or a cancel
            return await self.process_event(event_id)

        logger.info(f"Retrying event {event_id} (attempt {event.retry_count + 1})")
        return await self.process_event(event_id)

    async def cancel_event(self, event_id: uuid.UUID, reason: Optional[str] = None) -> EventProcessResult:
        """Cancel an unprocessed event. Cancelled events are never processed."""
        event = await self.store.get_event(event_id, refresh=True)
        if event is None:
            return EventProcessResult(
                success=False,
                event_id=event_id,
                error="Event not found",
                error_code=EventProcessError.NOT_FOUND,
            )

        if event.status == EventStatus.CANCELLED:
            return EventProcessResult(success=True, event_id=event_id, status=event.status)

        if event.status != EventStatus.PROCESSED:
            if await self.store.cancel(event_id, reason):
                logger.info(f"Cancelled event {event_id}")
                return EventProcessResult(success=True, event_id=event_id, status=EventStatus.CANCELLED)

            # Lost a race with a concurrent cancel or processor
            event = await self.store.get_event(event_id, refresh=True)
            if event.status == EventStatus.CANCELLED:
                return EventProcessResult(success=True, event_id=event_id, status=event.status)
            if event.status != EventStatus.PROCESSED:
                return EventProcessResult(
                    success=False,
                    event_id=event_id,
                    error=f"Event status changed during cancel: {event.status.value}",
                    error_code=EventProcessError.UNEXPECTED,
                    status=event.status,
                )

        return EventProcessResult(
            success=False,
            event_id=event_id,
            error="Cannot cancel a processed event",
            error_code=EventProcessError.ALREADY_PROCESSED,
            status=EventStatus.PROCESSED,
        )

    async def check_duplicate_event(
        self,
        event_type: AccountingEventType,
        source_document_type: str,
        source_document_id: str,
    ) -> bool:
        """True if a non-cancelled event already exists for the source document."""
        return await self.store.check_duplicate(event_type, source_document_type, source_document_id)

    async def create_and_process_event(
        self,
        event_type: AccountingEventType,
        event_date: date,
        affected_companies: Sequence[uuid.UUID],
        event_data: Dict[str, Any],
        source_document_type: Optional[str] = None,
        source_document_id: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> EventProcessResult:
        """
        Record a pending event and process it immediately.

        Does not check for duplicates; call check_duplicate_event first.
        If the event cannot be recorded the result has no event_id.
        """
        try:
            event = await self.store.create_event(
                event_type=event_type,
                event_date=event_date,
                affected_companies=affected_companies,
                event_data=event_data,
                source_document_type=source_document_type,
                source_document_id=source_document_id,
                created_by=created_by,
            )
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"Could not record {getattr(event_type, 'value', event_type)} event")
            return EventProcessResult(
                success=False,
                event_id=None,
                error=f"Could not record event: {e}",
                error_code=EventProcessError.UNEXPECTED,
            )
        return await self.process_event(event.id)

    async def get_event_journal_entries(self, event_id: uuid.UUID) -> List[uuid.UUID]:
        """IDs of the journals an event produced."""
        return await self.store.get_event_journal_entry_ids(event_id)
