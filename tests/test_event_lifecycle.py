"""
Event Ledger - Event Lifecycle Tests

Retry, cancel, duplicate detection and create-and-process.
"""

import pytest
from datetime import date
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from event_ledger.models.accounting_event import (
    AccountingEvent,
    AccountingEventType,
    EventAuditAction,
    EventStatus,
)
from event_ledger.schemas.accounting_events import EventProcessError
from event_ledger.services.event_handlers import build_handler_registry
from event_ledger.services.event_handlers.intercompany import ManagementFeeHandler
from event_ledger.services.event_processor import EventProcessor
from event_ledger.services.event_store import EventStore


class FlakyManagementFeeHandler(ManagementFeeHandler):
    """Fails journal generation until it is told to recover."""

    def __init__(self):
        self.broken = True

    def build_journals(self, event, payload):
        if self.broken:
            raise ConnectionError("chart of accounts unavailable")
        return super().build_journals(event, payload)


class ConcurrentCancelStore(EventStore):
    """Another session moves the event to winner_status just before this cancel."""

    def __init__(self, db, session_factory, winner_status):
        super().__init__(db)
        self.session_factory = session_factory
        self.winner_status = winner_status

    async def cancel(self, event_id, reason=None):
        async with self.session_factory() as other:
            await other.execute(
                update(AccountingEvent)
                .where(AccountingEvent.id == event_id)
                .values(status=self.winner_status)
            )
            await other.commit()
        return await super().cancel(event_id, reason)


async def _create_fee_event(db_session, data, companies, **kwargs):
    event = await EventStore(db_session).create_event(
        event_type=AccountingEventType.MANAGEMENT_FEE_RECOGNIZED,
        event_date=date(2026, 3, 31),
        affected_companies=companies,
        event_data=data,
        **kwargs,
    )
    return event.id


class TestRetryEvent:
    """Test cases for EventProcessor.retry_event."""

    @pytest.mark.asyncio
    async def test_failed_then_fixed_then_retried(self, db_session, management_fee_data, company_a, company_b):
        """Test failed -> fix -> retry -> processed with the error cleared."""
        handler = FlakyManagementFeeHandler()
        handlers = build_handler_registry()
        handlers[handler.event_type] = handler
        processor = EventProcessor(db_session, handlers=handlers)
        store = EventStore(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])

        first = await processor.process_event(event_id)
        assert not first.success
        event = await store.get_event(event_id, refresh=True)
        assert event.status == EventStatus.FAILED
        assert event.error_message == "chart of accounts unavailable"
        assert event.retry_count == 1

        handler.broken = False
        result = await processor.retry_event(event_id)

        assert result.success
        assert len(result.journal_entry_ids) == 2
        event = await store.get_event(event_id, refresh=True)
        assert event.status == EventStatus.PROCESSED
        assert event.error_message is None
        assert event.retry_count == 1

        actions = [audit.action for audit in await store.get_audit_trail(event_id)]
        assert actions == [
            EventAuditAction.CREATED,
            EventAuditAction.FAILED,
            EventAuditAction.RETRIED,
            EventAuditAction.PROCESSED,
        ]

    @pytest.mark.asyncio
    async def test_retry_failing_again_increments_count(
        self, db_session, management_fee_data, company_a, company_b
    ):
        handler = FlakyManagementFeeHandler()
        handlers = build_handler_registry()
        handlers[handler.event_type] = handler
        processor = EventProcessor(db_session, handlers=handlers)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])

        await processor.process_event(event_id)
        result = await processor.retry_event(event_id)

        assert not result.success
        event = await EventStore(db_session).get_event(event_id, refresh=True)
        assert event.status == EventStatus.FAILED
        assert event.retry_count == 2

    @pytest.mark.asyncio
    async def test_retry_not_found(self, db_session):
        result = await EventProcessor(db_session).retry_event(uuid4())

        assert result.error_code == EventProcessError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_retry_refuses_processed(self, db_session, management_fee_data, company_a, company_b):
        """Test that a processed event is never reprocessed by retry."""
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.process_event(event_id)

        result = await processor.retry_event(event_id)

        assert not result.success
        assert result.error_code == EventProcessError.ALREADY_PROCESSED
        assert result.journal_entry_ids == []

    @pytest.mark.asyncio
    async def test_retry_refuses_cancelled(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.cancel_event(event_id)

        result = await processor.retry_event(event_id)

        assert not result.success
        assert result.error == "Event has been cancelled"
        assert result.error_code == EventProcessError.CANCELLED


class TestCancelEvent:
    """Test cases for EventProcessor.cancel_event."""

    @pytest.mark.asyncio
    async def test_cancel_pending(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])

        result = await processor.cancel_event(event_id, reason="Entered twice")

        assert result.success
        assert result.status == EventStatus.CANCELLED
        audits = await EventStore(db_session).get_audit_trail(event_id)
        assert audits[-1].action == EventAuditAction.CANCELLED
        assert audits[-1].message == "Entered twice"

    @pytest.mark.asyncio
    async def test_cancelled_event_is_never_processed(
        self, db_session, management_fee_data, company_a, company_b
    ):
        """Test that cancelled is terminal."""
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.cancel_event(event_id)

        result = await processor.process_event(event_id)

        assert not result.success
        assert result.error == "Event has been cancelled"
        assert result.error_code == EventProcessError.CANCELLED
        event = await EventStore(db_session).get_event(event_id, refresh=True)
        assert event.status == EventStatus.CANCELLED
        assert event.retry_count == 0

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.cancel_event(event_id)

        result = await processor.cancel_event(event_id)

        assert result.success
        assert result.status == EventStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_refuses_processed(self, db_session, management_fee_data, company_a, company_b):
        """Test that processed journals cannot be orphaned by a cancel."""
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.process_event(event_id)

        result = await processor.cancel_event(event_id)

        assert not result.success
        assert result.error == "Cannot cancel a processed event"
        event = await EventStore(db_session).get_event(event_id, refresh=True)
        assert event.status == EventStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_cancel_failed_event(self, db_session, management_fee_data, company_a, company_b):
        management_fee_data["feeAmount"] = "0"
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        await processor.process_event(event_id)

        result = await processor.cancel_event(event_id)

        assert result.success
        assert result.status == EventStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_concurrent_cancel_is_idempotent(
        self, db_session, session_factory, management_fee_data, company_a, company_b
    ):
        """Test that losing a race to another cancel still reports success."""
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        processor.store = ConcurrentCancelStore(db_session, session_factory, EventStatus.CANCELLED)

        result = await processor.cancel_event(event_id)

        assert result.success
        assert result.status == EventStatus.CANCELLED
        assert result.error is None

    @pytest.mark.asyncio
    async def test_cancel_losing_to_processor(
        self, db_session, session_factory, management_fee_data, company_a, company_b
    ):
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(db_session, management_fee_data, [company_a, company_b])
        processor.store = ConcurrentCancelStore(db_session, session_factory, EventStatus.PROCESSED)

        result = await processor.cancel_event(event_id)

        assert not result.success
        assert result.error == "Cannot cancel a processed event"
        assert result.status == EventStatus.PROCESSED


class TestDuplicateDetection:
    """Test cases for EventProcessor.check_duplicate_event."""

    @pytest.mark.asyncio
    async def test_duplicate_until_cancelled(self, db_session, management_fee_data, company_a, company_b):
        """Test true while the event is active, false once it is cancelled."""
        processor = EventProcessor(db_session)
        key = (AccountingEventType.MANAGEMENT_FEE_RECOGNIZED, "management_fee", "MF-2026-Q1")

        assert not await processor.check_duplicate_event(*key)

        event_id = await _create_fee_event(
            db_session, management_fee_data, [company_a, company_b],
            source_document_type="management_fee", source_document_id="MF-2026-Q1",
        )
        assert await processor.check_duplicate_event(*key)

        await processor.process_event(event_id)
        assert await processor.check_duplicate_event(*key)

        other_id = await _create_fee_event(
            db_session, management_fee_data, [company_a, company_b],
            source_document_type="management_fee", source_document_id="MF-2026-Q2",
        )
        await processor.cancel_event(other_id)
        assert not await processor.check_duplicate_event(
            AccountingEventType.MANAGEMENT_FEE_RECOGNIZED, "management_fee", "MF-2026-Q2"
        )

    @pytest.mark.asyncio
    async def test_cancel_clears_duplicate(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)
        event_id = await _create_fee_event(
            db_session, management_fee_data, [company_a, company_b],
            source_document_type="management_fee", source_document_id="MF-1",
        )
        key = (AccountingEventType.MANAGEMENT_FEE_RECOGNIZED, "management_fee", "MF-1")
        assert await processor.check_duplicate_event(*key)

        await processor.cancel_event(event_id)

        assert not await processor.check_duplicate_event(*key)

    @pytest.mark.asyncio
    async def test_duplicate_is_per_event_type(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)
        await _create_fee_event(
            db_session, management_fee_data, [company_a, company_b],
            source_document_type="management_fee", source_document_id="MF-1",
        )

        assert not await processor.check_duplicate_event(
            AccountingEventType.INTERCOMPANY_SETTLEMENT, "management_fee", "MF-1"
        )


class TestCreateAndProcess:
    """Test cases for EventProcessor.create_and_process_event."""

    @pytest.mark.asyncio
    async def test_create_and_process(self, db_session, management_fee_data, company_a, company_b):
        processor = EventProcessor(db_session)

        result = await processor.create_and_process_event(
            event_type=AccountingEventType.MANAGEMENT_FEE_RECOGNIZED,
            event_date=date(2026, 3, 31),
            affected_companies=[company_a, company_b],
            event_data=management_fee_data,
            source_document_type="management_fee",
            source_document_id="MF-1",
        )

        assert result.success
        assert len(result.journal_entry_ids) == 2
        event = await EventStore(db_session).get_event(result.event_id, refresh=True)
        assert event.status == EventStatus.PROCESSED
        assert event.affected_companies == [str(company_a), str(company_b)]

    @pytest.mark.asyncio
    async def test_does_not_dedupe(self, db_session, management_fee_data, company_a, company_b):
        """Test that create-and-process leaves duplicate checks to the caller."""
        processor = EventProcessor(db_session)
        kwargs = dict(
            event_type=AccountingEventType.MANAGEMENT_FEE_RECOGNIZED,
            event_date=date(2026, 3, 31),
            affected_companies=[company_a, company_b],
            event_data=management_fee_data,
            source_document_type="management_fee",
            source_document_id="MF-1",
        )

        first = await processor.create_and_process_event(**kwargs)
        second = await processor.create_and_process_event(**kwargs)

        assert first.event_id != second.event_id
        assert second.success

    @pytest.mark.asyncio
    async def test_unrecordable_event_returns_result(self, db_session, company_a):
        """Test that a payload the store cannot serialize yields a failed result."""
        processor = EventProcessor(db_session)

        result = await processor.create_and_process_event(
            event_type=AccountingEventType.EXPENSE_APPROVED,
            event_date=date(2026, 3, 31),
            affected_companies=[company_a],
            event_data={"bad": object()},
        )

        assert not result.success
        assert result.event_id is None
        assert result.error_code == EventProcessError.UNEXPECTED
        assert result.error.startswith("Could not record event:")

        _, total = await EventStore(db_session).list_events()
        assert total == 0

    @pytest.mark.asyncio
    async def test_datastore_error_on_create_returns_result(
        self, db_session, management_fee_data, company_a, company_b, monkeypatch
    ):
        processor = EventProcessor(db_session)

        async def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", failing_commit)
        result = await processor.create_and_process_event(
            event_type=AccountingEventType.MANAGEMENT_FEE_RECOGNIZED,
            event_date=date(2026, 3, 31),
            affected_companies=[company_a, company_b],
            event_data=management_fee_data,
        )
        monkeypatch.undo()

        assert not result.success
        assert result.event_id is None
        assert result.error_code == EventProcessError.UNEXPECTED
        assert "database is locked" in result.error
        _, total = await EventStore(db_session).list_events()
        assert total == 0
