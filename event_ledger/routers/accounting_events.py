"""
Event Ledger - Accounting Events Router

API endpoints for recording, processing and inspecting accounting events.
Journals are never created directly: callers record business events and
the event processor generates the balanced journal entries.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger.database import get_db
from event_ledger.models.accounting_event import AccountingEventType, EventStatus
from event_ledger.schemas.accounting_events import (
    AccountingEventCreate,
    AccountingEventDetailResponse,
    AccountingEventListResponse,
    AccountingEventResponse,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    EventJournalLinkResponse,
    EventProcessError,
    EventProcessResult,
    EventStatistics,
    ProcessPendingRequest,
    ProcessPendingResponse,
)
from event_ledger.schemas.journal import JournalEntryResponse
from event_ledger.services.event_processor import EventProcessor
from event_ledger.services.event_store import EventStore
from event_ledger.utils.error_handling import (
    BusinessRuleException,
    DuplicateEventException,
    ErrorCode,
    EventNotFoundException,
    InvalidDateRangeException,
)


router = APIRouter(prefix="/api/v1/accounting/events", tags=["Accounting Events"])


def _raise_for_refusal(result: EventProcessResult) -> None:
    """Turn a refused lifecycle operation into an HTTP error."""
    if result.error_code == EventProcessError.NOT_FOUND:
        raise EventNotFoundException(result.event_id)
    if result.error_code == EventProcessError.CANCELLED:
        raise BusinessRuleException(
            message=result.error or "Event has been cancelled",
            rule="CANCELLED_EVENTS_ARE_TERMINAL",
            code=ErrorCode.EVENT_CANCELLED,
            details={"event_id": str(result.event_id)},
        )
    if result.error_code == EventProcessError.ALREADY_PROCESSED and not result.success:
        raise BusinessRuleException(
            message=result.error or "Event already processed",
            rule="PROCESSED_EVENTS_ARE_IMMUTABLE",
            code=ErrorCode.ALREADY_PROCESSED,
            details={"event_id": str(result.event_id)},
        )


# ============================================================================
# EVENT CREATION
# ============================================================================

@router.post("", response_model=EventProcessResult, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: AccountingEventCreate,
    allow_duplicate: bool = Query(False, description="Skip the duplicate source document check"),
    db: AsyncSession = Depends(get_db),
):
    """Record an accounting event and process it immediately."""
    processor = EventProcessor(db)
    
    if not allow_duplicate and data.source_document_type and data.source_document_id:
        is_duplicate = await processor.check_duplicate_event(
            data.event_type, data.source_document_type, data.source_document_id
        )
        if is_duplicate:
            raise DuplicateEventException(
                data.event_type.value, data.source_document_type, data.source_document_id
            )
    
    return await processor.create_and_process_event(
        event_type=data.event_type,
        event_date=data.event_date,
        affected_companies=data.affected_companies,
        event_data=data.event_data,
        source_document_type=data.source_document_type,
        source_document_id=data.source_document_id,
        created_by=data.created_by,
    )


@router.post("/check-duplicate", response_model=DuplicateCheckResponse)
async def check_duplicate_event(
    data: DuplicateCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check whether an active event already exists for a source document."""
    processor = EventProcessor(db)
    is_duplicate = await processor.check_duplicate_event(
        data.event_type, data.source_document_type, data.source_document_id
    )
    return DuplicateCheckResponse(is_duplicate=is_duplicate)


# ============================================================================
# EVENT QUERIES
# ============================================================================

@router.get("", response_model=AccountingEventListResponse)
async def list_events(
    event_status: Optional[EventStatus] = Query(None, alias="status", description="Filter by status"),
    event_type: Optional[AccountingEventType] = Query(None, description="Filter by event type"),
    company_id: Optional[uuid.UUID] = Query(None, description="Filter by affected company"),
    start_date: Optional[date] = Query(None, description="Event date from"),
    end_date: Optional[date] = Query(None, description="Event date to"),
    source_document_type: Optional[str] = Query(None),
    source_document_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List accounting events, newest first."""
    if start_date and end_date and start_date > end_date:
        raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())
    
    store = EventStore(db)
    events, total = await store.list_events(
        status=event_status,
        event_type=event_type,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        source_document_type=source_document_type,
        source_document_id=source_document_id,
        limit=limit,
        offset=offset,
    )
    return AccountingEventListResponse(
        items=[AccountingEventResponse.model_validate(e) for e in events],
        total=total,
    )


@router.get("/statistics", response_model=EventStatistics)
async def get_event_statistics(db: AsyncSession = Depends(get_db)):
    """Event counts per status."""
    store = EventStore(db)
    return await store.get_statistics()


@router.post("/process-pending", response_model=ProcessPendingResponse)
async def process_pending_events(
    data: Optional[ProcessPendingRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
):
    """Process pending events, oldest first."""
    processor = EventProcessor(db)
    results = await processor.process_pending_events(limit=data.limit if data else None)
    succeeded = sum(1 for r in results if r.success)
    return ProcessPendingResponse(
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=results,
    )


@router.get("/{event_id}", response_model=AccountingEventDetailResponse)
async def get_event(
    event_id: uuid.UUID = Path(..., description="Event ID"),
    db: AsyncSession = Depends(get_db),
):
    """Get an event with the journal entries it generated."""
    store = EventStore(db)
    event, journals = await store.get_event_with_journals(event_id)
    if event is None:
        raise EventNotFoundException(event_id)
    
    return AccountingEventDetailResponse(
        **AccountingEventResponse.model_validate(event).model_dump(),
        journal_entries=[JournalEntryResponse.model_validate(j) for j in journals],
    )


@router.get("/{event_id}/journal-entries", response_model=List[EventJournalLinkResponse])
async def get_event_journal_entries(
    event_id: uuid.UUID = Path(..., description="Event ID"),
    db: AsyncSession = Depends(get_db),
):
    """Traceability links from an event to its journal entries."""
    store = EventStore(db)
    if await store.get_event(event_id) is None:
        raise EventNotFoundException(event_id)
    return await store.get_event_journal_links(event_id)


# ============================================================================
# EVENT LIFECYCLE
# ============================================================================

@router.post("/{event_id}/process", response_model=EventProcessResult)
async def process_event(
    event_id: uuid.UUID = Path(..., description="Event ID"),
    db: AsyncSession = Depends(get_db),
):
    """Process a pending event. Processing failures are reported in the result."""
    processor = EventProcessor(db)
    result = await processor.process_event(event_id)
    if result.error_code == EventProcessError.NOT_FOUND:
        raise EventNotFoundException(event_id)
    return result


@router.post("/{event_id}/retry", response_model=EventProcessResult)
async def retry_event(
    event_id: uuid.UUID = Path(..., description="Event ID"),
    db: AsyncSession = Depends(get_db),
):
    """Reset a failed event to pending and process it again."""
    processor = EventProcessor(db)
    result = await processor.retry_event(event_id)
    _raise_for_refusal(result)
    return result


@router.post("/{event_id}/cancel", response_model=EventProcessResult)
async def cancel_event(
    event_id: uuid.UUID = Path(..., description="Event ID"),
    reason: Optional[str] = Query(None, max_length=500),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an unprocessed event."""
    processor = EventProcessor(db)
    result = await processor.cancel_event(event_id, reason=reason)
    _raise_for_refusal(result)
    return result
