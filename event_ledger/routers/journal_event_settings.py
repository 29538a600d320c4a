"""
Event Ledger - Journal Event Settings Router

Per-company switches for journal generation by event type.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger.database import get_db
from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.schemas.accounting_events import (
    JournalEventSettingResponse,
    JournalEventSettingUpdate,
)
from event_ledger.services.journal_event_settings_service import JournalEventSettingsService
from event_ledger.utils.error_handling import SettingNotFoundException


router = APIRouter(
    prefix="/api/v1/accounting/companies/{company_id}/journal-event-settings",
    tags=["Journal Event Settings"],
)


@router.get("", response_model=List[JournalEventSettingResponse])
async def list_settings(
    company_id: uuid.UUID = Path(..., description="Company ID"),
    db: AsyncSession = Depends(get_db),
):
    """List a company's journal event settings. Missing event types use the defaults."""
    service = JournalEventSettingsService(db)
    return await service.list_settings(company_id)


@router.get("/{event_type}", response_model=JournalEventSettingResponse)
async def get_setting(
    company_id: uuid.UUID = Path(..., description="Company ID"),
    event_type: AccountingEventType = Path(..., description="Event type"),
    db: AsyncSession = Depends(get_db),
):
    service = JournalEventSettingsService(db)
    setting = await service.get_setting(company_id, event_type)
    if setting is None:
        raise SettingNotFoundException(company_id, event_type.value)
    return setting


@router.put("/{event_type}", response_model=JournalEventSettingResponse)
async def upsert_setting(
    data: JournalEventSettingUpdate,
    company_id: uuid.UUID = Path(..., description="Company ID"),
    event_type: AccountingEventType = Path(..., description="Event type"),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace a company's setting for an event type."""
    service = JournalEventSettingsService(db)
    return await service.upsert_setting(company_id, event_type, data)


@router.delete("/{event_type}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_setting(
    company_id: uuid.UUID = Path(..., description="Company ID"),
    event_type: AccountingEventType = Path(..., description="Event type"),
    db: AsyncSession = Depends(get_db),
):
    """Remove a setting; the company falls back to enabled, draft, system defaults."""
    service = JournalEventSettingsService(db)
    deleted = await service.delete_setting(company_id, event_type)
    if not deleted:
        raise SettingNotFoundException(company_id, event_type.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
