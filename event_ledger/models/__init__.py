"""
Event Ledger - Database Models
"""

from event_ledger.models.base import BaseModel, TimestampMixin
from event_ledger.models.accounting_event import (
    AccountingEvent,
    AccountingEventAudit,
    AccountingEventType,
    EventAuditAction,
    EventJournalEntry,
    EventStatus,
)
from event_ledger.models.journal import (
    CompanySequence,
    EntryType,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from event_ledger.models.journal_event_settings import JournalEventSetting

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AccountingEvent",
    "AccountingEventAudit",
    "AccountingEventType",
    "EventAuditAction",
    "EventJournalEntry",
    "EventStatus",
    "CompanySequence",
    "EntryType",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "JournalEventSetting",
]
