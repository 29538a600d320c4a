"""
Event Ledger - Accounting Event Models

Business events are the only way journals enter the ledger. A caller
records an event (pending), the event processor turns it into one journal
per affected company and moves the event to processed or failed.

Models:
- AccountingEvent: the event record and its processing state
- EventJournalEntry: link from an event to each journal it produced
- AccountingEventAudit: append-only trail of state transitions
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import (
    Date, DateTime, ForeignKey, Integer, String, Text, Uuid,
    Enum as SQLEnum, JSON, UniqueConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_ledger.models.base import BaseModel

if TYPE_CHECKING:
    from event_ledger.models.journal import JournalEntry


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# ENUMS
# =============================================================================

class AccountingEventType(str, Enum):
    """Closed set of business events that can generate journals."""
    EXPENSE_APPROVED = "EXPENSE_APPROVED"
    EXPENSE_PAID = "EXPENSE_PAID"
    RECEIPT_RECEIVED = "RECEIPT_RECEIVED"
    MANAGEMENT_FEE_RECOGNIZED = "MANAGEMENT_FEE_RECOGNIZED"
    INTERCOMPANY_SETTLEMENT = "INTERCOMPANY_SETTLEMENT"
    PARTNER_PROFIT_ALLOCATION = "PARTNER_PROFIT_ALLOCATION"
    PARTNER_PAYMENT = "PARTNER_PAYMENT"
    OPENING_BALANCE = "OPENING_BALANCE"
    PROJECT_SERVICE_COMPLETED = "PROJECT_SERVICE_COMPLETED"
    CAPEX_INCURRED = "CAPEX_INCURRED"


class EventStatus(str, Enum):
    """Processing status of an accounting event."""
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EventAuditAction(str, Enum):
    """What happened to an event."""
    CREATED = "created"
    PROCESSED = "processed"
    PROCESSED_SKIPPED = "processed_skipped"  # processed, every company disabled
    FAILED = "failed"
    RETRIED = "retried"
    CANCELLED = "cancelled"
    STALE = "stale"  # lost the race against another processor


# =============================================================================
# ACCOUNTING EVENTS
# =============================================================================

class AccountingEvent(BaseModel):
    """
    A business occurrence that may cause ledger postings.
    
    Created pending by the caller, mutated only by the event processor,
    never deleted.
    """
    
    __tablename__ = "accounting_events"
    
    event_type: Mapped[AccountingEventType] = mapped_column(
        SQLEnum(AccountingEventType, name="accounting_event_type", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[EventStatus] = mapped_column(
        SQLEnum(EventStatus, name="accounting_event_status", values_callable=_enum_values),
        default=EventStatus.PENDING,
        nullable=False,
        index=True,
    )
    
    # Multi-company support: companies touched by this event (UUID strings)
    affected_companies: Mapped[List[str]] = mapped_column(
        JSON, default=list, nullable=False,
    )
    
    # Event-specific payload, shape depends on event_type
    event_data: Mapped[Dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False,
    )
    
    # Source document reference (optional - some events are standalone)
    source_document_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True,
        comment="Type of source document (expense, receipt, etc.)",
    )
    source_document_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True,
        comment="ID or number of the source document",
    )
    
    # Processing metadata
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_companies: Mapped[List[str]] = mapped_column(
        JSON, default=list, nullable=False,
        comment="Companies whose settings disabled this event on the last run",
    )
    
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationships
    journal_links: Mapped[List["EventJournalEntry"]] = relationship(
        "EventJournalEntry",
        back_populates="event",
        cascade="all, delete-orphan",
    )
    
    __table_args__ = (
        Index('ix_ae_source', 'source_document_type', 'source_document_id'),
    )
    
    def __repr__(self) -> str:
        return f"<AccountingEvent({self.event_type}: {self.status})>"


class EventJournalEntry(BaseModel):
    """Traceability link between an event and a journal it generated."""
    
    __tablename__ = "event_journal_entries"
    
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounting_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
    )
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    
    event: Mapped["AccountingEvent"] = relationship(
        "AccountingEvent", back_populates="journal_links",
    )
    journal_entry: Mapped["JournalEntry"] = relationship("JournalEntry")
    
    __table_args__ = (
        UniqueConstraint('event_id', 'journal_entry_id', name='uq_event_journal_entry'),
    )


class AccountingEventAudit(BaseModel):
    """
    Append-only audit trail for event state transitions.
    
    Keeps "processed with journals" and "processed, all companies skipped"
    apart, which the status column alone cannot.
    """
    
    __tablename__ = "accounting_event_audits"
    
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounting_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[EventAuditAction] = mapped_column(
        SQLEnum(EventAuditAction, name="accounting_event_audit_action", values_callable=_enum_values),
        nullable=False,
    )
    from_status: Mapped[Optional[EventStatus]] = mapped_column(
        SQLEnum(EventStatus, name="accounting_event_status", values_callable=_enum_values),
        nullable=True,
    )
    to_status: Mapped[Optional[EventStatus]] = mapped_column(
        SQLEnum(EventStatus, name="accounting_event_status", values_callable=_enum_values),
        nullable=True,
    )
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
