"""
Event Ledger - Journal Models

Double-entry journal storage. Journals are written only by the atomic
journal writer and never edited afterwards.

Models:
- JournalEntry: journal header, one per company per posting
- JournalEntryLine: ordered debit/credit lines
- CompanySequence: per-company counters for reference numbers
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_ledger.models.base import BaseModel


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# ENUMS
# =============================================================================

class JournalEntryStatus(str, Enum):
    """Journal entry status."""
    DRAFT = "draft"
    POSTED = "posted"


class EntryType(str, Enum):
    """Side of a journal line."""
    DEBIT = "debit"
    CREDIT = "credit"


# =============================================================================
# JOURNAL ENTRIES
# =============================================================================

class JournalEntry(BaseModel):
    """
    Journal Entry - The core of double-entry accounting.
    
    Every posting creates a journal entry with balanced debits and credits
    in exactly one company's books.
    """
    
    __tablename__ = "journal_entries"
    
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    
    # Entry Identification
    reference_number: Mapped[str] = mapped_column(
        String(50), nullable=False,
        comment="Per-company journal reference (e.g., JE-2026-00001)",
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    
    # Source
    source_document_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True,
        comment="Type of source document (expense, receipt, etc.)",
    )
    source_document_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True,
        comment="ID or number of the source document",
    )
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    
    # Totals (for quick reference - must always balance)
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    
    status: Mapped[JournalEntryStatus] = mapped_column(
        SQLEnum(JournalEntryStatus, name="journal_entry_status", values_callable=_enum_values),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    lines: Mapped[List["JournalEntryLine"]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )
    
    __table_args__ = (
        UniqueConstraint('company_id', 'reference_number', name='uq_journal_company_reference'),
        Index('ix_je_source', 'source_document_type', 'source_document_id'),
    )
    
    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= Decimal("0.01")
    
    def __repr__(self) -> str:
        return f"<JournalEntry({self.reference_number}: {self.description[:30]})>"


class JournalEntryLine(BaseModel):
    """Individual debit or credit line within a journal entry."""
    
    __tablename__ = "journal_entry_lines"
    
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    entry_type: Mapped[EntryType] = mapped_column(
        SQLEnum(EntryType, name="journal_line_entry_type", values_callable=_enum_values),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    journal_entry: Mapped["JournalEntry"] = relationship("JournalEntry", back_populates="lines")
    
    __table_args__ = (
        CheckConstraint('amount >= 0', name='ck_journal_line_amount_non_negative'),
        UniqueConstraint('journal_entry_id', 'line_number', name='uq_journal_line_number'),
    )
    
    def __repr__(self) -> str:
        return f"<JournalEntryLine({self.account_code} {self.entry_type.value} {self.amount})>"


class CompanySequence(BaseModel):
    """
    Per-company monotonic counter.
    
    Rows are locked with SELECT ... FOR UPDATE and incremented inside the
    transaction that consumes the number.
    """
    
    __tablename__ = "company_sequences"
    
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    next_value: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('company_id', 'name', name='uq_company_sequence_name'),
    )
