"""
Event Ledger - Journal Schemas

In-memory journal specifications passed between handlers, the account
resolver, the balance validator and the atomic journal writer, plus the
response schemas for persisted journals.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from event_ledger.models.journal import EntryType, JournalEntryStatus


CENT = Decimal("0.01")


# =============================================================================
# JOURNAL SPECIFICATIONS
# =============================================================================

class JournalLineSpec(BaseModel):
    """One debit or credit line. account_code stays None until resolved."""
    model_config = ConfigDict(frozen=True)
    
    account_code: Optional[str] = None
    entry_type: EntryType
    amount: Decimal = Field(..., ge=0)
    description: str = ""
    
    @field_validator("amount")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        # Lines are stored as Numeric(18, 2); totals must add up the stored values
        return v.quantize(CENT, rounding=ROUND_HALF_UP)


class JournalSpec(BaseModel):
    """A journal to be posted in one company's books."""
    model_config = ConfigDict(frozen=True)
    
    company_id: UUID
    entry_date: date
    description: str
    lines: List[JournalLineSpec] = Field(default_factory=list)
    
    @computed_field
    @property
    def total_debit(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.entry_type == EntryType.DEBIT),
            Decimal("0"),
        )
    
    @computed_field
    @property
    def total_credit(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.entry_type == EntryType.CREDIT),
            Decimal("0"),
        )
    
    @property
    def has_unresolved_accounts(self) -> bool:
        return any(not line.account_code for line in self.lines)


class PreparedJournal(BaseModel):
    """
    A fully resolved, balanced journal ready for the atomic writer.
    
    Carries the target status and the source document reference copied
    from the event.
    """
    company_id: UUID
    entry_date: date
    description: str
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    total_debit: Decimal
    total_credit: Decimal
    lines: List[JournalLineSpec]
    source_document_type: Optional[str] = None
    source_document_id: Optional[str] = None
    created_by: Optional[UUID] = None


class BalanceCheck(BaseModel):
    """Outcome of a balance validation."""
    valid: bool
    company_id: UUID
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    message: Optional[str] = None


class AtomicWriteResult(BaseModel):
    """Outcome of an atomic journal write."""
    success: bool
    journal_entry_ids: List[UUID] = Field(default_factory=list)
    error: Optional[str] = None
    stale: bool = False


# =============================================================================
# PERSISTED JOURNALS
# =============================================================================

class JournalEntryLineResponse(BaseModel):
    """Schema for journal entry line response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    line_number: int
    account_code: str
    entry_type: EntryType
    amount: Decimal
    description: Optional[str] = None


class JournalEntryResponse(BaseModel):
    """Schema for journal entry response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    company_id: UUID
    reference_number: str
    entry_date: date
    description: str
    status: JournalEntryStatus
    total_debit: Decimal
    total_credit: Decimal
    source_document_type: Optional[str] = None
    source_document_id: Optional[str] = None
    is_auto_generated: bool
    posted_at: Optional[datetime] = None
    created_at: datetime
    lines: List[JournalEntryLineResponse] = []
