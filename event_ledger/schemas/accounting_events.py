"""
Event Ledger - Accounting Event Schemas

Pydantic schemas for accounting events: one strongly typed payload model
per event type (keyed by event type), plus the request/response schemas of
the events API and the processing result.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from event_ledger.models.accounting_event import AccountingEventType, EventStatus
from event_ledger.schemas.journal import JournalEntryResponse


# =============================================================================
# EVENT PAYLOADS
# =============================================================================

class EventPayload(BaseModel):
    """
    Base for event payloads.
    
    Field names are snake_case; camelCase keys from existing producers
    are accepted too. Unknown keys are kept as-is.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )
    
    currency: Optional[str] = None


# ----- Expenses -----

class ExpenseLineItem(EventPayload):
    description: str = ""
    account_code: Optional[str] = None
    amount: Decimal = Field(..., ge=0)


class ExpenseApprovedData(EventPayload):
    expense_id: Optional[str] = None
    expense_number: Optional[str] = None
    vendor_name: Optional[str] = None
    expense_date: Optional[date] = None
    line_items: List[ExpenseLineItem] = Field(..., min_length=1)
    total_subtotal: Decimal = Field(..., ge=0)
    total_vat_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., gt=0)
    payable_account_code: Optional[str] = None


class ExpensePaidData(EventPayload):
    expense_id: str
    payment_id: Optional[str] = None
    expense_number: Optional[str] = None
    vendor_name: Optional[str] = None
    payment_date: date
    payment_amount: Decimal = Field(..., gt=0)
    bank_account_id: Optional[str] = None
    bank_account_gl_code: str = Field(..., min_length=1)
    # Set when another company's bank account paid the expense
    paying_company_id: Optional[UUID] = None
    paying_company_name: Optional[str] = None
    expense_company_name: Optional[str] = None


class CapexIncurredData(EventPayload):
    expense_id: Optional[str] = None
    asset_description: str = Field(..., min_length=1)
    asset_account_code: str = Field(..., min_length=1)
    acquisition_date: date
    acquisition_cost: Decimal = Field(..., gt=0)
    vendor_name: Optional[str] = None
    payment_method: Literal["cash", "bank", "payable"]
    bank_account_id: Optional[str] = None
    bank_account_gl_code: Optional[str] = None


# ----- Receipts & revenue -----

class ReceiptLineItem(EventPayload):
    id: Optional[str] = None
    description: str = ""
    account_code: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    project_id: Optional[str] = None


class ReceiptPayment(EventPayload):
    amount: Decimal = Field(..., gt=0)
    bank_account_id: Optional[str] = None
    bank_account_gl_code: Optional[str] = None
    payment_method: Optional[str] = None


class ReceiptReceivedData(EventPayload):
    receipt_id: str = Field(..., min_length=1)
    receipt_number: str = Field(..., min_length=1)
    client_name: str = ""
    receipt_date: date
    line_items: List[ReceiptLineItem] = Field(..., min_length=1)
    payments: List[ReceiptPayment] = Field(..., min_length=1)
    total_subtotal: Decimal = Field(Decimal("0"), ge=0)
    total_vat_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., gt=0)
    project_id: Optional[str] = None


class ProjectServiceCompletedData(EventPayload):
    project_id: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    invoice_id: Optional[str] = None
    completion_date: date
    revenue_account_code: Optional[str] = None
    deferred_revenue_account_code: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    description: str = ""


# ----- Intercompany -----

class ManagementFeeData(EventPayload):
    period_from: date
    period_to: date
    project_id: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    project_company_id: UUID
    management_company_id: UUID
    fee_percentage: Decimal = Decimal("0")
    gross_income: Decimal = Decimal("0")
    fee_amount: Decimal


class IntercompanySettlementData(EventPayload):
    from_company_id: UUID
    to_company_id: UUID
    settlement_date: date
    settlement_amount: Decimal
    from_bank_account_id: Optional[str] = None
    to_bank_account_id: Optional[str] = None
    from_bank_gl_code: str = Field(..., min_length=1)
    to_bank_gl_code: str = Field(..., min_length=1)
    reference: Optional[str] = None


# ----- Partners -----

class PartnerAllocation(EventPayload):
    participant_id: str = Field(..., min_length=1)
    participant_name: str = Field(..., min_length=1)
    ownership_percentage: Decimal = Decimal("0")
    allocated_amount: Decimal = Field(..., ge=0)


class PartnerProfitAllocationData(EventPayload):
    period_from: date
    period_to: date
    project_id: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    allocations: List[PartnerAllocation] = Field(..., min_length=1)
    total_profit: Decimal = Field(..., gt=0)


class PartnerPaymentData(EventPayload):
    project_id: str = Field(..., min_length=1)
    participant_id: str = Field(..., min_length=1)
    participant_name: str = Field(..., min_length=1)
    payment_date: date
    payment_amount: Decimal = Field(..., gt=0)
    bank_account_id: Optional[str] = None
    bank_account_gl_code: str = Field(..., min_length=1)


# ----- Opening balances -----

class OpeningBalanceRow(EventPayload):
    account_code: str = Field(..., min_length=1)
    account_name: Optional[str] = None
    debit_amount: Decimal = Field(Decimal("0"), ge=0)
    credit_amount: Decimal = Field(Decimal("0"), ge=0)


class OpeningBalanceData(EventPayload):
    fiscal_year: str = Field(..., min_length=1)
    balances: List[OpeningBalanceRow] = Field(..., min_length=1)


EVENT_PAYLOAD_MODELS: Dict[AccountingEventType, Type[EventPayload]] = {
    AccountingEventType.EXPENSE_APPROVED: ExpenseApprovedData,
    AccountingEventType.EXPENSE_PAID: ExpensePaidData,
    AccountingEventType.RECEIPT_RECEIVED: ReceiptReceivedData,
    AccountingEventType.MANAGEMENT_FEE_RECOGNIZED: ManagementFeeData,
    AccountingEventType.INTERCOMPANY_SETTLEMENT: IntercompanySettlementData,
    AccountingEventType.PARTNER_PROFIT_ALLOCATION: PartnerProfitAllocationData,
    AccountingEventType.PARTNER_PAYMENT: PartnerPaymentData,
    AccountingEventType.OPENING_BALANCE: OpeningBalanceData,
    AccountingEventType.PROJECT_SERVICE_COMPLETED: ProjectServiceCompletedData,
    AccountingEventType.CAPEX_INCURRED: CapexIncurredData,
}


def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a single readable line."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def parse_event_data(event_type: AccountingEventType, event_data: Dict[str, Any]) -> EventPayload:
    """
    Validate raw event data against the payload model of its event type.
    
    Raises:
        KeyError: no payload model for the event type
        ValidationError: the data does not match the payload model
    """
    model = EVENT_PAYLOAD_MODELS[AccountingEventType(event_type)]
    return model.model_validate(event_data)


# =============================================================================
# PROCESSING RESULTS
# =============================================================================

class EventProcessError(str, Enum):
    """Failure kinds reported by the event processor."""
    NOT_FOUND = "not_found"
    ALREADY_PROCESSED = "already_processed"
    CANCELLED = "cancelled"
    NO_HANDLER = "no_handler"
    VALIDATION_FAILED = "validation_failed"
    EMPTY_JOURNAL_SET = "empty_journal_set"
    UNBALANCED = "unbalanced"
    ATOMIC_WRITE_FAILURE = "atomic_write_failure"
    UNEXPECTED = "unexpected"


class EventProcessResult(BaseModel):
    """Structured outcome of every processor operation."""
    success: bool
    event_id: Optional[UUID] = None
    journal_entry_ids: List[UUID] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[EventProcessError] = None
    message: Optional[str] = None
    skipped_companies: List[UUID] = Field(default_factory=list)
    status: Optional[EventStatus] = None


class ProcessPendingRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=1000)


class ProcessPendingResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[EventProcessResult]


# =============================================================================
# EVENTS API
# =============================================================================

class AccountingEventCreate(BaseModel):
    """Schema for creating an accounting event."""
    event_type: AccountingEventType
    event_date: date
    affected_companies: List[UUID] = Field(..., min_length=1)
    event_data: Dict[str, Any]
    source_document_type: Optional[str] = Field(None, max_length=50)
    source_document_id: Optional[str] = Field(None, max_length=100)
    created_by: Optional[UUID] = None
    
    @model_validator(mode="after")
    def validate_event_data(self):
        try:
            parse_event_data(self.event_type, self.event_data)
        except ValidationError as exc:
            raise ValueError(
                f"Invalid event data for {self.event_type.value}: {format_validation_error(exc)}"
            )
        # affected companies is a set; keep first-seen order
        self.affected_companies = list(dict.fromkeys(self.affected_companies))
        return self


class DuplicateCheckRequest(BaseModel):
    event_type: AccountingEventType
    source_document_type: str = Field(..., min_length=1, max_length=50)
    source_document_id: str = Field(..., min_length=1, max_length=100)


class DuplicateCheckResponse(BaseModel):
    is_duplicate: bool


class AccountingEventResponse(BaseModel):
    """Schema for accounting event response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    event_type: AccountingEventType
    event_date: date
    status: EventStatus
    affected_companies: List[UUID]
    event_data: Dict[str, Any]
    source_document_type: Optional[str] = None
    source_document_id: Optional[str] = None
    created_by: Optional[UUID] = None
    retry_count: int
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    skipped_companies: List[UUID] = []
    created_at: datetime
    updated_at: datetime


class AccountingEventDetailResponse(AccountingEventResponse):
    """Event with the journals it produced."""
    journal_entries: List[JournalEntryResponse] = []


class AccountingEventListResponse(BaseModel):
    items: List[AccountingEventResponse]
    total: int


class EventJournalLinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    event_id: UUID
    journal_entry_id: UUID
    company_id: UUID
    created_at: datetime


class EventStatistics(BaseModel):
    """Event counts per status."""
    pending: int = 0
    processed: int = 0
    failed: int = 0
    cancelled: int = 0
    total: int = 0


# =============================================================================
# JOURNAL EVENT SETTINGS
# =============================================================================

class JournalEventSettingUpdate(BaseModel):
    """Schema for creating or replacing a company's setting for one event type."""
    is_enabled: bool = True
    auto_post: bool = False
    default_debit_account: Optional[str] = Field(None, min_length=1, max_length=20)
    default_credit_account: Optional[str] = Field(None, min_length=1, max_length=20)


class JournalEventSettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    company_id: UUID
    event_type: AccountingEventType
    is_enabled: bool
    auto_post: bool
    default_debit_account: Optional[str] = None
    default_credit_account: Optional[str] = None
    updated_at: datetime
