"""
Event Ledger - Event Handler Contract

A handler turns one type of accounting event into per-company journal
specifications. Handlers are pure: they read only the event they are
given and never touch the database, so they can be unit tested with an
unattached AccountingEvent instance.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from pydantic import ValidationError

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.models.journal import EntryType
from event_ledger.schemas.accounting_events import EventPayload, format_validation_error
from event_ledger.schemas.journal import JournalLineSpec, JournalSpec


# System chart of accounts codes used by the handlers
DEFAULT_ACCOUNTS = {
    # Assets
    "CASH": "1000",
    "DEFAULT_BANK": "1010",
    "VAT_RECEIVABLE": "1170",
    "INTERCOMPANY_RECEIVABLE": "1180",
    
    # Liabilities
    "ACCOUNTS_PAYABLE": "2050",
    "VAT_PAYABLE": "2200",
    "DEFERRED_REVENUE": "2300",
    "INTERCOMPANY_PAYABLE": "2700",
    "PARTNER_PAYABLES": "2750",
    
    # Equity
    "RETAINED_EARNINGS": "3200",
    
    # Revenue
    "DEFAULT_REVENUE": "4490",
    "MANAGEMENT_FEE_INCOME": "4800",
    
    # Expenses
    "DEFAULT_EXPENSE": "6790",
    "MANAGEMENT_FEE_EXPENSE": "6800",
}

# Rounding allowance when comparing payload totals
AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass
class HandlerValidation:
    """Result of a handler's payload validation."""
    valid: bool
    error: Optional[str] = None
    
    @classmethod
    def ok(cls) -> "HandlerValidation":
        return cls(valid=True)
    
    @classmethod
    def fail(cls, error: str) -> "HandlerValidation":
        return cls(valid=False, error=error)


def debit(account_code: Optional[str], amount: Decimal, description: str) -> JournalLineSpec:
    return JournalLineSpec(
        account_code=account_code,
        entry_type=EntryType.DEBIT,
        amount=amount,
        description=description,
    )


def credit(account_code: Optional[str], amount: Decimal, description: str) -> JournalLineSpec:
    return JournalLineSpec(
        account_code=account_code,
        entry_type=EntryType.CREDIT,
        amount=amount,
        description=description,
    )


def fmt_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


class EventHandler(ABC):
    """
    Strategy for one event type.
    
    Subclasses declare the payload model, optionally add business rules in
    check(), and build journal specs from the parsed payload.
    """
    
    event_type: AccountingEventType
    payload_model: Type[EventPayload]
    
    def parse(self, event_data: Optional[Dict[str, Any]]) -> EventPayload:
        return self.payload_model.model_validate(event_data or {})
    
    def validate(self, event_data: Optional[Dict[str, Any]]) -> HandlerValidation:
        """Validate raw event data: payload shape first, then business rules."""
        try:
            payload = self.parse(event_data)
        except ValidationError as exc:
            return HandlerValidation.fail(f"Invalid event data: {format_validation_error(exc)}")
        
        error = self.check(payload)
        if error:
            return HandlerValidation.fail(error)
        return HandlerValidation.ok()
    
    def check(self, payload: EventPayload) -> Optional[str]:
        """Business rules beyond the payload schema. Returns an error message or None."""
        return None
    
    def generate_journals(self, event: AccountingEvent) -> List[JournalSpec]:
        payload = self.parse(event.event_data)
        return self.build_journals(event, payload)
    
    @abstractmethod
    def build_journals(self, event: AccountingEvent, payload: EventPayload) -> List[JournalSpec]:
        """Build per-company journal specs from a validated payload."""
        pass
    
    @staticmethod
    def primary_company(event: AccountingEvent) -> uuid.UUID:
        """The company a single-company event is booked in."""
        if not event.affected_companies:
            raise ValueError("Event has no affected companies")
        return uuid.UUID(str(event.affected_companies[0]))
