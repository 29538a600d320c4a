"""
Event Ledger - Opening Balance Handler
"""

from decimal import Decimal
from typing import List, Optional

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.schemas.accounting_events import OpeningBalanceData
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.event_handlers.base import (
    AMOUNT_TOLERANCE,
    EventHandler,
    credit,
    debit,
    fmt_amount,
)


class OpeningBalanceHandler(EventHandler):
    """Initial balances for a fiscal year, one debit and/or credit line per account."""
    
    event_type = AccountingEventType.OPENING_BALANCE
    payload_model = OpeningBalanceData
    
    def check(self, payload: OpeningBalanceData) -> Optional[str]:
        total_debits = Decimal("0")
        total_credits = Decimal("0")
        for row in payload.balances:
            if row.debit_amount == 0 and row.credit_amount == 0:
                return f"No amount specified for account {row.account_code}"
            total_debits += row.debit_amount
            total_credits += row.credit_amount
        
        if abs(total_debits - total_credits) > AMOUNT_TOLERANCE:
            return (
                f"Opening balances not balanced: Debits={fmt_amount(total_debits)}, "
                f"Credits={fmt_amount(total_credits)}"
            )
        return None
    
    def build_journals(self, event: AccountingEvent, payload: OpeningBalanceData) -> List[JournalSpec]:
        lines = []
        for row in payload.balances:
            description = row.account_name or f"Opening balance - {row.account_code}"
            if row.debit_amount > 0:
                lines.append(debit(row.account_code, row.debit_amount, description))
            if row.credit_amount > 0:
                lines.append(credit(row.account_code, row.credit_amount, description))
        
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=event.event_date,
                description=f"Opening balances - FY {payload.fiscal_year}",
                lines=lines,
            )
        ]
