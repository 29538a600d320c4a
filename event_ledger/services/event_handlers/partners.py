"""
Event Ledger - Partner Event Handlers

PARTNER_PROFIT_ALLOCATION and PARTNER_PAYMENT.
"""

from decimal import Decimal
from typing import List, Optional

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.schemas.accounting_events import PartnerPaymentData, PartnerProfitAllocationData
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.event_handlers.base import (
    AMOUNT_TOLERANCE,
    DEFAULT_ACCOUNTS,
    EventHandler,
    credit,
    debit,
)


class PartnerProfitAllocationHandler(EventHandler):
    """
    Allocation of project profit to partners by ownership.
    
        Dr  Retained Earnings (3200)   total profit
            Cr  Partner Payables (2750)   per partner
    """
    
    event_type = AccountingEventType.PARTNER_PROFIT_ALLOCATION
    payload_model = PartnerProfitAllocationData
    
    def check(self, payload: PartnerProfitAllocationData) -> Optional[str]:
        allocated = sum((a.allocated_amount for a in payload.allocations), Decimal("0"))
        if abs(allocated - payload.total_profit) > AMOUNT_TOLERANCE:
            return "Allocations do not sum to total profit"
        if payload.period_from > payload.period_to:
            return "Invalid period: periodFrom is after periodTo"
        return None
    
    def build_journals(
        self, event: AccountingEvent, payload: PartnerProfitAllocationData
    ) -> List[JournalSpec]:
        period = f"{payload.period_from.isoformat()} to {payload.period_to.isoformat()}"
        
        lines = [
            debit(
                DEFAULT_ACCOUNTS["RETAINED_EARNINGS"],
                payload.total_profit,
                f"Profit allocation - {payload.project_name}",
            )
        ]
        for allocation in payload.allocations:
            if allocation.allocated_amount > 0:
                lines.append(credit(
                    DEFAULT_ACCOUNTS["PARTNER_PAYABLES"],
                    allocation.allocated_amount,
                    f"{allocation.participant_name} ({allocation.ownership_percentage}%)",
                ))
        
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=event.event_date,
                description=f"Profit allocation - {payload.project_name} ({period})",
                lines=lines,
            )
        ]


class PartnerPaymentHandler(EventHandler):
    """Distribution of allocated profit: Dr Partner Payables (2750) / Cr Bank."""
    
    event_type = AccountingEventType.PARTNER_PAYMENT
    payload_model = PartnerPaymentData
    
    def build_journals(self, event: AccountingEvent, payload: PartnerPaymentData) -> List[JournalSpec]:
        amount = payload.payment_amount
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=payload.payment_date,
                description=f"Partner distribution - {payload.participant_name}",
                lines=[
                    debit(DEFAULT_ACCOUNTS["PARTNER_PAYABLES"], amount, f"Distribution to {payload.participant_name}"),
                    credit(payload.bank_account_gl_code, amount, f"Payment to {payload.participant_name}"),
                ],
            )
        ]
