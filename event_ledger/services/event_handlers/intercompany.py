"""
Event Ledger - Intercompany Event Handlers

MANAGEMENT_FEE_RECOGNIZED and INTERCOMPANY_SETTLEMENT. Both always post
one journal in each of two companies.
"""

from typing import List, Optional

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.schemas.accounting_events import IntercompanySettlementData, ManagementFeeData
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.event_handlers.base import DEFAULT_ACCOUNTS, EventHandler, credit, debit


class ManagementFeeHandler(EventHandler):
    """
    Management fee charged by the management company to a project company.
    
        project company:     Dr Management Fee Expense (6800) / Cr Intercompany Payable (2700)
        management company:  Dr Intercompany Receivable (1180) / Cr Management Fee Income (4800)
    """
    
    event_type = AccountingEventType.MANAGEMENT_FEE_RECOGNIZED
    payload_model = ManagementFeeData
    
    def check(self, payload: ManagementFeeData) -> Optional[str]:
        if payload.project_company_id == payload.management_company_id:
            return "Project company and management company cannot be the same"
        if payload.fee_amount <= 0:
            return "Invalid fee amount"
        if payload.period_from > payload.period_to:
            return "Invalid period: periodFrom is after periodTo"
        return None
    
    def build_journals(self, event: AccountingEvent, payload: ManagementFeeData) -> List[JournalSpec]:
        period = f"{payload.period_from.isoformat()} to {payload.period_to.isoformat()}"
        basis = f"Management fee {payload.fee_percentage}% on gross income {payload.gross_income}"
        fee = payload.fee_amount
        
        return [
            JournalSpec(
                company_id=payload.project_company_id,
                entry_date=event.event_date,
                description=f"Management Fee - {payload.project_name} ({period})",
                lines=[
                    debit(DEFAULT_ACCOUNTS["MANAGEMENT_FEE_EXPENSE"], fee, basis),
                    credit(DEFAULT_ACCOUNTS["INTERCOMPANY_PAYABLE"], fee, "Due to management company"),
                ],
            ),
            JournalSpec(
                company_id=payload.management_company_id,
                entry_date=event.event_date,
                description=f"Management Fee Income - {payload.project_name} ({period})",
                lines=[
                    debit(DEFAULT_ACCOUNTS["INTERCOMPANY_RECEIVABLE"], fee, "Due from project company"),
                    credit(DEFAULT_ACCOUNTS["MANAGEMENT_FEE_INCOME"], fee, basis),
                ],
            ),
        ]


class IntercompanySettlementHandler(EventHandler):
    """
    Cash settlement of an intercompany balance.
    
        paying company:     Dr Intercompany Payable (2700) / Cr Bank
        receiving company:  Dr Bank / Cr Intercompany Receivable (1180)
    """
    
    event_type = AccountingEventType.INTERCOMPANY_SETTLEMENT
    payload_model = IntercompanySettlementData
    
    def check(self, payload: IntercompanySettlementData) -> Optional[str]:
        if payload.from_company_id == payload.to_company_id:
            return "From and To companies cannot be the same"
        if payload.settlement_amount <= 0:
            return "Invalid settlement amount"
        return None
    
    def build_journals(
        self, event: AccountingEvent, payload: IntercompanySettlementData
    ) -> List[JournalSpec]:
        reference_note = f" - Ref: {payload.reference}" if payload.reference else ""
        amount = payload.settlement_amount
        
        return [
            JournalSpec(
                company_id=payload.from_company_id,
                entry_date=payload.settlement_date,
                description=f"Intercompany settlement{reference_note}",
                lines=[
                    debit(DEFAULT_ACCOUNTS["INTERCOMPANY_PAYABLE"], amount, "Clear intercompany payable"),
                    credit(payload.from_bank_gl_code, amount, "Payment to related company"),
                ],
            ),
            JournalSpec(
                company_id=payload.to_company_id,
                entry_date=payload.settlement_date,
                description=f"Intercompany settlement received{reference_note}",
                lines=[
                    debit(payload.to_bank_gl_code, amount, "Receipt from related company"),
                    credit(DEFAULT_ACCOUNTS["INTERCOMPANY_RECEIVABLE"], amount, "Clear intercompany receivable"),
                ],
            ),
        ]
