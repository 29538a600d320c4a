"""
Event Ledger - Expense Event Handlers

EXPENSE_APPROVED, EXPENSE_PAID and CAPEX_INCURRED.
"""

from decimal import Decimal
from typing import List, Optional

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.schemas.accounting_events import (
    CapexIncurredData,
    ExpenseApprovedData,
    ExpensePaidData,
)
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.event_handlers.base import (
    AMOUNT_TOLERANCE,
    DEFAULT_ACCOUNTS,
    EventHandler,
    credit,
    debit,
    fmt_amount,
)


def _join(*parts: Optional[str]) -> str:
    return " - ".join(part for part in parts if part)


class ExpenseApprovedHandler(EventHandler):
    """
    Accrual recognition when an expense is approved.
    
        Dr  Expense (per line item)
        Dr  VAT Receivable (1170)
            Cr  Accounts Payable (payable account or company default)
    
    Line items without an account code are left for the default account
    resolver.
    """
    
    event_type = AccountingEventType.EXPENSE_APPROVED
    payload_model = ExpenseApprovedData
    
    def check(self, payload: ExpenseApprovedData) -> Optional[str]:
        items_total = sum((item.amount for item in payload.line_items), Decimal("0"))
        if abs(items_total - payload.total_subtotal) > AMOUNT_TOLERANCE:
            return (
                f"Line items do not sum to subtotal: Items={fmt_amount(items_total)}, "
                f"Subtotal={fmt_amount(payload.total_subtotal)}"
            )
        
        expected_total = payload.total_subtotal + payload.total_vat_amount
        if abs(expected_total - payload.total_amount) > AMOUNT_TOLERANCE:
            return (
                f"Expense totals do not add up: Subtotal={fmt_amount(payload.total_subtotal)}, "
                f"VAT={fmt_amount(payload.total_vat_amount)}, Total={fmt_amount(payload.total_amount)}"
            )
        return None
    
    def build_journals(self, event: AccountingEvent, payload: ExpenseApprovedData) -> List[JournalSpec]:
        vendor = payload.vendor_name or "vendor"
        
        lines = [
            debit(item.account_code, item.amount, item.description or f"Expense - {vendor}")
            for item in payload.line_items
            if item.amount > 0
        ]
        
        if payload.total_vat_amount > 0:
            lines.append(debit(DEFAULT_ACCOUNTS["VAT_RECEIVABLE"], payload.total_vat_amount, "Input VAT"))
        
        lines.append(credit(payload.payable_account_code, payload.total_amount, f"Payable to {vendor}"))
        
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=payload.expense_date or event.event_date,
                description=_join("Expense approved", payload.expense_number, payload.vendor_name),
                lines=lines,
            )
        ]


class ExpensePaidHandler(EventHandler):
    """
    Cash outflow when an approved expense is paid.
    
    Paid by the owning company:
        Dr  Accounts Payable (2050)  /  Cr  Bank
    
    Paid from another company's bank account (paying_company_id):
        paying company:  Dr Intercompany Receivable (1180)  /  Cr Bank
        owning company:  Dr Accounts Payable (2050)  /  Cr Intercompany Payable (2700)
    """
    
    event_type = AccountingEventType.EXPENSE_PAID
    payload_model = ExpensePaidData
    
    def build_journals(self, event: AccountingEvent, payload: ExpensePaidData) -> List[JournalSpec]:
        owner_id = self.primary_company(event)
        vendor = payload.vendor_name or "vendor"
        amount = payload.payment_amount
        
        if payload.paying_company_id is None or payload.paying_company_id == owner_id:
            return [
                JournalSpec(
                    company_id=owner_id,
                    entry_date=payload.payment_date,
                    description=_join("Expense paid", payload.expense_number, payload.vendor_name),
                    lines=[
                        debit(DEFAULT_ACCOUNTS["ACCOUNTS_PAYABLE"], amount, f"Payment to {vendor}"),
                        credit(payload.bank_account_gl_code, amount, f"Payment to {vendor}"),
                    ],
                )
            ]
        
        owner_name = payload.expense_company_name or "related company"
        payer_name = payload.paying_company_name or "related company"
        return [
            JournalSpec(
                company_id=payload.paying_company_id,
                entry_date=payload.payment_date,
                description=_join(f"Intercompany payment for {owner_name}", payload.expense_number, payload.vendor_name),
                lines=[
                    debit(
                        DEFAULT_ACCOUNTS["INTERCOMPANY_RECEIVABLE"], amount,
                        f"Intercompany receivable from {owner_name}",
                    ),
                    credit(payload.bank_account_gl_code, amount, f"Payment to {vendor} for {owner_name}"),
                ],
            ),
            JournalSpec(
                company_id=owner_id,
                entry_date=payload.payment_date,
                description=_join(f"Expense paid by {payer_name}", payload.expense_number, payload.vendor_name),
                lines=[
                    debit(DEFAULT_ACCOUNTS["ACCOUNTS_PAYABLE"], amount, f"Payment to {vendor}"),
                    credit(
                        DEFAULT_ACCOUNTS["INTERCOMPANY_PAYABLE"], amount,
                        f"Intercompany payable to {payer_name}",
                    ),
                ],
            ),
        ]


class CapexIncurredHandler(EventHandler):
    """
    Asset acquisition and capitalization.
    
        Dr  Asset account
            Cr  Cash (1000) | Bank | Accounts Payable (2050)
    """
    
    event_type = AccountingEventType.CAPEX_INCURRED
    payload_model = CapexIncurredData
    
    def check(self, payload: CapexIncurredData) -> Optional[str]:
        if payload.payment_method == "bank" and not payload.bank_account_gl_code:
            return "Missing bank account GL code for bank payment"
        return None
    
    def build_journals(self, event: AccountingEvent, payload: CapexIncurredData) -> List[JournalSpec]:
        if payload.payment_method == "cash":
            credit_account = DEFAULT_ACCOUNTS["CASH"]
        elif payload.payment_method == "bank":
            credit_account = payload.bank_account_gl_code
        else:
            credit_account = DEFAULT_ACCOUNTS["ACCOUNTS_PAYABLE"]
        
        cost = payload.acquisition_cost
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=payload.acquisition_date,
                description=_join("Capital expenditure", payload.asset_description, payload.vendor_name),
                lines=[
                    debit(payload.asset_account_code, cost, payload.asset_description),
                    credit(credit_account, cost, f"Acquisition of {payload.asset_description}"),
                ],
            )
        ]
