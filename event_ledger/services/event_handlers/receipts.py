"""
Event Ledger - Revenue Event Handlers

RECEIPT_RECEIVED and PROJECT_SERVICE_COMPLETED.
"""

from typing import List

from event_ledger.models.accounting_event import AccountingEvent, AccountingEventType
from event_ledger.schemas.accounting_events import ProjectServiceCompletedData, ReceiptReceivedData
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.event_handlers.base import DEFAULT_ACCOUNTS, EventHandler, credit, debit


class ReceiptReceivedHandler(EventHandler):
    """
    Customer payment received.
    
        Dr  Bank / Cash (per payment, 1000 when no bank account)
            Cr  Revenue (per line item)
            Cr  VAT Payable (2200)
    """
    
    event_type = AccountingEventType.RECEIPT_RECEIVED
    payload_model = ReceiptReceivedData
    
    def build_journals(self, event: AccountingEvent, payload: ReceiptReceivedData) -> List[JournalSpec]:
        client = payload.client_name or "customer"
        lines = []
        
        for payment in payload.payments:
            lines.append(debit(
                payment.bank_account_gl_code or DEFAULT_ACCOUNTS["CASH"],
                payment.amount,
                f"Received from {client}",
            ))
        
        for item in payload.line_items:
            if item.amount > 0:
                lines.append(credit(item.account_code, item.amount, item.description))
        
        if payload.total_vat_amount > 0:
            lines.append(credit(DEFAULT_ACCOUNTS["VAT_PAYABLE"], payload.total_vat_amount, "Output VAT"))
        
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=payload.receipt_date,
                description=f"Receipt - {payload.receipt_number} - {client}",
                lines=lines,
            )
        ]


class ProjectServiceCompletedHandler(EventHandler):
    """Revenue recognition when a service is delivered: Dr Deferred Revenue / Cr Revenue."""
    
    event_type = AccountingEventType.PROJECT_SERVICE_COMPLETED
    payload_model = ProjectServiceCompletedData
    
    def build_journals(
        self, event: AccountingEvent, payload: ProjectServiceCompletedData
    ) -> List[JournalSpec]:
        description = payload.description or f"Service completed - {payload.project_name}"
        return [
            JournalSpec(
                company_id=self.primary_company(event),
                entry_date=payload.completion_date,
                description=f"Revenue recognition - {payload.project_name}",
                lines=[
                    debit(
                        payload.deferred_revenue_account_code or DEFAULT_ACCOUNTS["DEFERRED_REVENUE"],
                        payload.amount,
                        description,
                    ),
                    credit(payload.revenue_account_code, payload.amount, description),
                ],
            )
        ]
