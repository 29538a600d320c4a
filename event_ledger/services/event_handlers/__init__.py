"""
Event Ledger - Event Handler Registry

Static map from event type to the handler that validates its payload and
generates its journals.
"""

from typing import Dict, Optional

from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.services.event_handlers.base import (
    DEFAULT_ACCOUNTS,
    EventHandler,
    HandlerValidation,
)
from event_ledger.services.event_handlers.expenses import (
    CapexIncurredHandler,
    ExpenseApprovedHandler,
    ExpensePaidHandler,
)
from event_ledger.services.event_handlers.intercompany import (
    IntercompanySettlementHandler,
    ManagementFeeHandler,
)
from event_ledger.services.event_handlers.opening_balance import OpeningBalanceHandler
from event_ledger.services.event_handlers.partners import (
    PartnerPaymentHandler,
    PartnerProfitAllocationHandler,
)
from event_ledger.services.event_handlers.receipts import (
    ProjectServiceCompletedHandler,
    ReceiptReceivedHandler,
)


def build_handler_registry() -> Dict[AccountingEventType, EventHandler]:
    handlers = [
        ExpenseApprovedHandler(),
        ExpensePaidHandler(),
        ReceiptReceivedHandler(),
        ManagementFeeHandler(),
        IntercompanySettlementHandler(),
        PartnerProfitAllocationHandler(),
        PartnerPaymentHandler(),
        OpeningBalanceHandler(),
        ProjectServiceCompletedHandler(),
        CapexIncurredHandler(),
    ]
    return {handler.event_type: handler for handler in handlers}


EVENT_HANDLERS: Dict[AccountingEventType, EventHandler] = build_handler_registry()


def get_handler(event_type: AccountingEventType) -> Optional[EventHandler]:
    return EVENT_HANDLERS.get(event_type)


__all__ = [
    "DEFAULT_ACCOUNTS",
    "EVENT_HANDLERS",
    "EventHandler",
    "HandlerValidation",
    "build_handler_registry",
    "get_handler",
]
