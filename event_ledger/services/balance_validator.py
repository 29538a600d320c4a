"""
Event Ledger - Balance Validator

Final integrity gate before persistence: total debits must equal total
credits for every journal, within a rounding tolerance.
"""

from decimal import Decimal
from typing import Optional

from event_ledger.config import settings
from event_ledger.schemas.journal import BalanceCheck, JournalSpec


def validate_balance(spec: JournalSpec, tolerance: Optional[Decimal] = None) -> BalanceCheck:
    """Check that a journal spec balances."""
    if tolerance is None:
        tolerance = settings.balance_tolerance
    
    total_debit = spec.total_debit
    total_credit = spec.total_credit
    difference = abs(total_debit - total_credit)
    
    if difference > tolerance:
        return BalanceCheck(
            valid=False,
            company_id=spec.company_id,
            total_debit=total_debit,
            total_credit=total_credit,
            difference=difference,
            message=f"Debit={total_debit:.2f}, Credit={total_credit:.2f}",
        )
    
    return BalanceCheck(
        valid=True,
        company_id=spec.company_id,
        total_debit=total_debit,
        total_credit=total_credit,
        difference=difference,
    )
