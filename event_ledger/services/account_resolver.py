"""
Event Ledger - Default Account Resolver

Fills journal lines that have no account code. Per line, first match wins:

1. the account code set by the handler (the source document's choice)
2. the company's configured default for the event type and line side
3. the system-wide default for the line side

Amounts are never changed.
"""

from typing import Optional

from event_ledger.config import settings
from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.models.journal import EntryType
from event_ledger.schemas.journal import JournalSpec
from event_ledger.services.journal_event_settings_service import JournalEventSettingsService


class DefaultAccountResolver:
    """Three-tier account fallback for journal specs."""
    
    def __init__(
        self,
        settings_service: JournalEventSettingsService,
        system_default_debit: Optional[str] = None,
        system_default_credit: Optional[str] = None,
    ):
        self.settings_service = settings_service
        self.system_default_debit = system_default_debit or settings.system_default_debit_account
        self.system_default_credit = system_default_credit or settings.system_default_credit_account
    
    def system_default(self, entry_type: EntryType) -> str:
        if entry_type == EntryType.DEBIT:
            return self.system_default_debit
        return self.system_default_credit
    
    async def apply_default_accounts(
        self,
        spec: JournalSpec,
        event_type: AccountingEventType,
    ) -> JournalSpec:
        """Return a copy of spec where every line has an account code."""
        if not spec.has_unresolved_accounts:
            return spec
        
        configured_debit, configured_credit = await self.settings_service.get_default_accounts(
            spec.company_id, event_type
        )
        return self.resolve(spec, configured_debit, configured_credit)
    
    def resolve(
        self,
        spec: JournalSpec,
        configured_debit: Optional[str] = None,
        configured_credit: Optional[str] = None,
    ) -> JournalSpec:
        lines = []
        for line in spec.lines:
            if line.account_code:
                lines.append(line)
                continue
            
            configured = configured_debit if line.entry_type == EntryType.DEBIT else configured_credit
            account_code = configured or self.system_default(line.entry_type)
            lines.append(line.model_copy(update={"account_code": account_code}))
        
        return spec.model_copy(update={"lines": lines})
