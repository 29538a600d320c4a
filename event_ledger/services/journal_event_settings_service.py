"""
Event Ledger - Journal Event Settings Service

Company settings gate: per-company, per-event-type enablement, auto-post
policy and configured default accounts. A company without a setting row
gets journals (enabled) left in draft (no auto-post).
"""

import logging
import uuid
from typing import Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.models.journal_event_settings import JournalEventSetting
from event_ledger.schemas.accounting_events import JournalEventSettingUpdate

logger = logging.getLogger(__name__)


class EventPolicy(NamedTuple):
    """Snapshot of a company's setting for one event type."""
    is_enabled: bool = True
    auto_post: bool = False
    default_debit_account: Optional[str] = None
    default_credit_account: Optional[str] = None


class JournalEventSettingsService:
    """Service for journal event settings."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        # Plain values, so the cache survives commits and rollbacks on the session
        self._cache: Dict[Tuple[uuid.UUID, AccountingEventType], EventPolicy] = {}
    
    async def get_setting(
        self,
        company_id: uuid.UUID,
        event_type: AccountingEventType,
    ) -> Optional[JournalEventSetting]:
        """Get a company's setting row for an event type."""
        result = await self.db.execute(
            select(JournalEventSetting).where(
                JournalEventSetting.company_id == company_id,
                JournalEventSetting.event_type == event_type,
            )
        )
        return result.scalar_one_or_none()
    
    async def get_policy(self, company_id: uuid.UUID, event_type: AccountingEventType) -> EventPolicy:
        """Effective policy for (company, event type), cached per service instance."""
        cache_key = (company_id, AccountingEventType(event_type))
        if cache_key in self._cache:
            return self._cache[cache_key]
        
        setting = await self.get_setting(company_id, event_type)
        if setting is None:
            policy = EventPolicy()
        else:
            policy = EventPolicy(
                is_enabled=setting.is_enabled,
                auto_post=setting.auto_post,
                default_debit_account=setting.default_debit_account,
                default_credit_account=setting.default_credit_account,
            )
        self._cache[cache_key] = policy
        return policy
    
    async def is_enabled(self, company_id: uuid.UUID, event_type: AccountingEventType) -> bool:
        return (await self.get_policy(company_id, event_type)).is_enabled
    
    async def should_auto_post(self, company_id: uuid.UUID, event_type: AccountingEventType) -> bool:
        return (await self.get_policy(company_id, event_type)).auto_post
    
    async def get_default_accounts(
        self,
        company_id: uuid.UUID,
        event_type: AccountingEventType,
    ) -> Tuple[Optional[str], Optional[str]]:
        """Configured (debit, credit) default accounts, None where not set."""
        policy = await self.get_policy(company_id, event_type)
        return policy.default_debit_account, policy.default_credit_account
    
    async def list_settings(self, company_id: uuid.UUID) -> List[JournalEventSetting]:
        result = await self.db.execute(
            select(JournalEventSetting)
            .where(JournalEventSetting.company_id == company_id)
            .order_by(JournalEventSetting.event_type)
        )
        return list(result.scalars().all())
    
    async def upsert_setting(
        self,
        company_id: uuid.UUID,
        event_type: AccountingEventType,
        data: JournalEventSettingUpdate,
    ) -> JournalEventSetting:
        """Create or replace the setting for (company, event type)."""
        self._cache.clear()
        setting = await self.get_setting(company_id, event_type)
        
        if setting is None:
            setting = JournalEventSetting(company_id=company_id, event_type=event_type)
            self.db.add(setting)
        
        setting.is_enabled = data.is_enabled
        setting.auto_post = data.auto_post
        setting.default_debit_account = data.default_debit_account
        setting.default_credit_account = data.default_credit_account
        
        await self.db.commit()
        await self.db.refresh(setting)
        
        logger.info(
            f"Journal event setting {event_type.value} for company {company_id}: "
            f"enabled={setting.is_enabled}, auto_post={setting.auto_post}"
        )
        return setting
    
    async def delete_setting(self, company_id: uuid.UUID, event_type: AccountingEventType) -> bool:
        """Remove a setting so the company falls back to the defaults."""
        self._cache.clear()
        setting = await self.get_setting(company_id, event_type)
        if setting is None:
            return False
        
        await self.db.delete(setting)
        await self.db.commit()
        logger.info(f"Removed journal event setting {event_type.value} for company {company_id}")
        return True
