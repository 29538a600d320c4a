"""
Event Ledger - Journal Event Settings Model

Per-company, per-event-type switches for journal generation.
A missing row means the event type is enabled and journals stay in draft.
"""

import uuid
from typing import List, Optional

from sqlalchemy import Boolean, String, Uuid, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.models.base import BaseModel


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


class JournalEventSetting(BaseModel):
    """Journal generation policy of one event type in one company."""
    
    __tablename__ = "journal_event_settings"
    
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_type: Mapped[AccountingEventType] = mapped_column(
        SQLEnum(AccountingEventType, name="accounting_event_type", values_callable=_enum_values),
        nullable=False,
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_post: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_debit_account: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    default_credit_account: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('company_id', 'event_type', name='uq_journal_event_setting'),
    )
    
    def __repr__(self) -> str:
        return f"<JournalEventSetting({self.company_id}: {self.event_type} enabled={self.is_enabled})>"
