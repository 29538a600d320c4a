"""
Event Ledger - Atomic Journal Writer

Persists every journal produced by one event in a single database
transaction: headers, lines, event links and the per-company reference
number allocations. Either all of it commits or none of it does.

Callers must not hold other uncommitted changes on the session, since
the writer commits or rolls back the whole transaction.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger.config import settings
from event_ledger.models.accounting_event import EventJournalEntry
from event_ledger.models.journal import (
    CompanySequence,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from event_ledger.schemas.journal import AtomicWriteResult, PreparedJournal

logger = logging.getLogger(__name__)


# INSERT ... ON CONFLICT DO NOTHING per supported dialect
UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}

# Runs after the inserts, before commit, with the new journal IDs
FinalizeHook = Callable[[List[uuid.UUID]], Awaitable[None]]


class StaleEventError(Exception):
    """The event changed state while its journals were being written."""
    pass


class AtomicJournalWriter:
    """All-or-nothing writer for multi-company journal sets."""

    def __init__(
        self,
        db: AsyncSession,
        reference_prefix: Optional[str] = None,
        sequence_name: Optional[str] = None,
    ):
        self.db = db
        self.reference_prefix = reference_prefix or settings.journal_reference_prefix
        self.sequence_name = sequence_name or settings.journal_sequence_name

    async def save_journals_atomically(
        self,
        event_id: uuid.UUID,
        journals: List[PreparedJournal],
        finalize: Optional[FinalizeHook] = None,
    ) -> AtomicWriteResult:
        """
        Insert all journals, their lines and their event links, run the
        finalize hook, then commit. Any failure rolls everything back.
        """
        if not journals:
            return AtomicWriteResult(success=False, error="No journals to save")

        journal_ids: List[uuid.UUID] = []
        try:
            for journal in journals:
                entry = await self._insert_journal(event_id, journal)
                journal_ids.append(entry.id)

            if finalize is not None:
                await finalize(journal_ids)

            await self.db.commit()
        except StaleEventError as exc:
            await self.db.rollback()
            logger.warning(f"Discarded journals for event {event_id}: {exc}")
            return AtomicWriteResult(success=False, stale=True, error=str(exc))
        except Exception as exc:
            await self.db.rollback()
            logger.exception(f"Atomic journal write failed for event {event_id}")
            return AtomicWriteResult(success=False, error=str(exc) or type(exc).__name__)

        logger.info(f"Saved {len(journal_ids)} journal(s) for event {event_id}")
        return AtomicWriteResult(success=True, journal_entry_ids=journal_ids)

    async def _insert_journal(self, event_id: uuid.UUID, journal: PreparedJournal) -> JournalEntry:
        reference_number = await self._next_reference_number(journal.company_id, journal.entry_date)
        is_posted = journal.status == JournalEntryStatus.POSTED

        entry = JournalEntry(
            company_id=journal.company_id,
            reference_number=reference_number,
            entry_date=journal.entry_date,
            description=journal.description,
            status=journal.status,
            total_debit=journal.total_debit,
            total_credit=journal.total_credit,
            source_document_type=journal.source_document_type,
            source_document_id=journal.source_document_id,
            is_auto_generated=True,
            created_by=journal.created_by,
            posted_at=datetime.now(timezone.utc) if is_posted else None,
            lines=[
                JournalEntryLine(
                    line_number=idx,
                    account_code=line.account_code,
                    entry_type=line.entry_type,
                    amount=line.amount,
                    description=line.description,
                )
                for idx, line in enumerate(journal.lines, 1)
            ],
        )
        self.db.add(entry)
        await self.db.flush()

        self.db.add(EventJournalEntry(
            event_id=event_id,
            journal_entry_id=entry.id,
            company_id=journal.company_id,
        ))
        await self.db.flush()
        return entry

    async def _next_reference_number(self, company_id: uuid.UUID, entry_date: date) -> str:
        """
        Allocate the next reference number for a company.

        The sequence row is locked until the surrounding transaction ends.
        """
        sequence = await self._lock_sequence(company_id)
        if sequence is None:
            await self._create_sequence(company_id)
            sequence = await self._lock_sequence(company_id)

        value = sequence.next_value
        sequence.next_value = value + 1
        await self.db.flush()

        return f"{self.reference_prefix}-{entry_date.year}-{value:05d}"

    async def _lock_sequence(self, company_id: uuid.UUID) -> Optional[CompanySequence]:
        result = await self.db.execute(
            select(CompanySequence)
            .where(
                CompanySequence.company_id == company_id,
                CompanySequence.name == self.sequence_name,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _create_sequence(self, company_id: uuid.UUID) -> None:
        """
        Insert the first sequence row for a company.

        A concurrent first writer may insert the same row; the conflict is
        ignored and both then lock the single row that exists.
        """
        dialect = self.db.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Reference sequences are not supported on {dialect}")

        await self.db.execute(
            insert(CompanySequence)
            .values(company_id=company_id, name=self.sequence_name, next_value=1)
            .on_conflict_do_nothing(index_elements=["company_id", "name"])
        )
