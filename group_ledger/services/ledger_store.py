"""Transactional persistence for accounts and their transaction log.

Every ledger mutation runs inside one ``LedgerStore.transaction()`` block:
load (or create) the account row, change it, append one record, commit.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from group_ledger.db.database import utcnow
from group_ledger.exceptions import AccountNotFound, StoreUnavailable
from group_ledger.models.account import Account
from group_ledger.models.transaction import TransactionRecord
from group_ledger.utils.money import ZERO

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Dialects that support INSERT ... ON CONFLICT
_UPSERT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


class LedgerStore:
    """Owns sessions and the unit-of-work boundary for the billing engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.dialect_name = engine.dialect.name
        if self.dialect_name not in _UPSERT_INSERTS:
            raise ValueError(f'Unsupported database dialect: {self.dialect_name}')
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """One atomic unit of work. Commits on exit, rolls back on any exception."""
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error(f'Ledger store unavailable: {e}', exc_info=True)
            raise StoreUnavailable(str(e)) from e
        except DBAPIError as e:
            # Only a dropped connection is an outage, IntegrityError and DataError propagate
            if not e.connection_invalidated:
                raise
            logger.error(f'Ledger store connection lost: {e}', exc_info=True)
            raise StoreUnavailable(str(e)) from e

    async def run_in_transaction(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.transaction() as session:
            return await fn(session)

    async def load_or_create_account(
        self,
        session: AsyncSession,
        chat_id: str,
        chat_title: str | None = None,
    ) -> Account:
        """Return the locked account row for ``chat_id``, creating it on first use.

        The insert is conflict tolerant so concurrent first calls converge on
        a single row; the title is refreshed whenever one is supplied.
        """
        insert = _UPSERT_INSERTS[self.dialect_name]
        now = utcnow()
        stmt = insert(Account).values(
            chat_id=chat_id,
            chat_title=chat_title,
            reserve_balance=ZERO,
            service_rate=ZERO,
            pending_amount=ZERO,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['chat_id'],
            set_={
                'chat_title': func.coalesce(stmt.excluded.chat_title, Account.chat_title),
                'updated_at': now,
            },
        )
        await session.execute(stmt)

        result = await session.execute(
            select(Account)
            .where(Account.chat_id == chat_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def save_account(self, session: AsyncSession, account: Account) -> None:
        session.add(account)
        await session.flush()

    async def append_transaction(
        self,
        session: AsyncSession,
        record: TransactionRecord,
    ) -> TransactionRecord:
        session.add(record)
        await session.flush()
        return record

    async def find_account(self, session: AsyncSession, chat_id: str) -> Account | None:
        result = await session.execute(select(Account).where(Account.chat_id == chat_id))
        return result.scalar_one_or_none()

    async def get_account(self, chat_id: str) -> Account:
        """Read-only lookup. Raises AccountNotFound instead of creating."""
        async with self.transaction() as session:
            account = await self.find_account(session, chat_id)
        if account is None:
            raise AccountNotFound(chat_id)
        return account

    async def get_history(
        self,
        chat_id: str,
        limit: int = 50,
    ) -> tuple[Account, list[TransactionRecord]]:
        """Account plus its newest ``limit`` records, newest first."""
        if limit < 1:
            raise ValueError('History limit must be positive')

        async with self.transaction() as session:
            account = await self.find_account(session, chat_id)
            if account is None:
                raise AccountNotFound(chat_id)

            result = await session.execute(
                select(TransactionRecord)
                .where(TransactionRecord.account_id == account.id)
                .order_by(TransactionRecord.created_at.desc(), TransactionRecord.id.desc())
                .limit(limit)
            )
            records = list(result.scalars().all())
        return account, records

    async def list_transactions(self, chat_id: str, limit: int = 50) -> list[TransactionRecord]:
        _, records = await self.get_history(chat_id, limit)
        return records
