from decimal import Decimal

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine

from group_ledger.exceptions import AccountNotFound, StoreUnavailable
from group_ledger.models import Account, TransactionRecord, TransactionType
from group_ledger.services.ledger_store import LedgerStore

CHAT = '-500'


async def _append(store, session, account, amount):
    record = TransactionRecord(
        account_id=account.id,
        type=TransactionType.PENDING_ADD.value,
        amount=Decimal(amount),
        reserve_after=account.reserve_balance,
        pending_amount_after=account.pending_amount,
        note=f'test {amount}',
    )
    return await store.append_transaction(session, record)


async def test_load_or_create_is_idempotent(store):
    async with store.transaction() as session:
        first = await store.load_or_create_account(session, CHAT, 'Group')
    async with store.transaction() as session:
        second = await store.load_or_create_account(session, CHAT, None)

    assert first.id == second.id
    assert second.chat_title == 'Group'
    assert second.reserve_balance == 0
    assert second.pending_amount == 0
    assert second.service_rate == 0


async def test_history_missing_account_vs_empty_log(store):
    with pytest.raises(AccountNotFound):
        await store.list_transactions(CHAT, limit=10)

    async with store.transaction() as session:
        await store.load_or_create_account(session, CHAT)

    assert await store.list_transactions(CHAT, limit=10) == []


async def test_history_is_newest_first_and_limited(store):
    async with store.transaction() as session:
        account = await store.load_or_create_account(session, CHAT)
        for amount in ('1', '2', '3'):
            await _append(store, session, account, amount)

    records = await store.list_transactions(CHAT, limit=2)

    assert [r.amount for r in records] == [Decimal('3'), Decimal('2')]


async def test_history_limit_must_be_positive(store):
    with pytest.raises(ValueError):
        await store.list_transactions(CHAT, limit=0)


async def test_failed_unit_of_work_rolls_back_everything(store):
    async def mutate_then_fail(session):
        account = await store.load_or_create_account(session, CHAT)
        account.pending_amount = Decimal('42')
        await store.save_account(session, account)
        await _append(store, session, account, '42')
        raise RuntimeError('boom')

    with pytest.raises(RuntimeError):
        await store.run_in_transaction(mutate_then_fail)

    with pytest.raises(AccountNotFound):
        await store.get_account(CHAT)


async def test_successful_unit_of_work_commits(store):
    async def mutate(session):
        account = await store.load_or_create_account(session, CHAT)
        account.reserve_balance = Decimal('1.2345678')
        await store.save_account(session, account)
        return account.id

    account_id = await store.run_in_transaction(mutate)
    account = await store.get_account(CHAT)

    assert account.id == account_id
    assert account.reserve_balance == Decimal('1.234568')


async def test_unreachable_database_raises_store_unavailable(tmp_path):
    engine = create_async_engine(
        f'sqlite+aiosqlite:///{tmp_path / "missing" / "nowhere.db"}'
    )
    store = LedgerStore(engine)
    try:
        with pytest.raises(StoreUnavailable):
            async with store.transaction() as session:
                await store.load_or_create_account(session, CHAT)
    finally:
        await engine.dispose()


async def test_invalidated_connection_raises_store_unavailable(store):
    async def lose_connection(session):
        await store.load_or_create_account(session, CHAT)
        raise DBAPIError('SELECT 1', {}, ConnectionResetError('server closed'),
                         connection_invalidated=True)

    with pytest.raises(StoreUnavailable):
        await store.run_in_transaction(lose_connection)

    with pytest.raises(AccountNotFound):
        await store.get_account(CHAT)


async def test_constraint_violation_is_not_an_outage(store):
    async with store.transaction() as session:
        await store.load_or_create_account(session, CHAT)

    async def insert_duplicate(session):
        await store.save_account(session, Account(chat_id=CHAT))

    with pytest.raises(IntegrityError):
        await store.run_in_transaction(insert_duplicate)
