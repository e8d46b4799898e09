"""Billing engine: the money-movement operations of a group ledger.

Each operation runs as one unit of work against the ledger store:
load-or-create the account, compute the new balances, save the account and
append exactly one transaction record. Reserve and pending never go
negative because every branch below only subtracts what is available.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from group_ledger.exceptions import InsufficientPending
from group_ledger.models.account import Account, AccountSnapshot
from group_ledger.models.transaction import TransactionRecord, TransactionType
from group_ledger.services.ledger_store import LedgerStore
from group_ledger.utils.money import (
    ZERO, check_rate, decimal_max, decimal_min, fit_storage, format_rate,
    parse_amount, parse_rate, to_decimal, to_storage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one ledger operation, balances taken after commit."""
    state: AccountSnapshot
    amount: Decimal
    service_fee: Decimal
    total: Decimal
    recharge_principal: Decimal
    pending_before: Decimal
    reserve_delta: Decimal
    # Only set by set_service_rate
    previous_rate: Decimal | None = None
    # False when nothing was appended to the log
    recorded: bool = True
    transaction_id: int | None = None


def calculate_totals(amount: Decimal, service_rate: Decimal) -> tuple[Decimal, Decimal]:
    """Return (service_fee, total) for a principal amount."""
    service_fee = amount * service_rate
    return service_fee, amount + service_fee


def _actor(actor_id) -> str:
    return str(actor_id) if actor_id is not None else 'unknown'


class BillingService:
    """Applies ledger operations for chat groups. Every movement goes through here."""

    def __init__(self, store: LedgerStore):
        self.store = store

    async def credit_pending(
        self,
        chat_id: str,
        amount: Decimal | str | int,
        chat_title: str | None = None,
        actor_id: int | str | None = None,
    ) -> OperationResult:
        """Charge a spend (positive) or adjustment (negative) to the group.

        Reserve absorbs a debit first and only the excess becomes pending.
        A net credit pays down pending first and only the rest goes to reserve.
        """
        spend = parse_amount(amount, allow_negative=True)

        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            reserve_before = account.reserve_balance
            pending_before = account.pending_amount
            service_fee, total = calculate_totals(spend, account.service_rate)
            recharge_principal = ZERO

            if total >= 0:
                reserve_used = decimal_min(reserve_before, total)
                pending_increase = total - reserve_used
                recharge_principal = decimal_max(spend - reserve_used, ZERO)

                account.reserve_balance = reserve_before - reserve_used
                account.pending_amount = pending_before + pending_increase

                note = (
                    f'Operator {_actor(actor_id)} spent {to_storage(spend)} '
                    f'(reserve used {to_storage(reserve_used)}, '
                    f'pending added {to_storage(pending_increase)}; '
                    f'principal to recharge {to_storage(recharge_principal)}, '
                    f'fee {to_storage(service_fee)}, total {to_storage(total)})'
                )
            else:
                credit = -total
                pending_reduction = decimal_min(pending_before, credit)
                reserve_increase = credit - pending_reduction

                account.pending_amount = pending_before - pending_reduction
                account.reserve_balance = reserve_before + reserve_increase

                parts = [f'pending reduced {to_storage(pending_reduction)}']
                if reserve_increase > 0:
                    parts.append(f'reserve added {to_storage(reserve_increase)}')
                parts.append(f'fee {to_storage(service_fee)}')
                parts.append(f'total {to_storage(total)}')
                label = 'adjusted' if spend < 0 else 'spent'
                note = f'Operator {_actor(actor_id)} {label} {to_storage(spend)} ({", ".join(parts)})'

            record = await self._persist(session, account, TransactionType.PENDING_ADD, spend, note)
            result = OperationResult(
                state=account.snapshot(),
                amount=spend,
                service_fee=service_fee,
                total=total,
                recharge_principal=recharge_principal,
                pending_before=pending_before,
                reserve_delta=account.reserve_balance - reserve_before,
                transaction_id=record.id,
            )

        logger.info(f'PENDING_ADD chat={chat_id} amount={spend} total={total} '
                    f'reserve={result.state.reserve} pending={result.state.pending}')
        return result

    async def reduce_pending(
        self,
        chat_id: str,
        amount: Decimal | str | int,
        chat_title: str | None = None,
        actor_id: int | str | None = None,
    ) -> OperationResult:
        """Record a payment against pending; any overpayment becomes reserve."""
        payment = parse_amount(amount)

        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            reserve_before = account.reserve_balance
            pending_before = account.pending_amount

            applied_to_pending = decimal_min(pending_before, payment)
            pending_after = pending_before - applied_to_pending
            overpay = payment - applied_to_pending

            account.pending_amount = pending_after
            if overpay > 0:
                account.reserve_balance = reserve_before + overpay

            note = (
                f'Operator {_actor(actor_id)} paid {to_storage(payment)} '
                f'(applied to pending {to_storage(applied_to_pending)}, '
                f'moved to reserve {to_storage(overpay)}, '
                f'pending left {to_storage(pending_after)})'
            )
            record = await self._persist(session, account, TransactionType.PENDING_REDUCE, payment, note)
            result = OperationResult(
                state=account.snapshot(),
                amount=payment,
                service_fee=ZERO,
                total=-payment,
                recharge_principal=ZERO,
                pending_before=pending_before,
                reserve_delta=account.reserve_balance - reserve_before,
                transaction_id=record.id,
            )

        logger.info(f'PENDING_REDUCE chat={chat_id} payment={payment} overpay={overpay} '
                    f'reserve={result.state.reserve} pending={result.state.pending}')
        return result

    async def deposit_to_reserve(
        self,
        chat_id: str,
        amount: Decimal | str | int,
        chat_title: str | None = None,
        actor_id: int | str | None = None,
    ) -> OperationResult:
        """Move a deposit into reserve, clearing principal plus fee from pending.

        Raises InsufficientPending when pending does not cover the deposit's
        total; the account is left untouched.
        """
        principal = parse_amount(amount)

        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            reserve_before = account.reserve_balance
            pending_before = account.pending_amount
            service_fee, total = calculate_totals(principal, account.service_rate)

            if pending_before < total:
                logger.warning(f'DEPOSIT rejected chat={chat_id} total={total} pending={pending_before}')
                raise InsufficientPending(required=total, available=pending_before)

            account.reserve_balance = reserve_before + principal
            account.pending_amount = pending_before - total

            note = (
                f'Operator {_actor(actor_id)} deposited {to_storage(principal)} '
                f'(pending cleared {to_storage(total)}, fee {to_storage(service_fee)})'
            )
            record = await self._persist(session, account, TransactionType.DEPOSIT, principal, note)
            result = OperationResult(
                state=account.snapshot(),
                amount=principal,
                service_fee=service_fee,
                total=total,
                recharge_principal=ZERO,
                pending_before=pending_before,
                reserve_delta=account.reserve_balance - reserve_before,
                transaction_id=record.id,
            )

        logger.info(f'DEPOSIT chat={chat_id} amount={principal} total={total} '
                    f'reserve={result.state.reserve} pending={result.state.pending}')
        return result

    async def withdraw_from_reserve(
        self,
        chat_id: str,
        amount: Decimal | str | int,
        chat_title: str | None = None,
        actor_id: int | str | None = None,
    ) -> OperationResult:
        """Charge usage straight to reserve; a shortfall becomes pending without fee."""
        usage = parse_amount(amount)

        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            reserve_before = account.reserve_balance
            pending_before = account.pending_amount
            reserve_after = reserve_before - usage
            recharge_principal = ZERO

            if reserve_after >= 0:
                account.reserve_balance = reserve_after
            else:
                recharge_principal = -reserve_after
                account.reserve_balance = ZERO
                account.pending_amount = pending_before + recharge_principal

            reserve_used = decimal_min(reserve_before, usage)
            note = (
                f'Operator {_actor(actor_id)} used {to_storage(usage)} '
                f'(reserve used {to_storage(reserve_used)}, '
                f'pending added {to_storage(recharge_principal)})'
            )
            record = await self._persist(session, account, TransactionType.DEPOSIT, usage, note)
            result = OperationResult(
                state=account.snapshot(),
                amount=usage,
                service_fee=ZERO,
                total=usage,
                recharge_principal=recharge_principal,
                pending_before=pending_before,
                reserve_delta=account.reserve_balance - reserve_before,
                transaction_id=record.id,
            )

        logger.info(f'WITHDRAW chat={chat_id} usage={usage} shortfall={recharge_principal} '
                    f'reserve={result.state.reserve} pending={result.state.pending}')
        return result

    async def set_service_rate(
        self,
        chat_id: str,
        rate: Decimal | str | int,
        chat_title: str | None = None,
        actor_id: int | str | None = None,
    ) -> OperationResult:
        """Change the group's fee rate. Setting the current rate again writes no record."""
        next_rate = parse_rate(rate) if isinstance(rate, str) else check_rate(to_decimal(rate))

        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            previous_rate = account.service_rate
            record = None

            if previous_rate != next_rate:
                account.service_rate = next_rate
                note = (
                    f'Operator {_actor(actor_id)} changed service rate from '
                    f'{format_rate(previous_rate)} to {format_rate(next_rate)}'
                )
                record = await self._persist(
                    session, account, TransactionType.SERVICE_RATE_UPDATE, ZERO, note
                )

            result = OperationResult(
                state=account.snapshot(),
                amount=ZERO,
                service_fee=ZERO,
                total=ZERO,
                recharge_principal=ZERO,
                pending_before=account.pending_amount,
                reserve_delta=ZERO,
                previous_rate=previous_rate,
                recorded=record is not None,
                transaction_id=record.id if record is not None else None,
            )

        if result.recorded:
            logger.info(f'SERVICE_RATE_UPDATE chat={chat_id} {previous_rate} -> {next_rate}')
        return result

    async def ensure_account(self, chat_id: str, chat_title: str | None = None) -> AccountSnapshot:
        """Make sure the group has an account, e.g. when the bot joins a chat."""
        async with self.store.transaction() as session:
            account = await self.store.load_or_create_account(session, chat_id, chat_title)
            return account.snapshot()

    async def get_account(self, chat_id: str) -> AccountSnapshot:
        account = await self.store.get_account(chat_id)
        return account.snapshot()

    async def history(
        self,
        chat_id: str,
        limit: int = 50,
    ) -> tuple[AccountSnapshot, list[TransactionRecord]]:
        account, records = await self.store.get_history(chat_id, limit)
        return account.snapshot(), records

    async def reconcile(self, chat_id: str) -> bool:
        """Check that the newest log snapshot matches the live balances."""
        account, records = await self.store.get_history(chat_id, limit=1)
        if not records:
            return account.reserve_balance == 0 and account.pending_amount == 0
        latest = records[0]
        return (
            latest.reserve_after == account.reserve_balance
            and latest.pending_amount_after == account.pending_amount
        )

    async def _persist(
        self,
        session: AsyncSession,
        account: Account,
        tx_type: TransactionType,
        amount: Decimal,
        note: str,
    ) -> TransactionRecord:
        """Save the account and append its audit record in the current unit of work."""
        account.reserve_balance = fit_storage(account.reserve_balance)
        account.pending_amount = fit_storage(account.pending_amount)
        await self.store.save_account(session, account)

        record = TransactionRecord(
            account_id=account.id,
            type=tx_type.value,
            amount=fit_storage(amount),
            reserve_after=account.reserve_balance,
            pending_amount_after=account.pending_amount,
            note=note,
        )
        return await self.store.append_transaction(session, record)
