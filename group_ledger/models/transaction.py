from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, Text, ForeignKey, DateTime, Index, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_ledger.db.database import Base, utcnow
from group_ledger.db.types import FixedDecimal
from group_ledger.exceptions import LedgerError


class TransactionType(str, Enum):
    """Audit categories of the transaction log."""
    PENDING_ADD = 'PENDING_ADD'
    PENDING_REDUCE = 'PENDING_REDUCE'
    # Used by both reserve top-ups and reserve usage
    DEPOSIT = 'DEPOSIT'
    SERVICE_RATE_UPDATE = 'SERVICE_RATE_UPDATE'


class TransactionRecord(Base):
    """Append-only log entry. Written once per committed operation, never updated."""

    __tablename__ = 'transactions'

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey('accounts.id', ondelete='CASCADE')
    )

    type: Mapped[str] = mapped_column(String(32))
    # Principal submitted by the caller, negative for adjustments
    amount: Mapped[Decimal] = mapped_column(FixedDecimal(18))

    # Balances right after the operation
    reserve_after: Mapped[Decimal] = mapped_column(FixedDecimal(18))
    pending_amount_after: Mapped[Decimal] = mapped_column(FixedDecimal(18))

    note: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    account: Mapped['Account'] = relationship(
        'Account', back_populates='transactions', lazy='raise'
    )


Index(
    'ix_transactions_account_created',
    TransactionRecord.account_id,
    TransactionRecord.created_at.desc(),
)


@event.listens_for(TransactionRecord, 'before_update')
def _refuse_update(mapper, connection, target):
    raise LedgerError(f'Transaction record {target.id} is append-only')
