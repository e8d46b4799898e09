from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from group_ledger.db.database import Base, utcnow
from group_ledger.db.types import FixedDecimal
from group_ledger.utils.money import ZERO


class Account(Base):
    """Running balances of one chat group."""

    __tablename__ = 'accounts'

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[str] = mapped_column(String(64), unique=True)
    chat_title: Mapped[str | None] = mapped_column(String(255), default=None)

    # Prepaid float that absorbs debits before they become pending
    reserve_balance: Mapped[Decimal] = mapped_column(FixedDecimal(18), default=ZERO)
    # Fraction of the principal charged as fee, e.g. 0.03
    service_rate: Mapped[Decimal] = mapped_column(FixedDecimal(10), default=ZERO)
    # Owed amount, fee included
    pending_amount: Mapped[Decimal] = mapped_column(FixedDecimal(18), default=ZERO)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    transactions: Mapped[list['TransactionRecord']] = relationship(
        'TransactionRecord', back_populates='account', lazy='raise'
    )

    def snapshot(self) -> 'AccountSnapshot':
        return AccountSnapshot(
            id=self.id,
            chat_id=self.chat_id,
            chat_title=self.chat_title,
            reserve=self.reserve_balance,
            pending=self.pending_amount,
            service_rate=self.service_rate,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    """Detached, read-only view of an account at one point in time."""
    id: int
    chat_id: str
    chat_title: str | None
    reserve: Decimal
    pending: Decimal
    service_rate: Decimal
