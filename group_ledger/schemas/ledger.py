from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from group_ledger.utils.money import to_storage


class _FixedDecimalModel(BaseModel):
    """Serializes every Decimal field as a fixed 6-digit string."""

    @field_serializer('*', mode='wrap', when_used='json')
    def _decimal_as_string(self, value, handler):
        if isinstance(value, Decimal):
            return to_storage(value)
        return handler(value)


class AmountRequest(BaseModel):
    """Body of the money-moving commands."""
    amount: Decimal
    chat_title: str | None = Field(None, max_length=255)


class ServiceRateRequest(BaseModel):
    """Rate as a fraction (``0.03`` or ``"0.03"``) or percent string (``"3%"``)."""
    rate: Decimal | str
    chat_title: str | None = Field(None, max_length=255)


class AccountResponse(_FixedDecimalModel):
    """Current balances of a group."""
    chat_id: str
    chat_title: str | None
    reserve: Decimal
    pending: Decimal
    service_rate: Decimal

    class Config:
        from_attributes = True


class TransactionEntry(_FixedDecimalModel):
    """Single transaction log entry."""
    id: int
    type: str
    amount: Decimal
    reserve_after: Decimal
    pending_amount_after: Decimal
    note: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryResponse(AccountResponse):
    """Group balances plus its newest transactions."""
    transactions: list[TransactionEntry] = []


class OperationResponse(_FixedDecimalModel):
    """Before/after breakdown of one ledger operation."""
    account: AccountResponse
    amount: Decimal
    service_fee: Decimal
    total: Decimal
    recharge_principal: Decimal
    pending_before: Decimal
    reserve_delta: Decimal
    previous_rate: Decimal | None = None
    recorded: bool = True
    transaction_id: int | None = None


class OperatorCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64, pattern=r'^-?\d+$')
    user_name: str | None = Field(None, max_length=255)


class OperatorResponse(BaseModel):
    chat_id: str
    user_id: str
    user_name: str | None
    assigned_by: str | None
    created_at: datetime

    class Config:
        from_attributes = True
