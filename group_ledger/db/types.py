from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

from group_ledger.utils.money import SCALE, quantize, to_decimal, to_storage


class FixedDecimal(TypeDecorator):
    """Decimal column with a fixed 6-digit scale.

    PostgreSQL gets a real ``NUMERIC(precision, 6)``. SQLite has no exact
    numeric type, so values are kept there as fixed-6-decimal strings.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 18):
        super().__init__(precision=precision, scale=SCALE, asdecimal=True)
        self.precision = precision

    def load_dialect_impl(self, dialect):
        if dialect.name == 'sqlite':
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(
            Numeric(precision=self.precision, scale=SCALE, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = to_decimal(value)
        if dialect.name == 'sqlite':
            return to_storage(amount)
        return quantize(amount)

    def process_result_value(self, value, dialect) -> Decimal | None:
        if value is None:
            return None
        if isinstance(value, Decimal):
            return value
        return to_decimal(str(value))
