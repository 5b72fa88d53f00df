"""Column types shared by the fee ledger models."""

from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.types import TypeDecorator

from app.core.money import Money

MONEY_PRECISION = 12
MONEY_SCALE = 2
# Largest amount a Numeric(12, 2) column holds: 9999999999.99
MAX_STORABLE_AMOUNT = Money.from_cents(10 ** MONEY_PRECISION - 1)


class MoneyType(TypeDecorator):
    """Numeric(12, 2) column that reads and writes Money instead of Decimal/float."""

    impl = Numeric(MONEY_PRECISION, MONEY_SCALE)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return Money(value).to_decimal()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        # SQLite hands back floats for NUMERIC; go through str so no binary noise leaks in.
        return Money(value if isinstance(value, Decimal) else Decimal(str(value)))
