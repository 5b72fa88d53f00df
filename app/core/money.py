"""Money: fixed-point currency held as integer cents. All ledger arithmetic goes through here."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Union

CENT = Decimal("0.01")

MoneyLike = Union["Money", Decimal, int, str]


def _to_cents(value: Union[Decimal, int, str]) -> int:
    if isinstance(value, bool):
        raise TypeError("bool is not a money amount")
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted; pass Decimal or str")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid money amount: {value!r}")
    if not dec.is_finite():
        raise ValueError(f"Invalid money amount: {value!r}")
    try:
        return int(dec.quantize(CENT, rounding=ROUND_HALF_UP) * 100)
    except InvalidOperation:
        raise ValueError(f"Money amount out of range: {value!r}")


@total_ordering
class Money:
    """
    Currency amount with exact 2-decimal semantics.

    Construct from Decimal, int (whole units) or str; more than two decimal places are
    rounded half-up once at construction. Use Money.from_cents for minor units.
    """

    __slots__ = ("_cents",)

    def __init__(self, value: MoneyLike = 0) -> None:
        if isinstance(value, Money):
            self._cents = value.cents
        else:
            self._cents = _to_cents(value)

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        m = cls.__new__(cls)
        m._cents = int(cents)
        return m

    @classmethod
    def zero(cls) -> "Money":
        return cls.from_cents(0)

    @property
    def cents(self) -> int:
        return self._cents

    def to_decimal(self) -> Decimal:
        return (Decimal(self._cents) / 100).quantize(CENT)

    # --- arithmetic ---
    def add(self, other: MoneyLike) -> "Money":
        return Money.from_cents(self._cents + Money(other).cents)

    def subtract(self, other: MoneyLike) -> "Money":
        return Money.from_cents(self._cents - Money(other).cents)

    def multiply_by_fraction(self, rate: Union[Decimal, int, str]) -> "Money":
        """Exact decimal product, rounded half-up to cents once at the end."""
        if isinstance(rate, float):
            raise TypeError("float rates are not accepted; pass Decimal or str")
        r = rate if isinstance(rate, Decimal) else Decimal(str(rate))
        product = (Decimal(self._cents) * r).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return Money.from_cents(int(product))

    def negate(self) -> "Money":
        return Money.from_cents(-self._cents)

    def min(self, other: MoneyLike) -> "Money":
        if not isinstance(other, Money):
            other = Money(other)
        return self if self._cents <= other.cents else other

    def compare(self, other: MoneyLike) -> int:
        o = Money(other).cents
        return (self._cents > o) - (self._cents < o)

    def is_zero(self) -> bool:
        return self._cents == 0

    def is_negative(self) -> bool:
        return self._cents < 0

    def is_positive(self) -> bool:
        return self._cents > 0

    def __add__(self, other: MoneyLike) -> "Money":
        return self.add(other)

    def __radd__(self, other: MoneyLike) -> "Money":
        # lets sum() start from int 0
        return self.add(other)

    def __sub__(self, other: MoneyLike) -> "Money":
        return self.subtract(other)

    def __neg__(self) -> "Money":
        return self.negate()

    def __abs__(self) -> "Money":
        return Money.from_cents(abs(self._cents))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Money):
            return self._cents == other.cents
        if isinstance(other, (Decimal, int, str)) and not isinstance(other, bool):
            try:
                return self._cents == Money(other).cents
            except ValueError:
                return False
        return NotImplemented

    def __lt__(self, other: MoneyLike) -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._cents)

    def __bool__(self) -> bool:
        return self._cents != 0

    def __str__(self) -> str:
        return str(self.to_decimal())

    def __repr__(self) -> str:
        return f"Money('{self.to_decimal()}')"


def round_to_cents(value: Union[Decimal, int, str]) -> Money:
    return Money(value)
