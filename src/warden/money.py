"""
money.py — Exact budget arithmetic for the governance simulation

================================================================================
DESIGN PRINCIPLES
================================================================================

1. INTERNAL REPRESENTATION
   Integers in minor units (cents for USD/EUR). Never floating point inside.
   Budget caps like "5.00" and step costs like 0.02 would otherwise drift
   after a handful of additions (0.12 + 0.02 + 0.01 != 0.15).

2. TYPE SAFETY
   Mixing currencies raises TypeError.
   Mixing Money with bare float/int raises TypeError.

3. IMMUTABILITY
   Frozen dataclass. Every operation returns a new instance.

4. NO ROUNDING
   Amounts enter as decimal strings ("5.00") or integers and are parsed
   exactly. Anything finer than a cent is rejected, never rounded.

================================================================================
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum


# ==============================================================================
# CURRENCY DEFINITIONS (ISO 4217)
# ==============================================================================

class Currency(Enum):
    """
    Supported currencies with their minor-unit precision.

    The simulation books everything in abstract units that render as USD;
    EUR exists so currency mismatches can be exercised.
    """
    USD = ("USD", 2, "$")
    EUR = ("EUR", 2, "€")

    def __init__(self, code: str, decimals: int, symbol: str):
        self._code = code
        self._decimals = decimals
        self._symbol = symbol

    @property
    def code(self) -> str:
        return self._code

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def multiplier(self) -> int:
        """Conversion factor major -> minor unit."""
        return 10 ** self._decimals


# ==============================================================================
# MONEY CLASS
# ==============================================================================

@dataclass(frozen=True, slots=True, order=False)
class Money:
    """
    Domain primitive for budget amounts.

    INVARIANTS:
    1. _minor_units is always int (no floating point)
    2. _currency is always Currency
    3. Arithmetic/comparison across currencies raises TypeError

    SERIALIZATION:
        {"minor_units": int, "currency": str}. Never a float.
    """
    _minor_units: int
    _currency: Currency

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def of(cls, major_units: int, currency: Currency = Currency.USD) -> Money:
        """Whole major units (dollars). For decimals use parse() or of_minor()."""
        if not isinstance(major_units, int) or isinstance(major_units, bool):
            raise TypeError(
                f"Money.of() expects int, got {type(major_units).__name__}. "
                f"Use Money.parse() or Money.of_minor()."
            )
        return cls(_minor_units=major_units * currency.multiplier, _currency=currency)

    @classmethod
    def of_minor(cls, minor_units: int, currency: Currency = Currency.USD) -> Money:
        return cls(_minor_units=minor_units, _currency=currency)

    @classmethod
    def parse(cls, text: str, currency: Currency = Currency.USD) -> Money:
        """
        Exact construction from a decimal string such as "5.00" or "0.1".

        Raises:
            ValueError: if text is not a decimal number or carries more
                        precision than the currency allows.
        """
        try:
            value = Decimal(str(text).strip())
        except InvalidOperation:
            raise ValueError(f"Not a decimal amount: {text!r}") from None
        if not value.is_finite():
            raise ValueError(f"Not a finite amount: {text!r}")
        minor = value * currency.multiplier
        if minor != minor.to_integral_value():
            raise ValueError(
                f"{text!r} has more than {currency.decimals} decimals for {currency.code}"
            )
        return cls(_minor_units=int(minor), _currency=currency)

    @classmethod
    def zero(cls, currency: Currency = Currency.USD) -> Money:
        """Zero for a currency. Useful as the start value for sum()."""
        return cls(_minor_units=0, _currency=currency)

    @classmethod
    def usd(cls, value: int) -> Money:
        return cls.of(value, Currency.USD)

    @classmethod
    def usd_cents(cls, cents: int) -> Money:
        return cls.of_minor(cents, Currency.USD)

    # -------------------------------------------------------------------------
    # Arithmetic (type-safe)
    # -------------------------------------------------------------------------

    def __add__(self, other: Money) -> Money:
        self._check_same_currency(other, "+")
        return Money.of_minor(self._minor_units + other._minor_units, self._currency)

    def __radd__(self, other: object) -> Money:
        # sum() starts from int 0 unless given a start value
        if other == 0 and not isinstance(other, Money):
            return self
        return NotImplemented

    def __sub__(self, other: Money) -> Money:
        self._check_same_currency(other, "-")
        return Money.of_minor(self._minor_units - other._minor_units, self._currency)

    def __neg__(self) -> Money:
        return Money.of_minor(-self._minor_units, self._currency)

    def clamp_zero(self) -> Money:
        """max(0, self)."""
        return self if self._minor_units > 0 else Money.zero(self._currency)

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Money):
            return (
                self._minor_units == other._minor_units
                and self._currency == other._currency
            )
        return NotImplemented

    def __lt__(self, other: Money) -> bool:
        self._check_same_currency(other, "<")
        return self._minor_units < other._minor_units

    def __le__(self, other: Money) -> bool:
        self._check_same_currency(other, "<=")
        return self._minor_units <= other._minor_units

    def __gt__(self, other: Money) -> bool:
        self._check_same_currency(other, ">")
        return self._minor_units > other._minor_units

    def __ge__(self, other: Money) -> bool:
        self._check_same_currency(other, ">=")
        return self._minor_units >= other._minor_units

    def _check_same_currency(self, other: object, op: str) -> None:
        if not isinstance(other, Money):
            raise TypeError(
                f"Operation not allowed: Money {op} {type(other).__name__}. "
                f"Convert with Money.parse() first."
            )
        if self._currency != other._currency:
            raise TypeError(
                f"Currency mismatch: {self._currency.code} {op} {other._currency.code}"
            )

    def __hash__(self) -> int:
        return hash((self._minor_units, self._currency))

    # -------------------------------------------------------------------------
    # Properties and output
    # -------------------------------------------------------------------------

    @property
    def minor_units(self) -> int:
        return self._minor_units

    @property
    def currency(self) -> Currency:
        return self._currency

    @property
    def major_units(self) -> float:
        """Float value. Display only, never for arithmetic."""
        return self._minor_units / self._currency.multiplier

    def is_zero(self) -> bool:
        return self._minor_units == 0

    def format(self) -> str:
        """Symbol form used in policy reasons, e.g. "$4.88"."""
        sign = "-" if self._minor_units < 0 else ""
        abs_minor = abs(self._minor_units)
        major = abs_minor // self._currency.multiplier
        minor = abs_minor % self._currency.multiplier
        return f"{sign}{self._currency.symbol}{major}.{minor:0{self._currency.decimals}d}"

    def __repr__(self) -> str:
        sign = "-" if self._minor_units < 0 else ""
        abs_minor = abs(self._minor_units)
        major = abs_minor // self._currency.multiplier
        minor = abs_minor % self._currency.multiplier
        return f"{sign}{major}.{minor:0{self._currency.decimals}d} {self._currency.code}"

    def __str__(self) -> str:
        return self.__repr__()

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "minor_units": self._minor_units,
            "currency": self._currency.code,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Money:
        return cls.of_minor(data["minor_units"], Currency[data["currency"]])
