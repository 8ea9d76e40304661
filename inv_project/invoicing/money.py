"""Exact-decimal monetary values.

Amounts are always ``Decimal``; floats are rejected on construction so
binary rounding never reaches stored or compared values. Rounding to a
currency's minor unit uses ROUND_HALF_UP.
"""
from collections import namedtuple
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.utils import formats, translation

from .exceptions import CurrencyMismatch, InvalidAmount, UnknownCurrency

Currency = namedtuple("Currency", ["code", "symbol", "decimal_places"])

# ISO 4217 subset. decimal_places is the minor unit exponent
# (cents for USD, none for JPY, fils for KWD).
CURRENCIES = {
    c.code: c
    for c in (
        Currency("USD", "$", 2),
        Currency("EUR", "€", 2),
        Currency("GBP", "£", 2),
        Currency("CAD", "CA$", 2),
        Currency("AUD", "A$", 2),
        Currency("NZD", "NZ$", 2),
        Currency("CHF", "CHF ", 2),
        Currency("SEK", "kr ", 2),
        Currency("NOK", "kr ", 2),
        Currency("DKK", "kr ", 2),
        Currency("INR", "₹", 2),
        Currency("CNY", "CN¥", 2),
        Currency("SGD", "S$", 2),
        Currency("HKD", "HK$", 2),
        Currency("MXN", "MX$", 2),
        Currency("BRL", "R$", 2),
        Currency("ZAR", "R ", 2),
        Currency("AED", "AED ", 2),
        Currency("JPY", "¥", 0),
        Currency("KRW", "₩", 0),
        Currency("KWD", "KWD ", 3),
        Currency("BHD", "BHD ", 3),
        Currency("OMR", "OMR ", 3),
    )
}


def get_currency(code):
    try:
        return CURRENCIES[str(code).upper()]
    except KeyError:
        raise UnknownCurrency(f"Unknown currency code: {code!r}")


def minor_unit_digits(code):
    return get_currency(code).decimal_places


def quantize(amount, code):
    """Round ``amount`` to the minor unit of currency ``code`` (half up)."""
    exponent = Decimal(1).scaleb(-minor_unit_digits(code))
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def to_decimal(value, field="amount"):
    """Convert str/int/Decimal to Decimal; floats and junk raise InvalidAmount."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"{field} must be a decimal string or integer, got {value!r}")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise InvalidAmount(f"{field} is not a valid decimal: {value!r}")
    else:
        raise InvalidAmount(f"{field} must be a decimal string or integer, got {value!r}")
    if not result.is_finite():
        raise InvalidAmount(f"{field} must be finite, got {value!r}")
    return result


@dataclass(frozen=True, eq=False)
class Money:
    amount: Decimal
    currency: str

    def __post_init__(self):
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "currency", get_currency(self.currency).code)

    # ---------- constructors ----------
    @classmethod
    def from_minor_units(cls, units, currency):
        if not isinstance(units, int) or isinstance(units, bool):
            raise InvalidAmount(f"Minor units must be an integer, got {units!r}")
        digits = minor_unit_digits(currency)
        return cls(Decimal(units).scaleb(-digits), currency)

    @classmethod
    def zero(cls, currency):
        return cls(quantize(Decimal("0"), currency), currency)

    # ---------- helpers ----------
    def _check(self, other):
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def rounded(self):
        return Money(quantize(self.amount, self.currency), self.currency)

    def to_minor_units(self):
        return int(self.rounded().amount.scaleb(minor_unit_digits(self.currency)))

    def is_zero(self):
        return self.amount == 0

    def is_negative(self):
        return self.amount < 0

    def require_non_negative(self, field="amount"):
        if self.amount < 0:
            raise InvalidAmount(f"{field} cannot be negative ({self.amount} {self.currency})")
        return self

    # ---------- arithmetic ----------
    def __add__(self, other):
        self._check(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other):
        self._check(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor):
        if isinstance(factor, Money):
            raise TypeError("Cannot multiply Money by Money")
        return Money(self.amount * to_decimal(factor, "factor"), self.currency)

    __rmul__ = __mul__

    def __neg__(self):
        return Money(-self.amount, self.currency)

    # ---------- comparison ----------
    def __eq__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount == other.amount

    def __hash__(self):
        return hash((self.amount.normalize(), self.currency))

    def __lt__(self, other):
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other):
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other):
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other):
        self._check(other)
        return self.amount >= other.amount

    # ---------- display ----------
    def format(self, locale=None):
        """Locale-aware display string, e.g. ``$1,234.50``.

        Only for display; never parse it back.
        """
        currency = get_currency(self.currency)
        value = quantize(self.amount, self.currency)
        with translation.override(locale or translation.get_language()):
            number = formats.number_format(
                abs(value),
                decimal_pos=currency.decimal_places,
                use_l10n=True,
                force_grouping=True,
            )
        sign = "-" if value < 0 else ""
        return f"{sign}{currency.symbol}{number}"

    def __str__(self):
        return f"{quantize(self.amount, self.currency)} {self.currency}"


def sum_money(values, currency):
    """Sum an iterable of Money in ``currency``; empty input gives zero."""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total
