from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..exceptions import InvalidAmount, InvalidDiscount, InvalidInvoiceTotals
from ..money import Money, sum_money, to_decimal

HUNDRED = Decimal("100")
# Stored rates are DECIMAL(7, 4): up to 999.9999 percent
RATE_STEP = Decimal("0.0001")
MAX_RATE = Decimal("999.9999")

TAX_MODE_NONE = "none"
TAX_MODE_RATE = "rate"
TAX_MODE_PER_ITEM = "per_item"
TAX_MODE_ABSOLUTE = "absolute"

TAX_MODE_CHOICES = [
    (TAX_MODE_NONE, "No tax"),
    (TAX_MODE_RATE, "Flat rate on subtotal"),
    (TAX_MODE_PER_ITEM, "Rate per line item"),
    (TAX_MODE_ABSOLUTE, "Absolute amount"),
]


# ----------------------------
# Tax policies
# ----------------------------
class TaxPolicy:
    """Computes the tax for an invoice.

    ``mode`` names the active policy so callers (and stored invoices)
    can always tell which one produced ``tax_amount``.
    """

    mode = TAX_MODE_NONE

    def compute(self, subtotal: Money, lines) -> Money:
        return Money.zero(subtotal.currency)


class NoTax(TaxPolicy):
    pass


class FlatRateTax(TaxPolicy):
    """``rate`` percent of the subtotal, e.g. ``Decimal("8.25")``."""

    mode = TAX_MODE_RATE

    def __init__(self, rate):
        self.rate = parse_tax_rate(rate)

    def compute(self, subtotal, lines):
        return (subtotal * (self.rate / HUNDRED)).rounded()


class PerItemRateTax(TaxPolicy):
    """Each line's own ``tax_rate`` (percent) applied to its amount.

    Lines without a rate use ``default_rate``. Tax is rounded per line.
    """

    mode = TAX_MODE_PER_ITEM

    def __init__(self, default_rate=Decimal("0")):
        self.default_rate = parse_tax_rate(default_rate)

    def compute(self, subtotal, lines):
        taxes = []
        for line, amount in lines:
            line_rate = getattr(line, "tax_rate", None)
            rate = self.default_rate if line_rate is None else parse_tax_rate(line_rate)
            taxes.append((amount * (rate / HUNDRED)).rounded())
        return sum_money(taxes, subtotal.currency)


class AbsoluteTax(TaxPolicy):
    """Externally supplied tax amount, used as is."""

    mode = TAX_MODE_ABSOLUTE

    def __init__(self, amount: Money):
        self.amount = amount.require_non_negative("tax_amount")

    def compute(self, subtotal, lines):
        return self.amount.rounded()


def parse_tax_rate(value):
    """A percentage that fits the stored column without rounding."""
    rate = to_decimal(value, "tax_rate")
    if rate < 0:
        raise InvalidAmount(f"Tax rate cannot be negative ({rate})")
    if rate > MAX_RATE:
        raise InvalidAmount(f"Tax rate {rate} exceeds {MAX_RATE}")
    if rate != rate.quantize(RATE_STEP):
        raise InvalidAmount(f"Tax rate {rate} has more than four decimal places")
    return rate


def tax_policy_for(mode, rate=None, fixed_amount=None, currency=None) -> TaxPolicy:
    """Rebuild a policy from its stored columns."""
    if mode == TAX_MODE_RATE:
        return FlatRateTax(rate or Decimal("0"))
    if mode == TAX_MODE_PER_ITEM:
        return PerItemRateTax(rate or Decimal("0"))
    if mode == TAX_MODE_ABSOLUTE:
        return AbsoluteTax(Money(fixed_amount or Decimal("0"), currency))
    return NoTax()


# ----------------------------
# Line item aggregation
# ----------------------------
@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Money
    tax_amount: Money
    discount_amount: Money
    total: Money
    tax_mode: str
    line_amounts: tuple = ()


def line_amount(quantity, unit_price: Money) -> Money:
    """``round(quantity * unit_price)`` to the currency's minor unit."""
    quantity = to_decimal(quantity, "quantity")
    if quantity <= 0:
        raise InvalidAmount(f"Quantity must be positive, got {quantity}")
    unit_price.require_non_negative("unit_price")
    return (unit_price * quantity).rounded()


def _unit_price(line, currency):
    price = line.unit_price
    if isinstance(price, Money):
        # cross-currency line items are rejected here
        return Money.zero(currency) + price
    return Money(to_decimal(price, "unit_price"), currency)


def compute_totals(
    lines: Iterable,
    currency: str,
    tax_policy: Optional[TaxPolicy] = None,
    discount: Optional[Money] = None,
) -> InvoiceTotals:
    """Aggregate line items into subtotal, tax, discount and total.

    ``lines`` are objects exposing ``quantity`` and ``unit_price``
    (Decimal or Money) and optionally ``tax_rate``. Nothing is mutated;
    every check runs before a result is returned.
    """
    tax_policy = tax_policy or NoTax()
    discount = discount if discount is not None else Money.zero(currency)

    priced = []
    for line in lines:
        priced.append((line, line_amount(line.quantity, _unit_price(line, currency))))

    subtotal = sum_money((amount for _, amount in priced), currency)
    tax_amount = tax_policy.compute(subtotal, priced)
    # policies must stay in the invoice currency
    tax_amount = Money.zero(currency) + tax_amount
    tax_amount.require_non_negative("tax_amount")

    discount = (Money.zero(currency) + discount).rounded()
    if discount.is_negative():
        raise InvalidDiscount(f"Discount cannot be negative ({discount})")
    if discount > subtotal + tax_amount:
        raise InvalidDiscount(
            f"Discount {discount} exceeds subtotal plus tax ({subtotal + tax_amount})"
        )

    total = subtotal + tax_amount - discount
    if total.is_negative():
        raise InvalidInvoiceTotals(f"Invoice total cannot be negative ({total})")

    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total=total,
        tax_mode=tax_policy.mode,
        line_amounts=tuple(amount for _, amount in priced),
    )
