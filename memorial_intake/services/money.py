"""
Money model for memorial quotes.

The product price posted by the configurator is the grand total (installation
included). Base/add-on split is derived from it for display only; the grand
total is always the number recorded and billed.

Amounts are Decimal in pounds everywhere except the Stripe line items, which
are integer pence.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from memorial_intake.models import ProductConfiguration

ZERO = Decimal("0")
PLACEHOLDER = "—"
# Anything larger is a typo or junk, not a memorial price
MAX_AMOUNT = Decimal("1000000000")

# Leading number, tolerant of "£" and thousands separators ("£2,481.50 inc VAT")
_AMOUNT_RE = re.compile(r"^\s*£?\s*(\d[\d,]*(?:\.\d+)?|\.\d+)")


class MoneyLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    amount: Optional[Decimal] = None  # None = included, not separately priced


class MoneyBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_amount: Decimal = ZERO
    addon_total: Decimal = ZERO
    grand_total: Decimal = ZERO
    addon_lines: Tuple[MoneyLine, ...] = ()
    price_parsed: bool = False

    @property
    def priced_addon_lines(self) -> List[MoneyLine]:
        return [line for line in self.addon_lines if line.amount is not None]


class InvoiceLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    amount_minor: int


def parse_amount(value) -> Optional[Decimal]:
    """
    Parse a price as the configurator sends it.
    Returns None for missing, unparsable, negative or out-of-range values.
    """
    if value is None or isinstance(value, bool):
        return None
    match = _AMOUNT_RE.match(str(value))
    if not match:
        return None
    try:
        amount = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0 or amount > MAX_AMOUNT:
        return None
    return amount


def breakdown(product: Optional[ProductConfiguration]) -> MoneyBreakdown:
    """Split a product's grand total into base and add-ons."""
    if product is None:
        return MoneyBreakdown()

    parsed_total = parse_amount(product.price)
    grand_total = parsed_total if parsed_total is not None else ZERO

    if product.addon_line_items:
        lines = tuple(
            MoneyLine(name=item.name, amount=parse_amount(item.price))
            for item in product.addon_line_items
        )
    else:
        lines = tuple(MoneyLine(name=name) for name in product.addons if name)

    addon_total = sum((line.amount for line in lines if line.amount is not None), ZERO)
    base_amount = max(ZERO, grand_total - addon_total)

    return MoneyBreakdown(
        base_amount=base_amount,
        addon_total=addon_total,
        grand_total=grand_total,
        addon_lines=lines,
        price_parsed=parsed_total is not None,
    )


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def invoice_lines(money: MoneyBreakdown, base_description: str) -> List[InvoiceLine]:
    """
    Stripe line items for a quote.

    Each priced add-on gets its own line; the base line takes whatever is left
    of the grand total, so the lines always add up to the grand total in pence.
    If the add-ons alone exceed the total, one line bills the total.
    """
    total_minor = to_minor_units(money.grand_total)
    if total_minor <= 0:
        return []

    addon_lines = [
        InvoiceLine(description=line.name, amount_minor=to_minor_units(line.amount))
        for line in money.priced_addon_lines
        if to_minor_units(line.amount) > 0
    ]
    addon_minor = sum(line.amount_minor for line in addon_lines)
    if addon_minor > total_minor:
        return [InvoiceLine(description=base_description, amount_minor=total_minor)]

    lines = []
    base_minor = total_minor - addon_minor
    if base_minor > 0:
        lines.append(InvoiceLine(description=base_description, amount_minor=base_minor))
    lines.extend(addon_lines)
    return lines


# ==================== DISPLAY ====================

def format_money(amount: Decimal) -> str:
    """2481 -> "2,481", 2481.5 -> "2,481.50"."""
    if amount == amount.to_integral_value():
        return f"{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"
    return f"{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def format_price(raw: Optional[str]) -> str:
    """Display form of a raw price string, a dash when there is no usable price."""
    amount = parse_amount(raw)
    if amount is None:
        return PLACEHOLDER
    return format_money(amount)


def format_minor_units(amount_minor: int) -> str:
    """1234 -> "12.34" """
    return f"{Decimal(amount_minor) / 100:.2f}"


def addon_names(money: MoneyBreakdown) -> str:
    return ", ".join(line.name for line in money.addon_lines)
