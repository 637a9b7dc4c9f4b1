"""
Line valuation and budget totals.

Amounts are tolerated as Decimal, int, float or numeric strings.  Anything
that does not parse to a finite number counts as zero: reports must stay
available even when a stored rate is malformed, and entry-time validation
lives at the HTTP boundary.  A well-formed number at or above AMOUNT_LIMIT
("1e30", "1e999999") counts as zero too, so products and sums never overflow.

No rounding happens here except in to_cents(), which presentation and
export use to round to two places.
"""
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Iterable, Optional

from models.budget import PublicationLine, RawAmount

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Valuation ceiling for a single amount (rate, format, fee or stored total).
AMOUNT_LIMIT = Decimal("1e15")

# Entry ceiling: five lines of rate x format plus a fee stay below AMOUNT_LIMIT.
MAX_ENTRY_AMOUNT = Decimal("1e7")

# Report totals sum many budgets; rounding them must not run out of digits.
_CENTS_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP)


def parse_amount(value: RawAmount) -> Optional[Decimal]:
    """Parse *value* to a finite Decimal, or None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    return result if result.is_finite() else None


def to_decimal(value: RawAmount) -> Decimal:
    """Coerce *value* to a finite Decimal, or 0 when it is missing, malformed or out of range."""
    parsed = parse_amount(value)
    if parsed is None or abs(parsed) >= AMOUNT_LIMIT:
        return ZERO
    return parsed


def is_entry_out_of_range(value: RawAmount) -> bool:
    """True for a well-formed number too large to be accepted as input."""
    parsed = parse_amount(value)
    return parsed is not None and abs(parsed) >= MAX_ENTRY_AMOUNT


def to_cents(value) -> Decimal:
    """
    Round to two places, half up: 2.675 -> 2.68.

    Computed Decimals (group and report totals) are rounded as they are;
    anything else goes through to_decimal() first.
    """
    if isinstance(value, Decimal) and value.is_finite() and value.adjusted() < _CENTS_CONTEXT.prec - 10:
        amount = value
    else:
        amount = to_decimal(value)
    return amount.quantize(CENT, context=_CENTS_CONTEXT)


def raw_line_value(line: PublicationLine) -> Decimal:
    """unit_rate x format_multiplier, regardless of include_in_total."""
    return to_decimal(line.unit_rate) * to_decimal(line.format_multiplier)


def line_subtotal(line: PublicationLine) -> Decimal:
    """Contribution of *line* to its budget total (0 when not included)."""
    if not line.include_in_total:
        return ZERO
    return raw_line_value(line)


def budget_total(lines: Iterable[PublicationLine], design_fee: RawAmount) -> Decimal:
    """
    Sum of included line subtotals plus the flat design fee.

    A budget with no included line is worth exactly its design fee.
    """
    return sum((line_subtotal(line) for line in lines), ZERO) + to_decimal(design_fee)
