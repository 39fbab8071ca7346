"""
Line-item totals.

Pure functions: no ORM access, no side effects. Every monetary figure is a
``Decimal`` rounded once, per line, to cents (ROUND_HALF_UP); document
aggregates are plain sums of those rounded figures, so

    total_amount == subtotal + tax_amount - discount_amount

holds exactly for every document, and the sum of line totals equals the
document total before any document-level discount.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple

from django.core.exceptions import ValidationError

from .exceptions import EmptyDocumentError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def quantize_money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineInput:
    """One line as supplied by the caller, already parsed to Decimals."""

    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    discount_amount: Decimal = ZERO
    description: str = ""
    product_id: Optional[int] = None


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_amount: Decimal
    # line discounts plus the document-level discount
    discount_amount: Decimal
    total_amount: Decimal
    lines: Tuple[LineAmounts, ...] = ()


def compute_line(quantity, unit_price, tax_rate=ZERO, discount_amount=ZERO) -> LineAmounts:
    """quantity x unit_price, plus tax at ``tax_rate`` percent, minus discount."""
    if quantity <= 0:
        raise ValidationError("Quantity must be > 0")
    if unit_price < 0:
        raise ValidationError("Unit price must be >= 0")
    if tax_rate < 0:
        raise ValidationError("Tax rate must be >= 0")
    if discount_amount < 0:
        raise ValidationError("Discount must be >= 0")

    subtotal = quantize_money(quantity * unit_price)
    tax = quantize_money(subtotal * tax_rate / HUNDRED)
    discount = quantize_money(discount_amount)
    total = subtotal + tax - discount
    if total < 0:
        raise ValidationError(
            f"Line discount {discount} exceeds line amount {subtotal + tax}")
    return LineAmounts(subtotal=subtotal, tax_amount=tax,
                       discount_amount=discount, total_amount=total)


def calculate_totals(items: Iterable[LineInput], discount_amount=ZERO) -> DocumentTotals:
    """Aggregate ``items`` into document figures.

    ``discount_amount`` is the document-level discount, applied after the
    line totals. Raises EmptyDocumentError for an empty item list.
    """
    items = list(items)
    if not items:
        raise EmptyDocumentError("A document needs at least one line item")

    document_discount = quantize_money(discount_amount)
    if document_discount < 0:
        raise ValidationError("Discount must be >= 0")

    lines = tuple(
        compute_line(item.quantity, item.unit_price,
                     item.tax_rate, item.discount_amount)
        for item in items
    )
    subtotal = sum((line.subtotal for line in lines), ZERO)
    tax = sum((line.tax_amount for line in lines), ZERO)
    discount = sum((line.discount_amount for line in lines), ZERO) + document_discount
    total = subtotal + tax - discount
    if total < 0:
        raise ValidationError(
            f"Discount {document_discount} exceeds document amount {total + document_discount}")

    return DocumentTotals(subtotal=subtotal, tax_amount=tax,
                          discount_amount=discount, total_amount=total,
                          lines=lines)
