"""
Parsing of loosely-typed input (strings, numbers, None) into the typed
values the ledger operations work with. Everything here raises
ValidationError naming the offending field.
"""
import datetime
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.utils.dateparse import parse_date as django_parse_date

from ..totals import ZERO, LineInput


def parse_decimal(value, field, *, default=None, minimum=None, positive=False,
                  places=2):
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if positive and number <= 0:
        raise ValidationError(f"{field} must be > 0")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if number.normalize().as_tuple().exponent < -places:
        raise ValidationError(f"{field} allows at most {places} decimal places")
    return number


def parse_money(value, field, *, default=None, positive=False):
    return parse_decimal(value, field, default=default, minimum=ZERO,
                         positive=positive, places=2)


def parse_date(value, field, *, default=None):
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        parsed = django_parse_date(str(value)[:10])
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}")
    return parsed


def parse_choice(value, field, choices, *, default=None):
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    allowed = [key for key, _label in choices]
    value = str(value).upper()
    if value not in allowed:
        raise ValidationError(f"{field} must be one of {', '.join(allowed)}")
    return value


def parse_id(value, field, *, required=True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an id, got {value!r}")


def parse_text(value, *, default=""):
    if value is None:
        return default
    return str(value).strip()


def parse_line_items(items, products=None, side="sale"):
    """Turn raw item dicts into LineInput objects.

    ``products`` maps product id -> Product; a line that names a product
    falls back to its price / tax rate / name when those are omitted.
    """
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    products = products or {}
    lines = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        prefix = f"items[{index}]"
        product_id = parse_id(raw.get("product_id"), f"{prefix}.product_id",
                              required=False)
        product = products.get(product_id) if product_id else None

        unit_price = raw.get("unit_price")
        if (unit_price is None or unit_price == "") and product is not None:
            unit_price = product.default_price(side)
        tax_rate = raw.get("tax_rate")
        if (tax_rate is None or tax_rate == "") and product is not None:
            tax_rate = product.tax_rate
        description = parse_text(raw.get("description"))
        if not description and product is not None:
            description = product.name

        lines.append(LineInput(
            quantity=parse_decimal(raw.get("quantity"), f"{prefix}.quantity",
                                   positive=True, places=4),
            unit_price=parse_decimal(unit_price, f"{prefix}.unit_price",
                                     minimum=ZERO, places=4),
            tax_rate=parse_decimal(tax_rate, f"{prefix}.tax_rate",
                                   default=ZERO, minimum=ZERO),
            discount_amount=parse_money(raw.get("discount_amount"),
                                        f"{prefix}.discount_amount", default=ZERO),
            description=description,
            product_id=product_id,
        ))
    return lines
