import logging

from django.core.exceptions import ValidationError

from ..models import Account, Customer, Product, Supplier
from ..models.account import AC_TYPES
from ..totals import ZERO
from . import numbering
from .base import fetch, ledger_operation, resolve_company
from .validation import parse_choice, parse_decimal, parse_id, parse_money, parse_text

logger = logging.getLogger(__name__)


def _required_name(data):
    name = parse_text(data.get("name"))
    if not name:
        raise ValidationError("name is required")
    return name


def _credit_days(data):
    value = data.get("credit_period_days")
    if value is None or value == "":
        return None
    days = parse_decimal(value, "credit_period_days", minimum=0, places=0)
    return int(days)


def _create_coded(model, document_type, company, requested_code, fields):
    """Insert a master-data row under a fresh (or requested) code."""
    with ledger_operation(f"create_{model._meta.model_name}",
                          company_id=company.pk):

        def build(code):
            instance = model(company=company, code=code, **fields)
            instance.save()
            return instance

        instance = numbering.create_numbered(
            company, document_type, build, requested_code or None)

    logger.info(
        f"{model.__name__} created",
        extra={"company_id": company.pk, "object_id": instance.pk,
               "code": instance.code},
    )
    return instance


def _party_fields(data):
    return {
        "name": _required_name(data),
        "email": parse_text(data.get("email")) or None,
        "phone": parse_text(data.get("phone")),
        "address": parse_text(data.get("address")),
        "tax_id": parse_text(data.get("tax_id")),
        "credit_period_days": _credit_days(data),
    }


def create_customer(company, data) -> Customer:
    company = resolve_company(company)
    fields = _party_fields(data)
    if data.get("credit_limit") not in (None, ""):
        fields["credit_limit"] = parse_money(data.get("credit_limit"),
                                             "credit_limit")
    return _create_coded(Customer, "CUSTOMER", company,
                         parse_text(data.get("code")), fields)


def create_supplier(company, data) -> Supplier:
    company = resolve_company(company)
    fields = _party_fields(data)
    fields["contact_person"] = parse_text(data.get("contact_person"))
    return _create_coded(Supplier, "SUPPLIER", company,
                         parse_text(data.get("code")), fields)


def create_product(company, data) -> Product:
    company = resolve_company(company)
    purchase_price = data.get("purchase_price")
    fields = {
        "name": _required_name(data),
        "description": parse_text(data.get("description")),
        "unit": parse_text(data.get("unit")) or "unit",
        "selling_price": parse_decimal(data.get("selling_price"), "selling_price",
                                       default=ZERO, minimum=ZERO, places=4),
        "purchase_price": (
            None if purchase_price in (None, "")
            else parse_decimal(purchase_price, "purchase_price",
                               minimum=ZERO, places=4)
        ),
        "tax_rate": parse_decimal(data.get("tax_rate"), "tax_rate",
                                  default=ZERO, minimum=ZERO),
    }
    return _create_coded(Product, "PRODUCT", company,
                         parse_text(data.get("code")), fields)


def create_account(company, data) -> Account:
    company = resolve_company(company)
    fields = {
        "name": _required_name(data),
        "account_type": parse_choice(data.get("account_type"), "account_type",
                                     AC_TYPES),
        "description": parse_text(data.get("description")),
    }
    parent_id = parse_id(data.get("parent_id"), "parent_id", required=False)
    if parent_id:
        fields["parent"] = fetch(Account, company, parent_id)
    return _create_coded(Account, "ACCOUNT", company,
                         parse_text(data.get("code")), fields)
