import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from ..exceptions import (EmptyDocumentError, HasPaymentsError,
                          ImmutableStateError, NotFoundError, OverpaymentError)
from ..models import Bill, Invoice, Product
from ..models.document import CANCELLED, DRAFT, PAID
from ..totals import ZERO, LineInput, calculate_totals
from . import numbering
from .base import fetch, ledger_operation, resolve_company
from .effects import LedgerEffects
from .validation import (parse_date, parse_id, parse_line_items, parse_money,
                         parse_text)

logger = logging.getLogger(__name__)

# Free-text header fields callers may set, per document model
TEXT_FIELDS = {
    Invoice: ("notes", "terms"),
    Bill: ("notes", "supplier_reference"),
}


# ----------------------------------------------
# Helpers shared by invoices and bills
# ----------------------------------------------
def _requested_status(model, value):
    """Callers may only ask for DRAFT or the issued status."""
    if value is None or value == "":
        return None
    value = str(value).upper()
    allowed = (DRAFT, model.issued_status)
    if value not in allowed:
        raise ValidationError(
            f"status can only be set to {' or '.join(allowed)}; "
            "other statuses follow from payments and due dates"
        )
    return value


def _load_products(company, raw_items):
    ids = set()
    for raw in raw_items or []:
        if isinstance(raw, dict):
            product_id = parse_id(raw.get("product_id"), "product_id", required=False)
            if product_id:
                ids.add(product_id)
    if not ids:
        return {}
    products = Product.objects.for_company(company).in_bulk(ids)
    missing = ids - set(products)
    if missing:
        raise NotFoundError(f"Product {min(missing)} not found")
    return products


def _parse_lines(model, company, raw_items):
    if not raw_items:
        raise EmptyDocumentError(
            f"{model.__name__} needs at least one line item")
    products = _load_products(company, raw_items)
    return parse_line_items(raw_items, products, side=model.price_side)


def _stored_lines(document):
    return [
        LineInput(
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate=line.tax_rate,
            discount_amount=line.discount_amount,
            description=line.description,
            product_id=line.product_id,
        )
        for line in document.lines.all()
    ]


def _document_discount(document):
    """Document-level part of the stored discount (line discounts excluded)."""
    line_discounts = sum(
        (line.discount_amount for line in document.lines.all()), ZERO)
    return document.discount_amount - line_discounts


def _write_lines(document, lines):
    for position, line in enumerate(lines, start=1):
        document.lines.create(
            company_id=document.company_id,
            product_id=line.product_id,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate=line.tax_rate,
            discount_amount=line.discount_amount,
            position=position,
        )


def _default_due_date(party, doc_date):
    days = party.credit_period_days
    if days is None:
        days = settings.LEDGER_DEFAULT_CREDIT_DAYS
    return doc_date + timedelta(days=days)


def _log(action, document, **extra):
    logger.info(
        f"{document.__class__.__name__} {action}",
        extra={
            "company_id": document.company_id,
            "document_id": document.pk,
            "number": document.number,
            "total_amount": str(document.total_amount),
            "balance_amount": str(document.balance_amount),
            "status": document.status,
            **extra,
        },
    )


def _create_document(model, company, data, user=None):
    company = resolve_company(company)
    party_key = f"{model.party_field}_id"
    party_id = parse_id(data.get(party_key), party_key)
    requested_number = parse_text(data.get("number")) or None
    doc_date = parse_date(data.get("date"), "date", default=timezone.localdate())
    requested = _requested_status(model, data.get("status"))
    discount = parse_money(data.get("discount_amount"), "discount_amount",
                           default=ZERO)
    text = {
        field: parse_text(data.get(field)) for field in TEXT_FIELDS[model]
    }

    with ledger_operation(f"create_{model._meta.model_name}",
                          company_id=company.pk):
        party = fetch(model.party_model(), company, party_id)
        lines = _parse_lines(model, company, data.get("items"))
        totals = calculate_totals(lines, discount)
        due_date = parse_date(data.get("due_date"), "due_date",
                              default=_default_due_date(party, doc_date))

        def build(number):
            document = model(
                company=company,
                number=number,
                date=doc_date,
                due_date=due_date,
                created_by=user,
                **{model.party_field: party},
                **text,
            )
            document.apply_totals(totals)
            document.status = document.derive_status(requested=requested or DRAFT)
            document.save()
            return document

        document = numbering.create_numbered(
            company, model.number_type, build, requested_number,
            year=doc_date.year,
        )
        _write_lines(document, lines)

        # counterparty now owes / is owed the new document's balance
        LedgerEffects().add(
            party.__class__, party.pk, document.balance_amount,
            f"{document.number} created",
        ).apply()

    _log("created", document)
    return document


def _update_document(model, company, document_id, data):
    company = resolve_company(company)
    party_key = f"{model.party_field}_id"

    with ledger_operation(f"update_{model._meta.model_name}",
                          company_id=company.pk, document_id=document_id):
        document = fetch(model, company, document_id, lock=True)

        # Fully settled and cancelled documents are frozen
        if document.status in (PAID, CANCELLED):
            raise ImmutableStateError(
                f"{document.number} is {document.status.lower()} "
                "and can no longer be changed")
        number = parse_text(data.get("number"))
        if number and number != document.number:
            raise ImmutableStateError("Document numbers cannot be changed")

        party_model = model.party_model()
        old_party_id = document.party_id
        old_balance = document.balance_amount
        old_total = document.total_amount

        if data.get(party_key) not in (None, ""):
            party_id = parse_id(data.get(party_key), party_key)
            if party_id != old_party_id:
                setattr(document, model.party_field,
                        fetch(party_model, company, party_id))

        if "date" in data:
            document.date = parse_date(data.get("date"), "date")
        if "due_date" in data:
            document.due_date = parse_date(data.get("due_date"), "due_date")
        for field in TEXT_FIELDS[model]:
            if field in data:
                setattr(document, field, parse_text(data.get(field)))

        requested = _requested_status(model, data.get("status"))
        if requested and document.paid_amount > 0:
            raise ImmutableStateError(
                "Status of a document with payments follows its payments")

        new_lines = None
        if "items" in data:
            new_lines = _parse_lines(model, company, data.get("items"))
        if new_lines is not None or "discount_amount" in data:
            if "discount_amount" in data:
                discount = parse_money(data.get("discount_amount"),
                                       "discount_amount", default=ZERO)
            else:
                discount = _document_discount(document)
            totals = calculate_totals(
                new_lines if new_lines is not None else _stored_lines(document),
                discount,
            )
            if totals.total_amount < document.paid_amount:
                raise OverpaymentError(
                    f"New total {totals.total_amount} is below the "
                    f"{document.paid_amount} already paid on {document.number}"
                )
            document.apply_totals(totals)
            if new_lines is not None:
                # the item set is replaced as a unit
                document.lines.all().delete()
                _write_lines(document, new_lines)

        document.status = document.derive_status(requested=requested)
        document.save()

        # Same counterparty: nets to newTotal - oldTotal
        LedgerEffects().add(
            party_model, old_party_id, -old_balance, f"{document.number} before edit",
        ).add(
            party_model, document.party_id, document.balance_amount,
            f"{document.number} after edit",
        ).apply()

    _log("updated", document, previous_total=str(old_total))
    return document


def _delete_document(model, company, document_id):
    company = resolve_company(company)

    with ledger_operation(f"delete_{model._meta.model_name}",
                          company_id=company.pk, document_id=document_id):
        document = fetch(model, company, document_id, lock=True)
        if document.paid_amount > 0 or document.payments.exists():
            raise HasPaymentsError(
                f"{document.number} has payments applied; "
                "delete the payments first")

        # a cancelled document no longer counts toward the party balance
        if document.status != CANCELLED:
            LedgerEffects().add(
                model.party_model(), document.party_id, -document.balance_amount,
                f"{document.number} deleted",
            ).apply()
        _log("deleted", document)
        document.delete()


def _cancel_document(model, company, document_id):
    company = resolve_company(company)

    with ledger_operation(f"cancel_{model._meta.model_name}",
                          company_id=company.pk, document_id=document_id):
        document = fetch(model, company, document_id, lock=True)
        if document.status == CANCELLED:
            raise ImmutableStateError(f"{document.number} is already cancelled")
        if document.paid_amount > 0 or document.payments.exists():
            raise HasPaymentsError(
                f"{document.number} has payments applied; "
                "delete the payments first")

        document.status = CANCELLED
        document.save(update_fields=["status", "updated_at"])
        LedgerEffects().add(
            model.party_model(), document.party_id, -document.balance_amount,
            f"{document.number} cancelled",
        ).apply()

    _log("cancelled", document)
    return document


# ----------------------------------------------
# Invoices (AR)
# ----------------------------------------------
def create_invoice(company, data, user=None) -> Invoice:
    """Create an invoice with its lines and raise the customer's balance.

    ``data`` keys: customer_id, items (list of dicts with product_id,
    description, quantity, unit_price, tax_rate, discount_amount), and
    optionally number, date, due_date, discount_amount, status, notes, terms.
    """
    return _create_document(Invoice, company, data, user=user)


def update_invoice(company, invoice_id, data) -> Invoice:
    return _update_document(Invoice, company, invoice_id, data)


def delete_invoice(company, invoice_id):
    _delete_document(Invoice, company, invoice_id)


def cancel_invoice(company, invoice_id) -> Invoice:
    """Void an unpaid invoice; its open balance leaves the customer."""
    return _cancel_document(Invoice, company, invoice_id)


# ----------------------------------------------
# Bills (AP)
# ----------------------------------------------
def create_bill(company, data, user=None) -> Bill:
    """Mirror of create_invoice keyed by supplier_id."""
    return _create_document(Bill, company, data, user=user)


def update_bill(company, bill_id, data) -> Bill:
    return _update_document(Bill, company, bill_id, data)


def delete_bill(company, bill_id):
    _delete_document(Bill, company, bill_id)


def cancel_bill(company, bill_id) -> Bill:
    return _cancel_document(Bill, company, bill_id)
