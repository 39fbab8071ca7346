import logging

from django.utils import timezone

from ..exceptions import (ImmutableStateError, InvalidReferenceError,
                          OverpaymentError)
from ..models import Bill, Invoice, Payment
from ..models.document import CANCELLED
from ..models.payment import PAYMENT_METHODS
from . import numbering
from .base import fetch, ledger_operation, resolve_company
from .effects import LedgerEffects
from .validation import (parse_choice, parse_date, parse_id, parse_money,
                         parse_text)

logger = logging.getLogger(__name__)

# Fields update_payment may touch; amount and target document are fixed
EDITABLE_FIELDS = ("payment_date", "method", "reference_number", "notes")


def _target(invoice_id, bill_id):
    invoice_id = parse_id(invoice_id, "invoice_id", required=False)
    bill_id = parse_id(bill_id, "bill_id", required=False)
    if bool(invoice_id) == bool(bill_id):
        raise InvalidReferenceError(
            "A payment must reference exactly one of invoice_id or bill_id")
    if invoice_id:
        return Invoice, invoice_id
    return Bill, bill_id


def _settle(document, amount, effects):
    """Move ``amount`` between the document and its counterparty.

    Positive amount = money received/paid, negative = reversal. The document
    row must already be locked by the caller.
    """
    document.paid_amount += amount
    document.balance_amount = document.total_amount - document.paid_amount
    document.status = document.derive_status()
    document.save(update_fields=["paid_amount", "balance_amount", "status",
                                 "updated_at"])
    effects.add(document.party_model(), document.party_id, -amount,
                f"payment on {document.number}")


# ----------------------------
# Payment-related workflows
# ----------------------------
def apply_payment(company, *, invoice_id=None, bill_id=None, amount=None,
                  method=None, payment_date=None, number=None,
                  reference_number=None, notes=None, user=None) -> Payment:
    """
    Record a payment against exactly one invoice or bill.

    The payment row, the document's paid/balance/status and the
    counterparty balance change commit together or not at all.
    Locks the document row for the duration, so concurrent payments on the
    same document serialize.
    """
    company = resolve_company(company)
    model, document_id = _target(invoice_id, bill_id)
    amount = parse_money(amount, "amount", positive=True)
    method = parse_choice(method, "method", PAYMENT_METHODS)
    payment_date = parse_date(payment_date, "payment_date",
                              default=timezone.localdate())

    with ledger_operation("apply_payment", company_id=company.pk,
                          document_id=document_id):
        document = fetch(model, company, document_id, lock=True)
        if document.status == CANCELLED:
            raise ImmutableStateError(f"{document.number} is cancelled")
        # Never let paid_amount pass total_amount
        if document.paid_amount + amount > document.total_amount:
            raise OverpaymentError(
                f"Payment {amount} exceeds the open balance "
                f"{document.balance_amount} of {document.number}",
                params={"amount": amount, "balance": document.balance_amount},
            )

        def build(payment_number):
            payment = Payment(
                company=company,
                number=payment_number,
                payment_date=payment_date,
                amount=amount,
                method=method,
                reference_number=parse_text(reference_number),
                notes=parse_text(notes),
                created_by=user,
                **{model._meta.model_name: document},
            )
            payment.save()
            return payment

        payment = numbering.create_numbered(
            company, "PAYMENT", build, parse_text(number) or None)

        effects = LedgerEffects()
        _settle(document, amount, effects)
        effects.apply()

    logger.info(
        "Payment applied",
        extra={
            "company_id": company.pk,
            "payment_id": payment.pk,
            "number": payment.number,
            "document": document.number,
            "amount": str(amount),
            "balance_amount": str(document.balance_amount),
            "status": document.status,
        },
    )
    return payment


def update_payment(company, payment_id, data) -> Payment:
    """Change date, method, reference or notes. Money fields are fixed."""
    company = resolve_company(company)
    fixed = {"amount", "invoice_id", "bill_id", "number"} & set(data)
    if fixed:
        raise ImmutableStateError(
            f"Cannot change {', '.join(sorted(fixed))} of a recorded payment; "
            "delete it and record a new one")

    with ledger_operation("update_payment", company_id=company.pk,
                          payment_id=payment_id):
        payment = fetch(Payment, company, payment_id, lock=True)
        if "payment_date" in data:
            payment.payment_date = parse_date(data["payment_date"], "payment_date")
        if "method" in data:
            payment.method = parse_choice(data["method"], "method", PAYMENT_METHODS)
        if "reference_number" in data:
            payment.reference_number = parse_text(data["reference_number"])
        if "notes" in data:
            payment.notes = parse_text(data["notes"])
        payment.save(update_fields=[*EDITABLE_FIELDS, "updated_at"])

    logger.info(
        "Payment updated",
        extra={"company_id": company.pk, "payment_id": payment.pk,
               "number": payment.number},
    )
    return payment


def delete_payment(company, payment_id):
    """Reverse a payment: exact mirror of apply_payment."""
    company = resolve_company(company)

    with ledger_operation("delete_payment", company_id=company.pk,
                          payment_id=payment_id):
        payment = fetch(Payment, company, payment_id)
        model = Invoice if payment.invoice_id else Bill
        document = fetch(model, company,
                         payment.invoice_id or payment.bill_id, lock=True)
        # re-read under the document lock
        payment = fetch(Payment, company, payment_id, lock=True)

        effects = LedgerEffects()
        _settle(document, -payment.amount, effects)
        payment.delete()
        effects.apply()

    logger.info(
        "Payment deleted",
        extra={
            "company_id": company.pk,
            "payment_id": payment_id,
            "number": payment.number,
            "document": document.number,
            "amount": str(payment.amount),
            "status": document.status,
        },
    )
