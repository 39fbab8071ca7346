import logging

from celery import shared_task
from django.db import models, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from .totals import ZERO, quantize_money

logger = logging.getLogger(__name__)


def _drift_row(model_name, row, expected):
    return {
        "model": model_name,
        "id": row.pk,
        "code": row.code,
        "stored": str(row.balance),
        "expected": str(expected),
    }


@shared_task  # register this function as a Celery task
def recompute_party_balances(company_id, fix=True):
    """Rebuild customer/supplier balances from open document balances.

    Returns the rows whose stored balance had drifted; with ``fix`` they
    are overwritten with the recomputed value. Parties are locked before
    the document sums are read, so a document or payment committing
    meanwhile waits instead of being overwritten.
    """
    # import models lazily to avoid circular imports at module import time
    from .models import Bill, Customer, Invoice, Supplier
    from .models.document import CANCELLED

    drift = []
    for party_model, document_model in ((Customer, Invoice), (Supplier, Bill)):
        field = document_model.party_field
        with transaction.atomic():
            parties = list(party_model.objects.filter(
                company_id=company_id).select_for_update().order_by("pk"))
            expected_by_party = dict(
                document_model.objects.filter(company_id=company_id)
                .exclude(status=CANCELLED)
                .values(field)
                .annotate(total=models.Sum("balance_amount"))
                .values_list(field, "total")
            )
            for party in parties:
                # If nothing is open, Django returns None -> fallback to 0
                expected = quantize_money(expected_by_party.get(party.pk) or ZERO)
                if party.balance == expected:
                    continue
                drift.append(_drift_row(party_model.__name__, party, expected))
                if fix:
                    party_model.objects.filter(pk=party.pk).update(balance=expected)

    if drift:
        logger.warning(
            "Counterparty balance drift",
            extra={"company_id": company_id, "rows": len(drift), "fixed": fix},
        )
    return drift


@shared_task
def recompute_account_balances(company_id, fix=True):
    """Rebuild account balances from posted journal lines."""
    from .models import Account, JournalLineItem
    from .models.journal import JE_POSTED

    drift = []
    with transaction.atomic():
        accounts = list(Account.objects.filter(
            company_id=company_id).select_for_update().order_by("pk"))
        # Sum all posted debit and credit lines per account
        sums = {
            row["account"]: row
            for row in JournalLineItem.objects.filter(
                company_id=company_id, journal__status=JE_POSTED)
            .values("account")
            .annotate(debit=models.Sum("debit_amount"),
                      credit=models.Sum("credit_amount"))
        }
        for account in accounts:
            row = sums.get(account.pk, {})
            expected = quantize_money(
                account.balance_effect(row.get("debit"), row.get("credit")))
            if account.balance == expected:
                continue
            drift.append(_drift_row("Account", account, expected))
            if fix:
                Account.objects.filter(pk=account.pk).update(balance=expected)

    if drift:
        logger.warning(
            "Account balance drift",
            extra={"company_id": company_id, "rows": len(drift), "fixed": fix},
        )
    return drift


@shared_task
def refresh_overdue_statuses(company_id=None, today=None):
    """Persist OVERDUE on issued or partially paid documents past due.

    ``today`` is an ISO date string (tasks take JSON arguments); defaults to
    the local date. Returns the number of rows flipped per document type.
    """
    from .models import Bill, Invoice
    from .models.document import OVERDUE, PARTIALLY_PAID

    today = parse_date(today) if today else timezone.localdate()
    flipped = {}
    for model in (Invoice, Bill):
        qs = model.objects.filter(
            status__in=[model.issued_status, PARTIALLY_PAID],
            balance_amount__gt=0,
            due_date__lt=today,
        )
        if company_id is not None:
            qs = qs.filter(company_id=company_id)
        flipped[model._meta.model_name] = qs.update(
            status=OVERDUE, updated_at=timezone.now())

    logger.info(
        "Overdue statuses refreshed",
        extra={"company_id": company_id, "today": today.isoformat(), **flipped},
    )
    return flipped
