"""
Human-readable numbering for documents and master data.

Numbers look like ``INV-2025-000042`` / ``PAY-000007``. The sequence part is
derived from how many rows of that type the company already has, so it is
gap-tolerant rather than gapless. Uniqueness is guaranteed by the
(company, number) database constraint: a generated candidate that collides
is retried with the next sequence value inside a savepoint, a bounded number
of times, before DuplicateCodeError surfaces.
"""
import logging
from dataclasses import dataclass

from django.apps import apps
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import DuplicateCodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentType:
    key: str
    prefix: str
    model_name: str
    field: str = "number"
    # include the issue year: INV-2025-000001
    yearly: bool = False

    @property
    def model(self):
        return apps.get_model("ledger_core", self.model_name)


DOCUMENT_TYPES = {
    dt.key: dt
    for dt in (
        DocumentType("INVOICE", "INV", "Invoice", yearly=True),
        DocumentType("BILL", "BILL", "Bill", yearly=True),
        DocumentType("PAYMENT", "PAY", "Payment"),
        DocumentType("EXPENSE", "EXP", "Expense"),
        DocumentType("JOURNAL", "JE", "JournalEntry"),
        DocumentType("CUSTOMER", "CUST", "Customer", field="code"),
        DocumentType("SUPPLIER", "SUPP", "Supplier", field="code"),
        DocumentType("PRODUCT", "PROD", "Product", field="code"),
        DocumentType("ACCOUNT", "ACC", "Account", field="code"),
    )
}


def get_document_type(document_type):
    if isinstance(document_type, DocumentType):
        return document_type
    try:
        return DOCUMENT_TYPES[document_type]
    except KeyError:
        raise ValueError(f"Unknown document type {document_type!r}")


def format_number(document_type, sequence, year=None):
    dt = get_document_type(document_type)
    padded = str(sequence).zfill(settings.LEDGER_NUMBER_PADDING)
    if dt.yearly:
        year = year or timezone.localdate().year
        return f"{dt.prefix}-{year}-{padded}"
    return f"{dt.prefix}-{padded}"


def issue(company, document_type, *, attempt=0, year=None):
    """Next candidate number for ``company``.

    candidate sequence = existing count + 1 + attempt
    Not reserved: two callers may get the same candidate; the database
    constraint decides who keeps it.
    """
    dt = get_document_type(document_type)
    count = dt.model.objects.filter(company=company).count()
    return format_number(dt, count + 1 + attempt, year=year)


def number_exists(company, document_type, value):
    dt = get_document_type(document_type)
    return dt.model.objects.filter(company=company, **{dt.field: value}).exists()


def create_numbered(company, document_type, build, requested=None, *, year=None):
    """Insert a row carrying a fresh number and return it.

    ``build(number)`` must create and save exactly the numbered row. A
    caller supplied ``requested`` number is used as is: if it is taken the
    operation fails with DuplicateCodeError, it is never renumbered.
    """
    dt = get_document_type(document_type)

    if requested:
        if number_exists(company, dt, requested):
            raise DuplicateCodeError(
                f"{dt.model_name} {dt.field} {requested} already exists",
                params={"value": requested},
            )
        try:
            with transaction.atomic():
                return build(requested)
        except IntegrityError:
            # lost a race for the same caller supplied value
            if number_exists(company, dt, requested):
                raise DuplicateCodeError(
                    f"{dt.model_name} {dt.field} {requested} already exists",
                    params={"value": requested},
                )
            raise

    max_attempts = settings.LEDGER_NUMBERING_MAX_ATTEMPTS
    for attempt in range(max_attempts):
        candidate = issue(company, dt, attempt=attempt, year=year)
        try:
            # savepoint: a collision must not poison the outer transaction
            with transaction.atomic():
                return build(candidate)
        except IntegrityError:
            if not number_exists(company, dt, candidate):
                # some other constraint failed; not ours to retry
                raise
            logger.warning(
                "Number collision, retrying",
                extra={
                    "document_type": dt.key,
                    "candidate": candidate,
                    "attempt": attempt + 1,
                },
            )

    logger.error(
        "Numbering retries exhausted",
        extra={"document_type": dt.key, "attempts": max_attempts},
    )
    raise DuplicateCodeError(
        f"Could not allocate a unique {dt.model_name} {dt.field} "
        f"after {max_attempts} attempts"
    )
