import logging
from contextlib import contextmanager

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, transaction

from ..exceptions import NotFoundError, StorageError
from ..models import Company

logger = logging.getLogger(__name__)


# ----------------------------------------------
# Shared plumbing for every ledger operation
# ----------------------------------------------
@contextmanager
def ledger_operation(name, **context):
    """One operation = one database transaction.

    Rule violations (ValidationError and subclasses) and NotFoundError pass
    through untouched; any other database failure is logged and re-raised
    as StorageError. Either way nothing done inside the block persists.
    """
    try:
        with transaction.atomic():
            yield
    except (ValidationError, ObjectDoesNotExist):
        raise
    except DatabaseError as exc:
        logger.exception(
            "Ledger operation failed",
            extra={"operation": name, **context},
        )
        raise StorageError(f"{name} failed: {exc}") from exc


def resolve_company(company):
    """Accept a Company or its pk."""
    if isinstance(company, Company):
        return company
    try:
        return Company.objects.get(pk=company)
    except (Company.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Company {company} not found")


def fetch(model, company, pk, *, lock=False):
    """Company-scoped lookup raising NotFoundError.

    A row that exists under another company is reported exactly like a
    missing one.
    """
    try:
        return model.objects.get_for_company(company, pk, lock=lock)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{model.__name__} {pk} not found")
