from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LedgerRuleError(ValidationError):
    """Base for ledger rule violations.

    Subclasses ValidationError so callers that already handle Django
    validation keep working; each kind carries a stable ``code``.
    """

    default_code = "ledger_rule"

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)


class DuplicateCodeError(LedgerRuleError):
    """Raised when a document number/code is already taken in the company."""

    default_code = "duplicate_code"


class EmptyDocumentError(LedgerRuleError):
    """Raised when totals are requested for a document without line items."""

    default_code = "empty_document"


class ImmutableStateError(LedgerRuleError):
    """Raised when mutating a PAID document or a POSTED journal entry."""

    default_code = "immutable_state"


class HasPaymentsError(LedgerRuleError):
    """Raised when deleting a document that already has payments applied."""

    default_code = "has_payments"


class OverpaymentError(LedgerRuleError):
    """Raised when a payment would push paid_amount above total_amount."""

    default_code = "overpayment"


class UnbalancedEntryError(LedgerRuleError):
    """Raised when a JournalEntry fails the double-entry balance check."""

    default_code = "unbalanced_entry"


class InvalidReferenceError(LedgerRuleError):
    """Raised when a payment names both or neither of invoice/bill."""

    default_code = "invalid_reference"


class NotFoundError(ObjectDoesNotExist):
    """Referenced document, party or account is absent (or in another company)."""


class StorageError(Exception):
    """Unexpected database failure inside a ledger operation."""
