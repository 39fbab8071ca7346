from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..totals import compute_line
from .company import Company
from .product import Product

DRAFT = "DRAFT"
SENT = "SENT"
APPROVED = "APPROVED"
PARTIALLY_PAID = "PARTIALLY_PAID"
PAID = "PAID"
OVERDUE = "OVERDUE"
CANCELLED = "CANCELLED"

ZERO = Decimal("0.00")


class BillableDocument(models.Model):
    """
    Header shared by invoices (AR) and bills (AP).

    Stored figures always satisfy
        total_amount   == subtotal + tax_amount - discount_amount
        balance_amount == total_amount - paid_amount
    and the counterparty's ``balance`` includes ``balance_amount``.

    Status workflow (derived, never set freely once money moved):
        DRAFT -> SENT/APPROVED -> PARTIALLY_PAID -> PAID
        SENT/APPROVED -> OVERDUE when unpaid past due_date
    """

    # Subclasses set these
    party_field = None  # "customer" / "supplier"
    number_type = None  # numbering key, "INVOICE" / "BILL"
    issued_status = None  # SENT for invoices, APPROVED for bills
    price_side = None  # product price used for lines, "sale" / "purchase"

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="%(class)ss"
    )
    # human-readable, e.g. "INV-2025-000001"; unique per company
    number = models.CharField(max_length=64)
    date = models.DateField()
    due_date = models.DateField()
    status = models.CharField(max_length=20, default=DRAFT)

    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    # line discounts plus the document-level discount
    discount_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO
    )
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO
    )
    paid_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    balance_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO
    )
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-date", "-id"]
        indexes = [
            models.Index(fields=["company", "status"], name="ix_%(class)s_company_status"),
            models.Index(fields=["company", "due_date"], name="ix_%(class)s_company_due"),
        ]
        constraints = [
            # Within one company, each number must be unique
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_%(class)s_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0)
                & models.Q(balance_amount__gte=0)
                & models.Q(total_amount__gte=0),
                name="%(class)s_non_negative_amounts",
            ),
            # No overpayment
            models.CheckConstraint(
                condition=models.Q(paid_amount__lte=models.F("total_amount")),
                name="%(class)s_paid_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.number} [{self.status}] {self.total_amount}"

    # ---- counterparty helpers ----
    @classmethod
    def party_model(cls):
        return cls._meta.get_field(cls.party_field).related_model

    @property
    def party_id(self):
        return getattr(self, f"{self.party_field}_id")

    @property
    def party(self):
        return getattr(self, self.party_field)

    # ---- status ----
    def is_overdue(self, today=None):
        """Issued, still owing and past due. Advisory only."""
        today = today or timezone.localdate()
        return (
            self.status in (self.issued_status, PARTIALLY_PAID, OVERDUE)
            and self.balance_amount > 0
            and self.due_date < today
        )

    def derive_status(self, requested=None, today=None):
        """Status implied by paid_amount vs total_amount.

        ``requested`` is what the caller asked for; it only matters while
        nothing has been paid (DRAFT stays DRAFT, anything else is issued).
        """
        today = today or timezone.localdate()
        past_due = self.balance_amount > 0 and self.due_date < today

        if self.paid_amount > 0:
            if self.paid_amount >= self.total_amount:
                return PAID
            return OVERDUE if past_due else PARTIALLY_PAID

        base = requested or self.status
        if base in (DRAFT, CANCELLED):
            return base
        # Everything else collapses to issued, or overdue when past due
        return OVERDUE if past_due else self.issued_status

    def apply_totals(self, totals):
        """Copy calculated figures and recompute the open balance."""
        self.subtotal = totals.subtotal
        self.tax_amount = totals.tax_amount
        self.discount_amount = totals.discount_amount
        self.total_amount = totals.total_amount
        self.balance_amount = self.total_amount - self.paid_amount

    def clean(self):
        party = self.party
        # Counterparty must belong to the same company
        if party is not None and party.company_id != self.company_id:
            raise ValidationError(
                f"{self.party_field.capitalize()} must belong to the same company."
            )
        if self.due_date and self.date and self.due_date < self.date:
            raise ValidationError("Due date cannot be before the document date")
        if self.total_amount != self.subtotal + self.tax_amount - self.discount_amount:
            raise ValidationError("Total must equal subtotal + tax - discount")
        if self.balance_amount != self.total_amount - self.paid_amount:
            raise ValidationError("Balance must equal total - paid")
        if self.paid_amount > self.total_amount:
            raise ValidationError("Paid amount cannot exceed the total")

    def save(self, *args, **kwargs):
        # Number uniqueness is enforced by the database constraint so that
        # the numbering retry sees an IntegrityError
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)


class BillableLine(models.Model):
    """One priced line on an invoice or bill. Amounts are derived on save."""

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="+"
    )
    product = models.ForeignKey(
        Product,
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # product with document history stays
        related_name="+",
    )
    description = models.TextField(blank=True, default="")
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=ZERO
    )
    # Percent
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO
    )
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO
    )
    position = models.PositiveIntegerField(default=0)

    class Meta:
        abstract = True
        ordering = ["position", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0)
                & models.Q(unit_price__gte=0)
                & models.Q(tax_rate__gte=0)
                & models.Q(discount_amount__gte=0),
                name="%(class)s_valid_amounts",
            ),
        ]

    @property
    def subtotal(self):
        return self.total_amount - self.tax_amount + self.discount_amount

    def recalc(self):
        amounts = compute_line(
            self.quantity, self.unit_price, self.tax_rate, self.discount_amount
        )
        self.tax_amount = amounts.tax_amount
        self.discount_amount = amounts.discount_amount
        self.total_amount = amounts.total_amount

    def clean(self):
        if self.product_id and self.product.company_id != self.company_id:
            raise ValidationError("Line product must belong to the same company")

    def save(self, *args, **kwargs):
        # Never trust stored line amounts; always derive them
        self.recalc()
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
