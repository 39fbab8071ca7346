from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .bill import Bill
from .company import Company
from .invoice import Invoice

PAYMENT_METHODS = [
    ("CASH", "Cash"),
    ("BANK_TRANSFER", "Bank transfer"),
    ("CREDIT_CARD", "Credit card"),
    ("DEBIT_CARD", "Debit card"),
    ("CHEQUE", "Cheque"),
    ("UPI", "UPI"),
    ("OTHER", "Other"),
]


class Payment(models.Model):
    """
    Money received against one invoice, or paid against one bill.
    Exactly one of ``invoice`` / ``bill`` is set.
    """

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="payments"
    )
    number = models.CharField(max_length=64)  # e.g. "PAY-000001"
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    method = models.CharField(max_length=20, choices=PAYMENT_METHODS)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # Deleting a document that still has payments is refused in signals.py
    invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="payments",
    )
    bill = models.ForeignKey(
        Bill,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="payments",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        ordering = ["-payment_date", "-id"]
        indexes = [
            models.Index(fields=["company", "payment_date"], name="ix_payment_company_date"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_payment_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="payment_positive_amount"
            ),
            # Exactly one target document
            models.CheckConstraint(
                condition=(
                    models.Q(invoice__isnull=False, bill__isnull=True)
                    | models.Q(invoice__isnull=True, bill__isnull=False)
                ),
                name="payment_single_document",
            ),
        ]

    def __str__(self):
        return f"{self.number} {self.amount} -> {self.document}"

    @property
    def document(self):
        return self.invoice if self.invoice_id else self.bill

    def clean(self):
        if bool(self.invoice_id) == bool(self.bill_id):
            raise ValidationError(
                "A payment references exactly one invoice or one bill")
        document = self.document
        if document.company_id != self.company_id:
            raise ValidationError("Document must belong to the same company.")
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be > 0")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
