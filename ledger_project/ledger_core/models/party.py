from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from .company import Company


# ---------- Counterparty (shared by Customer and Supplier) ----------
class Counterparty(models.Model):
    """
    Someone the company trades with.
    - code is unique per company (CUST-000001 / SUPP-000001)
    - balance is the running sum of open document balances; it is only
      ever moved by document lifecycle and payment operations
    """

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="%(class)ss"
    )
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")
    tax_id = models.CharField(max_length=64, blank=True, default="")

    # Days after the document date the document falls due
    # Empty = LEDGER_DEFAULT_CREDIT_DAYS
    credit_period_days = models.PositiveIntegerField(null=True, blank=True)

    balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        indexes = [
            models.Index(fields=["company", "name"], name="ix_%(class)s_company_name"),
        ]
        constraints = [
            # Codes repeat across companies but must be unique within one
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_%(class)s_company_code"
            ),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError("Name is required")
        return super().clean()

    def save(self, *args, **kwargs):
        # (company, code) uniqueness is left to the database so that
        # concurrent creators see an IntegrityError, not a stale check
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
