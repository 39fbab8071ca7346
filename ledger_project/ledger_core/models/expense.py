from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company
from .payment import PAYMENT_METHODS


# ---------- Expense ----------
# Standalone spend (rent, fuel, ...) paid on the spot; no counterparty balance
class Expense(models.Model):

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="expenses"
    )
    number = models.CharField(max_length=64)  # e.g. "EXP-000001"
    expense_date = models.DateField()
    category = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # amount + tax_amount
    total_amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS)
    reference_number = models.CharField(max_length=100, blank=True, default="")
    receipt = models.CharField(max_length=255, blank=True, default="")

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
        ordering = ["-expense_date", "-id"]
        indexes = [
            models.Index(fields=["company", "expense_date"], name="ix_expense_company_date"),
            models.Index(fields=["company", "category"], name="ix_expense_company_category"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_expense_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0) & models.Q(tax_amount__gte=0),
                name="expense_valid_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.number} {self.category} {self.total_amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Expense amount must be > 0")
        if self.tax_amount is not None and self.tax_amount < 0:
            raise ValidationError("Tax amount must be >= 0")

    def save(self, *args, **kwargs):
        # total always follows amount and tax
        self.total_amount = (self.amount or Decimal("0.00")) + (
            self.tax_amount or Decimal("0.00"))
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
