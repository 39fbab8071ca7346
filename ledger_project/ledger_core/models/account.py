from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company

ASSET = "ASSET"
LIABILITY = "LIABILITY"
EQUITY = "EQUITY"
REVENUE = "REVENUE"
EXPENSE = "EXPENSE"

AC_TYPES = [
    (ASSET, "Asset"),
    (LIABILITY, "Liability"),
    (EQUITY, "Equity"),
    (REVENUE, "Revenue"),
    (EXPENSE, "Expense"),
]

# Types whose balance grows on the debit side
DEBIT_NORMAL_TYPES = {ASSET, EXPENSE}


class Account(models.Model):
    """
    Ledger account in the chart of accounts.
    - code is unique per company
    - account_type decides the sign convention of ``balance``:
      Asset/Expense grow with debits, the rest grow with credits
    - balance is only moved by posting journal entries
    """

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="accounts"
    )
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    account_type = models.CharField(max_length=10, choices=AC_TYPES)

    # Optional hierarchy (1000 Cash -> 1001 Petty Cash)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # can't delete a parent if children exist
        related_name="children",
    )
    description = models.TextField(blank=True, default="")
    balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account_type"], name="ix_account_company_type"),
            models.Index(fields=["company", "parent"], name="ix_account_company_parent"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    @property
    def is_debit_normal(self):
        return self.account_type in DEBIT_NORMAL_TYPES

    def balance_effect(self, debit, credit):
        """Signed change to ``balance`` for one posted line."""
        debit = debit or Decimal("0.00")
        credit = credit or Decimal("0.00")
        if self.is_debit_normal:
            return debit - credit
        return credit - debit

    def clean(self):
        # Parent account must belong to the same company
        if self.parent_id and self.parent.company_id != self.company_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same company"
            )
        if self.pk and self.parent_id == self.pk:
            raise ValidationError("An account cannot be its own parent")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
