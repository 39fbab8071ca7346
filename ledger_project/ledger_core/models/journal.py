from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account
from .company import Company

JE_DRAFT = "DRAFT"
JE_POSTED = "POSTED"
JE_CANCELLED = "CANCELLED"

JOURNAL_STATUS = [
    (JE_DRAFT, "Draft"),  # still editable, no effect on balances
    (JE_POSTED, "Posted"),  # finalized, account balances moved
    (JE_CANCELLED, "Cancelled"),
]


# ---------- Journal (Header) & JournalLineItem ----------
class JournalEntry(models.Model):  # Represents one accounting transaction

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="journal_entries"
    )
    number = models.CharField(max_length=64)  # e.g. "JE-000001"
    entry_date = models.DateField()
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(
        max_length=10, choices=JOURNAL_STATUS, default=JE_DRAFT
    )
    # Cached sums of the lines; equal for every stored entry
    total_debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    posted_at = models.DateTimeField(null=True, blank=True)
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
        ordering = ["-entry_date", "-id"]
        indexes = [
            models.Index(fields=["company", "entry_date"], name="ix_je_company_date"),
            models.Index(fields=["company", "status"], name="ix_je_company_status"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"], name="uq_je_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(total_debit=models.F("total_credit")),
                name="je_balanced_totals",
            ),
        ]

    def __str__(self):
        return f"{self.number} {self.entry_date} [{self.status}]"

    @property
    def is_posted(self):
        return self.status == JE_POSTED

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit_amount"),
            total_credit=models.Sum("credit_amount"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def save(self, *args, **kwargs):
        if self.pk:
            orig = JournalEntry.objects.filter(pk=self.pk).only("status").first()
            if orig and orig.status != self.status:
                # posted entries can only be cancelled, cancelled ones stay so
                if orig.status == JE_POSTED and self.status != JE_CANCELLED:
                    raise ValidationError("Cannot unpost a posted journal")
                if orig.status == JE_CANCELLED:
                    raise ValidationError("Cannot reopen a cancelled journal")
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)


class JournalLineItem(models.Model):  # one debit or one credit
    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="+"
    )
    journal = models.ForeignKey(
        JournalEntry, on_delete=models.CASCADE, related_name="lines"
    )
    # Deleting an account with journal history is refused in signals.py
    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="journal_lines"
    )
    description = models.CharField(max_length=400, blank=True, default="")
    debit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    credit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    position = models.PositiveIntegerField(default=0)

    objects = TenantManager()

    class Meta:
        ordering = ["position", "id"]
        indexes = [
            models.Index(fields=["company", "account"], name="ix_jl_company_account"),
            models.Index(fields=["company", "journal"], name="ix_jl_company_journal"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit_amount__gte=0) & models.Q(credit_amount__gte=0)
                ),
                name="jl_non_negative_amounts",
            ),
            # exactly one side is non-zero
            models.CheckConstraint(
                condition=~(models.Q(debit_amount=0) & models.Q(credit_amount=0)),
                name="jl_debit_or_credit_nonzero",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit_amount__gt=0) & models.Q(credit_amount__gt=0)),
                name="jl_not_both_sides",
            ),
        ]

    def __str__(self):
        return f"{self.account} D:{self.debit_amount} C:{self.credit_amount}"

    def clean(self):
        # every line must belong to same company as journal and account
        if self.journal_id and self.journal.company_id != self.company_id:
            raise ValidationError(
                "All journal lines must belong to same company as journal.")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "Journal line account must belong to the same company")

    def save(self, *args, **kwargs):
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
