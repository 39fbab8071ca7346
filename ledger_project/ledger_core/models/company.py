from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant. Every other ledger row hangs off exactly one company."""

    name = models.CharField(max_length=200)

    # URL-friendly identifier, unique across tenants
    slug = models.SlugField(max_length=80, unique=True)

    # All amounts of this company are in this currency
    base_currency = models.CharField(max_length=10, default="USD")

    # Month (1-12) in which the fiscal year starts
    fiscal_year_start = models.PositiveSmallIntegerField(default=1)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name
