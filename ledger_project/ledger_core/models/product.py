from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Product (goods or services the company buys and sells) ----------
class Product(models.Model):

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="products"
    )
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    unit = models.CharField(max_length=20, default="unit")

    # Used as the line price when an invoice line omits unit_price
    selling_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    # Same, for bill lines; selling_price stands in when empty
    purchase_price = models.DecimalField(
        max_digits=18, decimal_places=4, null=True, blank=True
    )
    # Percent, e.g. 18.00
    tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="ix_product_company_name"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_product_code"
            ),
            models.CheckConstraint(
                condition=models.Q(selling_price__gte=0)
                & models.Q(purchase_price__gte=0)
                & models.Q(tax_rate__gte=0),
                name="product_non_negative_prices",
            ),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    def default_price(self, side):
        """Selling price for "sale" lines, purchase price for "purchase"."""
        if side == "purchase" and self.purchase_price is not None:
            return self.purchase_price
        return self.selling_price

    def clean(self):
        if self.selling_price < 0 or (self.purchase_price or 0) < 0:
            raise ValidationError("Prices must be >= 0")
        if self.tax_rate < 0:
            raise ValidationError("Tax rate must be >= 0")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
