from django.db import models

from ..managers import TenantManager
from .party import Counterparty


# ---------- Customer ----------
# Receives invoices (AR side); balance = what the customer owes us
class Customer(Counterparty):

    # Informational; invoices are not refused above it
    credit_limit = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True
    )

    objects = TenantManager()

    class Meta(Counterparty.Meta):
        pass
