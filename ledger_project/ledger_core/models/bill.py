from django.db import models

from ..managers import TenantManager
from .document import (APPROVED, CANCELLED, DRAFT, OVERDUE, PAID,
                       PARTIALLY_PAID, BillableDocument, BillableLine)
from .supplier import Supplier

BILL_STATUS_CHOICES = [
    (DRAFT, "Draft"),
    (APPROVED, "Approved"),
    (PARTIALLY_PAID, "Partially paid"),
    (PAID, "Paid"),
    (OVERDUE, "Overdue"),
    (CANCELLED, "Cancelled"),
]


# ---------- Bill (AP) ----------
# Mirror of Invoice on the payables side
class Bill(BillableDocument):

    party_field = "supplier"
    number_type = "BILL"
    issued_status = APPROVED
    price_side = "purchase"

    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="bills"
    )
    status = models.CharField(
        max_length=20, choices=BILL_STATUS_CHOICES, default=DRAFT
    )
    # Number printed on the supplier's own document, if any
    supplier_reference = models.CharField(max_length=64, blank=True, default="")

    objects = TenantManager()

    class Meta(BillableDocument.Meta):
        pass


class BillLine(BillableLine):

    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="lines")

    objects = TenantManager()

    class Meta(BillableLine.Meta):
        pass

    def __str__(self):
        return f"{self.bill.number} #{self.position}: {self.total_amount}"
