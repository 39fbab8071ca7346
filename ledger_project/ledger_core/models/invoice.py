from django.db import models

from ..managers import TenantManager
from .customer import Customer
from .document import (CANCELLED, DRAFT, OVERDUE, PAID, PARTIALLY_PAID, SENT,
                       BillableDocument, BillableLine)

INV_STATUS_CHOICES = [
    (DRAFT, "Draft"),
    (SENT, "Sent"),
    (PARTIALLY_PAID, "Partially paid"),
    (PAID, "Paid"),
    (OVERDUE, "Overdue"),
    (CANCELLED, "Cancelled"),
]


class Invoice(BillableDocument):  # Represents a customer invoice

    party_field = "customer"
    number_type = "INVOICE"
    issued_status = SENT
    price_side = "sale"

    customer = models.ForeignKey(
        Customer,
        # prevent deleting customer who has an invoice
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    status = models.CharField(
        max_length=20, choices=INV_STATUS_CHOICES, default=DRAFT
    )
    terms = models.TextField(blank=True, default="")

    objects = TenantManager()

    class Meta(BillableDocument.Meta):
        pass


class InvoiceLine(BillableLine):  # product/service sold on the invoice

    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines"
    )

    objects = TenantManager()

    class Meta(BillableLine.Meta):
        pass

    def __str__(self):
        return f"{self.invoice.number} #{self.position}: {self.total_amount}"
