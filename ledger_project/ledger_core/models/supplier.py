from django.db import models

from ..managers import TenantManager
from .party import Counterparty


# ---------- Supplier ----------
# Sends us bills (AP side); balance = what we owe the supplier
class Supplier(Counterparty):

    contact_person = models.CharField(max_length=200, blank=True, default="")

    objects = TenantManager()

    class Meta(Counterparty.Meta):
        pass
