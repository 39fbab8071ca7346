"""
Ledger effects: the running-balance side of an operation.

An operation first works out every balance change it implies (counterparty
balances for documents and payments, account balances for journal lines),
collects them in a LedgerEffects, and applies them in one step inside its
transaction. Each change is an atomic ``balance = balance + delta`` UPDATE,
so concurrent operations on the same row never lose an increment.
"""
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal

from django.db.models import F

from ..exceptions import NotFoundError


@dataclass(frozen=True)
class BalanceDelta:
    model: type
    pk: int
    amount: Decimal
    reason: str = ""


class LedgerEffects:
    def __init__(self):
        self._deltas = []

    def __iter__(self):
        return iter(self._deltas)

    def __len__(self):
        return len(self._deltas)

    def add(self, model, pk, amount, reason=""):
        if pk is None:
            raise ValueError("A balance effect needs a target row")
        self._deltas.append(BalanceDelta(model, pk, Decimal(amount), reason))
        return self

    def net(self):
        """Deltas merged per row, zero results dropped, in a stable order."""
        merged = OrderedDict()
        for delta in self._deltas:
            key = (delta.model._meta.label, delta.pk)
            if key in merged:
                model, total = merged[key]
                merged[key] = (model, total + delta.amount)
            else:
                merged[key] = (delta.model, delta.amount)
        # fixed row order keeps concurrent writers from deadlocking
        return [
            (model, pk, amount)
            for (_label, pk), (model, amount) in sorted(merged.items(),
                                                        key=lambda kv: kv[0])
            if amount != 0
        ]

    def total_for(self, model, pk):
        return sum(
            (d.amount for d in self._deltas if d.model is model and d.pk == pk),
            Decimal("0.00"),
        )

    def apply(self):
        """Apply every net delta. Call inside the operation's transaction."""
        for model, pk, amount in self.net():
            updated = model._default_manager.filter(pk=pk).update(
                balance=F("balance") + amount
            )
            if updated != 1:
                raise NotFoundError(f"{model.__name__} {pk} not found")
