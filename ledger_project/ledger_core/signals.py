from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import HasPaymentsError, ImmutableStateError
from .models import Account, Bill, Invoice, JournalLineItem, Payment

""" Block document deletion if any payments are applied.
Also covers ORM-level deletes (shell, queryset.delete()). """


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_payments(sender, instance, **kwargs):
    if Payment.objects.filter(invoice=instance).exists():
        raise HasPaymentsError(
            f"Cannot delete invoice {instance.number} with applied payments.")


@receiver(pre_delete, sender=Bill)
def prevent_delete_bill_with_payments(sender, instance, **kwargs):
    if Payment.objects.filter(bill=instance).exists():
        raise HasPaymentsError(
            f"Cannot delete bill {instance.number} with applied payments.")


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLineItem.objects.filter(account=instance).exists():
        raise ImmutableStateError(
            f"Cannot delete account {instance.code} used in journal lines.")
