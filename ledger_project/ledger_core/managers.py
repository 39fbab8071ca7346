from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        # accepts a Company instance or its pk
        return self.filter(company=company)

    def active(self, company):
        return self.filter(company=company, is_active=True)

    def open_balance(self):
        # documents that still carry an amount owed
        return self.filter(balance_amount__gt=0)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    # Invoice.objects.for_company(company) / Customer.objects.active(company)
    use_in_migrations = True

    def get_for_company(self, company, pk, *, lock=False):
        """Fetch one row scoped to ``company``; lock it when asked.

        Raises the model's DoesNotExist when the row is missing or belongs
        to another tenant; callers translate it to NotFoundError.
        """
        qs = self.get_queryset().for_company(company)
        if lock:
            qs = qs.select_for_update()
        return qs.get(pk=pk)
