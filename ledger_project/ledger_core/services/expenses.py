import logging

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..exceptions import ImmutableStateError
from ..models import Expense
from ..models.payment import PAYMENT_METHODS
from ..totals import ZERO
from . import numbering
from .base import fetch, ledger_operation, resolve_company
from .validation import parse_choice, parse_date, parse_money, parse_text

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("description", "reference_number", "receipt")


def _log(action, expense):
    logger.info(
        f"Expense {action}",
        extra={
            "company_id": expense.company_id,
            "expense_id": expense.pk,
            "number": expense.number,
            "total_amount": str(expense.total_amount),
        },
    )


# ----------------------------
# Expenses: numbered, no balance effects
# ----------------------------
def create_expense(company, data, user=None) -> Expense:
    company = resolve_company(company)
    category = parse_text(data.get("category"))
    if not category:
        raise ValidationError("category is required")
    amount = parse_money(data.get("amount"), "amount", positive=True)
    tax_amount = parse_money(data.get("tax_amount"), "tax_amount", default=ZERO)
    method = parse_choice(data.get("payment_method"), "payment_method",
                          PAYMENT_METHODS)
    expense_date = parse_date(data.get("expense_date"), "expense_date",
                              default=timezone.localdate())

    with ledger_operation("create_expense", company_id=company.pk):

        def build(number):
            expense = Expense(
                company=company,
                number=number,
                expense_date=expense_date,
                category=category,
                amount=amount,
                tax_amount=tax_amount,
                payment_method=method,
                created_by=user,
                **{field: parse_text(data.get(field)) for field in TEXT_FIELDS},
            )
            expense.save()
            return expense

        expense = numbering.create_numbered(
            company, "EXPENSE", build, parse_text(data.get("number")) or None)

    _log("created", expense)
    return expense


def update_expense(company, expense_id, data) -> Expense:
    company = resolve_company(company)
    number = parse_text(data.get("number"))

    with ledger_operation("update_expense", company_id=company.pk,
                          expense_id=expense_id):
        expense = fetch(Expense, company, expense_id, lock=True)
        if number and number != expense.number:
            raise ImmutableStateError("Expense numbers cannot be changed")

        if "category" in data:
            expense.category = parse_text(data.get("category"))
            if not expense.category:
                raise ValidationError("category is required")
        if "amount" in data:
            expense.amount = parse_money(data.get("amount"), "amount",
                                         positive=True)
        if "tax_amount" in data:
            expense.tax_amount = parse_money(data.get("tax_amount"),
                                             "tax_amount", default=ZERO)
        if "payment_method" in data:
            expense.payment_method = parse_choice(
                data.get("payment_method"), "payment_method", PAYMENT_METHODS)
        if "expense_date" in data:
            expense.expense_date = parse_date(data.get("expense_date"),
                                              "expense_date")
        for field in TEXT_FIELDS:
            if field in data:
                setattr(expense, field, parse_text(data.get(field)))
        # save() recomputes total_amount
        expense.save()

    _log("updated", expense)
    return expense


def delete_expense(company, expense_id):
    company = resolve_company(company)
    with ledger_operation("delete_expense", company_id=company.pk,
                          expense_id=expense_id):
        expense = fetch(Expense, company, expense_id, lock=True)
        _log("deleted", expense)
        expense.delete()
