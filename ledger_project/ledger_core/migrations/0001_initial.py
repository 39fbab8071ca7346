import decimal

import django.db.models.deletion
import ledger_core.managers
from django.conf import settings
from django.db import migrations, models

ZERO = decimal.Decimal("0.00")

DOCUMENT_STATUS = {
    "invoice": [
        ("DRAFT", "Draft"),
        ("SENT", "Sent"),
        ("PARTIALLY_PAID", "Partially paid"),
        ("PAID", "Paid"),
        ("OVERDUE", "Overdue"),
        ("CANCELLED", "Cancelled"),
    ],
    "bill": [
        ("DRAFT", "Draft"),
        ("APPROVED", "Approved"),
        ("PARTIALLY_PAID", "Partially paid"),
        ("PAID", "Paid"),
        ("OVERDUE", "Overdue"),
        ("CANCELLED", "Cancelled"),
    ],
}

PAYMENT_METHODS = [
    ("CASH", "Cash"),
    ("BANK_TRANSFER", "Bank transfer"),
    ("CREDIT_CARD", "Credit card"),
    ("DEBIT_CARD", "Debit card"),
    ("CHEQUE", "Cheque"),
    ("UPI", "UPI"),
    ("OTHER", "Other"),
]


def tenant_managers():
    return [("objects", ledger_core.managers.TenantManager())]


def money(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, **kwargs)


def party_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                   serialize=False, verbose_name="ID")),
        ("code", models.CharField(max_length=32)),
        ("name", models.CharField(max_length=200)),
        ("email", models.EmailField(blank=True, max_length=254, null=True)),
        ("phone", models.CharField(blank=True, default="", max_length=32)),
        ("address", models.TextField(blank=True, default="")),
        ("tax_id", models.CharField(blank=True, default="", max_length=64)),
        ("credit_period_days", models.PositiveIntegerField(blank=True, null=True)),
        ("balance", money(default=ZERO)),
        ("is_active", models.BooleanField(default=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def party_options(name):
    return {
        "abstract": False,
        "indexes": [
            models.Index(fields=["company", "name"], name=f"ix_{name}_company_name"),
        ],
        "constraints": [
            models.UniqueConstraint(fields=("company", "code"),
                                    name=f"uq_{name}_company_code"),
        ],
    }


def document_fields(name):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                   serialize=False, verbose_name="ID")),
        ("number", models.CharField(max_length=64)),
        ("date", models.DateField()),
        ("due_date", models.DateField()),
        ("status", models.CharField(choices=DOCUMENT_STATUS[name],
                                    default="DRAFT", max_length=20)),
        ("subtotal", money(default=ZERO)),
        ("tax_amount", money(default=ZERO)),
        ("discount_amount", money(default=ZERO)),
        ("total_amount", money(default=ZERO)),
        ("paid_amount", money(default=ZERO)),
        ("balance_amount", money(default=ZERO)),
        ("notes", models.TextField(blank=True, default="")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("company", models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE,
            related_name="%(class)ss", to="ledger_core.company")),
        ("created_by", models.ForeignKey(
            blank=True, null=True,
            on_delete=django.db.models.deletion.SET_NULL,
            related_name="+", to=settings.AUTH_USER_MODEL)),
    ]


def document_options(name):
    return {
        "ordering": ["-date", "-id"],
        "abstract": False,
        "indexes": [
            models.Index(fields=["company", "status"],
                         name=f"ix_{name}_company_status"),
            models.Index(fields=["company", "due_date"],
                         name=f"ix_{name}_company_due"),
        ],
        "constraints": [
            models.UniqueConstraint(fields=("company", "number"),
                                    name=f"uq_{name}_company_number"),
            models.CheckConstraint(
                condition=models.Q(("paid_amount__gte", 0),
                                   ("balance_amount__gte", 0),
                                   ("total_amount__gte", 0)),
                name=f"{name}_non_negative_amounts"),
            models.CheckConstraint(
                condition=models.Q(("paid_amount__lte", models.F("total_amount"))),
                name=f"{name}_paid_within_total"),
        ],
    }


def line_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                   serialize=False, verbose_name="ID")),
        ("description", models.TextField(blank=True, default="")),
        ("quantity", models.DecimalField(decimal_places=4, default=decimal.Decimal("1"),
                                         max_digits=14)),
        ("unit_price", models.DecimalField(decimal_places=4, default=ZERO,
                                           max_digits=18)),
        ("tax_rate", models.DecimalField(decimal_places=2, default=ZERO,
                                         max_digits=5)),
        ("tax_amount", money(default=ZERO)),
        ("discount_amount", money(default=ZERO)),
        ("total_amount", money(default=ZERO)),
        ("position", models.PositiveIntegerField(default=0)),
        ("company", models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE,
            related_name="+", to="ledger_core.company")),
        ("product", models.ForeignKey(
            blank=True, null=True,
            on_delete=django.db.models.deletion.PROTECT,
            related_name="+", to="ledger_core.product")),
    ]


def line_options(name):
    return {
        "ordering": ["position", "id"],
        "abstract": False,
        "constraints": [
            models.CheckConstraint(
                condition=models.Q(("quantity__gt", 0), ("unit_price__gte", 0),
                                   ("tax_rate__gte", 0),
                                   ("discount_amount__gte", 0)),
                name=f"{name}_valid_amounts"),
        ],
    }


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("base_currency", models.CharField(default="USD", max_length=10)),
                ("fiscal_year_start", models.PositiveSmallIntegerField(default=1)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"verbose_name_plural": "companies"},
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("account_type", models.CharField(
                    choices=[("ASSET", "Asset"), ("LIABILITY", "Liability"),
                             ("EQUITY", "Equity"), ("REVENUE", "Revenue"),
                             ("EXPENSE", "Expense")],
                    max_length=10)),
                ("description", models.TextField(blank=True, default="")),
                ("balance", money(default=ZERO)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="accounts", to="ledger_core.company")),
                ("parent", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="children", to="ledger_core.account")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "account_type"],
                                 name="ix_account_company_type"),
                    models.Index(fields=["company", "parent"],
                                 name="ix_account_company_parent"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"),
                                            name="uq_company_account_code"),
                ],
            },
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Customer",
            fields=party_fields() + [
                ("credit_limit", money(blank=True, null=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="%(class)ss", to="ledger_core.company")),
            ],
            options=party_options("customer"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Supplier",
            fields=party_fields() + [
                ("contact_person", models.CharField(blank=True, default="",
                                                    max_length=200)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="%(class)ss", to="ledger_core.company")),
            ],
            options=party_options("supplier"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("unit", models.CharField(default="unit", max_length=20)),
                ("selling_price", models.DecimalField(decimal_places=4, default=ZERO,
                                                      max_digits=18)),
                ("purchase_price", models.DecimalField(blank=True, decimal_places=4,
                                                       max_digits=18, null=True)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=ZERO,
                                                 max_digits=5)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="products", to="ledger_core.company")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "name"],
                                 name="ix_product_company_name"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"),
                                            name="uq_company_product_code"),
                    models.CheckConstraint(
                        condition=models.Q(("selling_price__gte", 0),
                                           ("purchase_price__gte", 0),
                                           ("tax_rate__gte", 0)),
                        name="product_non_negative_prices"),
                ],
            },
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=document_fields("invoice") + [
                ("terms", models.TextField(blank=True, default="")),
                ("customer", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="invoices", to="ledger_core.customer")),
            ],
            options=document_options("invoice"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Bill",
            fields=document_fields("bill") + [
                ("supplier_reference", models.CharField(blank=True, default="",
                                                        max_length=64)),
                ("supplier", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="bills", to="ledger_core.supplier")),
            ],
            options=document_options("bill"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=line_fields() + [
                ("invoice", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines", to="ledger_core.invoice")),
            ],
            options=line_options("invoiceline"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="BillLine",
            fields=line_fields() + [
                ("bill", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines", to="ledger_core.bill")),
            ],
            options=line_options("billline"),
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=64)),
                ("payment_date", models.DateField()),
                ("amount", money()),
                ("method", models.CharField(choices=PAYMENT_METHODS, max_length=20)),
                ("reference_number", models.CharField(blank=True, default="",
                                                      max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="payments", to="ledger_core.company")),
                ("invoice", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="payments", to="ledger_core.invoice")),
                ("bill", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="payments", to="ledger_core.bill")),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-payment_date", "-id"],
                "indexes": [
                    models.Index(fields=["company", "payment_date"],
                                 name="ix_payment_company_date"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "number"),
                                            name="uq_payment_company_number"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)),
                                           name="payment_positive_amount"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("bill__isnull", True), ("invoice__isnull", False)),
                            models.Q(("bill__isnull", False), ("invoice__isnull", True)),
                            _connector="OR"),
                        name="payment_single_document"),
                ],
            },
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=64)),
                ("expense_date", models.DateField()),
                ("category", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("amount", money()),
                ("tax_amount", money(default=ZERO)),
                ("total_amount", money()),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS,
                                                    max_length=20)),
                ("reference_number", models.CharField(blank=True, default="",
                                                      max_length=100)),
                ("receipt", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="expenses", to="ledger_core.company")),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-expense_date", "-id"],
                "indexes": [
                    models.Index(fields=["company", "expense_date"],
                                 name="ix_expense_company_date"),
                    models.Index(fields=["company", "category"],
                                 name="ix_expense_company_category"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "number"),
                                            name="uq_expense_company_number"),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0), ("tax_amount__gte", 0)),
                        name="expense_valid_amounts"),
                ],
            },
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=64)),
                ("entry_date", models.DateField()),
                ("description", models.TextField(blank=True, default="")),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("status", models.CharField(
                    choices=[("DRAFT", "Draft"), ("POSTED", "Posted"),
                             ("CANCELLED", "Cancelled")],
                    default="DRAFT", max_length=10)),
                ("total_debit", money(default=ZERO)),
                ("total_credit", money(default=ZERO)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="journal_entries", to="ledger_core.company")),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-entry_date", "-id"],
                "indexes": [
                    models.Index(fields=["company", "entry_date"],
                                 name="ix_je_company_date"),
                    models.Index(fields=["company", "status"],
                                 name="ix_je_company_status"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "number"),
                                            name="uq_je_company_number"),
                    models.CheckConstraint(
                        condition=models.Q(("total_debit", models.F("total_credit"))),
                        name="je_balanced_totals"),
                ],
            },
            managers=tenant_managers(),
        ),
        migrations.CreateModel(
            name="JournalLineItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("debit_amount", money(default=ZERO)),
                ("credit_amount", money(default=ZERO)),
                ("position", models.PositiveIntegerField(default=0)),
                ("company", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="+", to="ledger_core.company")),
                ("journal", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="lines", to="ledger_core.journalentry")),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="journal_lines", to="ledger_core.account")),
            ],
            options={
                "ordering": ["position", "id"],
                "indexes": [
                    models.Index(fields=["company", "account"],
                                 name="ix_jl_company_account"),
                    models.Index(fields=["company", "journal"],
                                 name="ix_jl_company_journal"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit_amount__gte", 0),
                                           ("credit_amount__gte", 0)),
                        name="jl_non_negative_amounts"),
                    models.CheckConstraint(
                        condition=models.Q(("debit_amount", 0), ("credit_amount", 0),
                                           _negated=True),
                        name="jl_debit_or_credit_nonzero"),
                    models.CheckConstraint(
                        condition=models.Q(("debit_amount__gt", 0),
                                           ("credit_amount__gt", 0),
                                           _negated=True),
                        name="jl_not_both_sides"),
                ],
            },
            managers=tenant_managers(),
        ),
    ]
