import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase, override_settings
from django.utils import timezone

from ..exceptions import (EmptyDocumentError, HasPaymentsError,
                          ImmutableStateError, NotFoundError, OverpaymentError)
from ..models import Company, Customer, Invoice, InvoiceLine, Product
from ..services import (apply_payment, cancel_invoice, create_invoice,
                        delete_invoice, delete_payment, update_invoice)


class InvoiceLifecycleTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Test Co", slug="test-co")
        self.customer = Customer.objects.create(
            company=self.company, code="CUST-000001", name="Acme",
            credit_period_days=15)
        self.product = Product.objects.create(
            company=self.company, code="PROD-000001", name="Widget",
            selling_price=Decimal("50.00"), tax_rate=Decimal("5.00"))
        self.today = timezone.localdate()

    def make_invoice(self, items=None, **extra):
        """Helper: one line of 2 x 100 at 10% tax unless items are given."""
        data = {
            "customer_id": self.customer.pk,
            "items": items if items is not None else [
                {"quantity": 2, "unit_price": "100", "tax_rate": 10}
            ],
        }
        data.update(extra)
        return create_invoice(self.company, data)

    def assert_customer_balance(self, expected):
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal(expected))

    def test_create_pay_in_full(self):
        invoice = self.make_invoice()
        self.assertEqual(invoice.subtotal, Decimal("200.00"))
        self.assertEqual(invoice.tax_amount, Decimal("20.00"))
        self.assertEqual(invoice.total_amount, Decimal("220.00"))
        self.assertEqual(invoice.balance_amount, Decimal("220.00"))
        self.assertEqual(invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(invoice.status, "DRAFT")
        self.assert_customer_balance("220.00")

        apply_payment(self.company, invoice_id=invoice.pk, amount="220",
                      method="CASH")
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, "PAID")
        self.assertEqual(invoice.balance_amount, Decimal("0.00"))
        self.assert_customer_balance("0.00")

    def test_create_persists_lines_in_order(self):
        invoice = self.make_invoice(items=[
            {"description": "first", "quantity": 1, "unit_price": "10"},
            {"description": "second", "quantity": "1.5", "unit_price": "4"},
        ])
        lines = list(invoice.lines.all())
        self.assertEqual([l.description for l in lines], ["first", "second"])
        self.assertEqual([l.position for l in lines], [1, 2])
        self.assertEqual(lines[1].total_amount, Decimal("6.00"))
        self.assertEqual(sum(l.total_amount for l in lines), invoice.total_amount)

    def test_due_date_defaults_to_customer_credit_period(self):
        invoice = self.make_invoice(date="2025-03-01")
        self.assertEqual(invoice.date, datetime.date(2025, 3, 1))
        self.assertEqual(invoice.due_date, datetime.date(2025, 3, 16))

    @override_settings(LEDGER_DEFAULT_CREDIT_DAYS=45)
    def test_due_date_falls_back_to_setting(self):
        self.customer.credit_period_days = None
        self.customer.save()
        invoice = self.make_invoice(date="2025-03-01")
        self.assertEqual(invoice.due_date, datetime.date(2025, 4, 15))

    def test_issued_status_on_request(self):
        invoice = self.make_invoice(status="sent")
        self.assertEqual(invoice.status, "SENT")

    def test_paid_status_cannot_be_requested(self):
        with self.assertRaises(ValidationError):
            self.make_invoice(status="PAID")

    def test_product_supplies_line_defaults(self):
        invoice = self.make_invoice(items=[
            {"product_id": self.product.pk, "quantity": 3}
        ])
        line = invoice.lines.get()
        self.assertEqual(line.unit_price, Decimal("50.00"))
        self.assertEqual(line.description, "Widget")
        self.assertEqual(invoice.subtotal, Decimal("150.00"))
        self.assertEqual(invoice.tax_amount, Decimal("7.50"))
        self.assertEqual(invoice.total_amount, Decimal("157.50"))

    def test_unknown_product_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.make_invoice(items=[{"product_id": 999999, "quantity": 1}])

    def test_empty_items_rejected_without_side_effects(self):
        with self.assertRaises(EmptyDocumentError):
            self.make_invoice(items=[])
        self.assertFalse(Invoice.objects.exists())
        self.assert_customer_balance("0.00")

    def test_unknown_customer(self):
        with self.assertRaises(NotFoundError):
            create_invoice(self.company, {
                "customer_id": 999999,
                "items": [{"quantity": 1, "unit_price": "1"}],
            })

    def test_malformed_amount(self):
        with self.assertRaises(ValidationError):
            self.make_invoice(items=[{"quantity": 1, "unit_price": "ten"}])

    def test_document_discount(self):
        invoice = self.make_invoice(
            items=[{"quantity": 1, "unit_price": "100", "discount_amount": "10"}],
            discount_amount="5",
        )
        self.assertEqual(invoice.discount_amount, Decimal("15.00"))
        self.assertEqual(invoice.total_amount, Decimal("85.00"))

        # Replacing items keeps the document-level part of the discount
        invoice = update_invoice(self.company, invoice.pk, {
            "items": [{"quantity": 2, "unit_price": "100"}],
        })
        self.assertEqual(invoice.discount_amount, Decimal("5.00"))
        self.assertEqual(invoice.total_amount, Decimal("195.00"))
        self.assert_customer_balance("195.00")

    def test_update_replaces_items_and_moves_customer_balance(self):
        invoice = self.make_invoice()
        apply_payment(self.company, invoice_id=invoice.pk, amount="100",
                      method="BANK_TRANSFER")
        self.assert_customer_balance("120.00")

        invoice = update_invoice(self.company, invoice.pk, {
            "items": [{"quantity": 1, "unit_price": "300"}],
        })
        self.assertEqual(invoice.total_amount, Decimal("300.00"))
        self.assertEqual(invoice.paid_amount, Decimal("100.00"))
        self.assertEqual(invoice.balance_amount, Decimal("200.00"))
        self.assertEqual(invoice.status, "PARTIALLY_PAID")
        self.assertEqual(InvoiceLine.objects.filter(invoice=invoice).count(), 1)
        # moved by newTotal - oldTotal = +80
        self.assert_customer_balance("200.00")

    def test_update_below_paid_amount_rejected(self):
        invoice = self.make_invoice()
        apply_payment(self.company, invoice_id=invoice.pk, amount="100",
                      method="CASH")
        with self.assertRaises(OverpaymentError):
            update_invoice(self.company, invoice.pk, {
                "items": [{"quantity": 1, "unit_price": "50"}],
            })
        invoice.refresh_from_db()
        self.assertEqual(invoice.total_amount, Decimal("220.00"))
        self.assertEqual(invoice.lines.count(), 1)
        self.assert_customer_balance("120.00")

    def test_partial_update_leaves_totals(self):
        invoice = self.make_invoice()
        invoice = update_invoice(self.company, invoice.pk, {
            "notes": "Thanks!", "due_date": "2099-01-31",
        })
        self.assertEqual(invoice.notes, "Thanks!")
        self.assertEqual(invoice.due_date, datetime.date(2099, 1, 31))
        self.assertEqual(invoice.total_amount, Decimal("220.00"))
        self.assert_customer_balance("220.00")

    def test_update_paid_invoice_is_immutable(self):
        invoice = self.make_invoice()
        apply_payment(self.company, invoice_id=invoice.pk, amount="220",
                      method="CASH")
        with self.assertRaises(ImmutableStateError):
            update_invoice(self.company, invoice.pk, {"notes": "late edit"})

    def test_number_cannot_change(self):
        invoice = self.make_invoice()
        with self.assertRaises(ImmutableStateError):
            update_invoice(self.company, invoice.pk, {"number": "INV-X"})

    def test_update_missing_invoice(self):
        with self.assertRaises(NotFoundError):
            update_invoice(self.company, 999999, {"notes": "x"})

    def test_move_invoice_to_another_customer(self):
        other = Customer.objects.create(
            company=self.company, code="CUST-000002", name="Beta")
        invoice = self.make_invoice()
        update_invoice(self.company, invoice.pk, {"customer_id": other.pk})
        self.assert_customer_balance("0.00")
        other.refresh_from_db()
        self.assertEqual(other.balance, Decimal("220.00"))

    def test_delete_unpaid_invoice(self):
        keep = self.make_invoice(items=[{"quantity": 1, "unit_price": "30"}])
        invoice = self.make_invoice()
        self.assert_customer_balance("250.00")

        delete_invoice(self.company, invoice.pk)
        self.assertFalse(Invoice.objects.filter(pk=invoice.pk).exists())
        self.assertFalse(InvoiceLine.objects.filter(invoice_id=invoice.pk).exists())
        self.assertTrue(Invoice.objects.filter(pk=keep.pk).exists())
        self.assert_customer_balance("30.00")

    def test_delete_with_payments_rejected(self):
        invoice = self.make_invoice()
        apply_payment(self.company, invoice_id=invoice.pk, amount="10",
                      method="CASH")
        with self.assertRaises(HasPaymentsError):
            delete_invoice(self.company, invoice.pk)
        self.assertTrue(Invoice.objects.filter(pk=invoice.pk).exists())
        self.assert_customer_balance("210.00")

    def test_orm_delete_with_payments_is_guarded(self):
        invoice = self.make_invoice()
        apply_payment(self.company, invoice_id=invoice.pk, amount="10",
                      method="CASH")
        with self.assertRaises(HasPaymentsError), transaction.atomic():
            invoice.delete()
        self.assertTrue(Invoice.objects.filter(pk=invoice.pk).exists())

    def test_overdue_is_advisory(self):
        invoice = self.make_invoice(status="SENT")
        self.assertFalse(invoice.is_overdue())
        self.assertTrue(invoice.is_overdue(today=invoice.due_date + datetime.timedelta(days=1)))

        draft = self.make_invoice()
        self.assertFalse(draft.is_overdue(today=draft.due_date + datetime.timedelta(days=1)))

    def test_past_due_issue_is_overdue(self):
        invoice = self.make_invoice(status="SENT", date="2020-01-01")
        self.assertEqual(invoice.status, "OVERDUE")

    def test_cancel_removes_open_balance(self):
        keep = self.make_invoice(status="SENT")
        void = self.make_invoice(status="SENT")
        self.assert_customer_balance("440.00")

        void = cancel_invoice(self.company, void.pk)
        self.assertEqual(void.status, "CANCELLED")
        self.assert_customer_balance("220.00")

        with self.assertRaises(ImmutableStateError):
            update_invoice(self.company, void.pk, {"notes": "reopen"})
        with self.assertRaises(ImmutableStateError):
            cancel_invoice(self.company, void.pk)
        with self.assertRaises(ImmutableStateError):
            apply_payment(self.company, invoice_id=void.pk, amount="10",
                          method="CASH")

        # deleting a cancelled invoice leaves the balance alone
        delete_invoice(self.company, void.pk)
        self.assert_customer_balance("220.00")
        keep.refresh_from_db()
        self.assertEqual(keep.status, "SENT")

    def test_cancel_with_payments_rejected(self):
        invoice = self.make_invoice(status="SENT")
        payment = apply_payment(self.company, invoice_id=invoice.pk,
                                amount="20", method="CASH")
        with self.assertRaises(HasPaymentsError):
            cancel_invoice(self.company, invoice.pk)

        delete_payment(self.company, payment.pk)
        cancel_invoice(self.company, invoice.pk)
        self.assert_customer_balance("0.00")
