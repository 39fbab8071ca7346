import datetime
import unittest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase

from ..exceptions import (ImmutableStateError, InvalidReferenceError,
                          NotFoundError, OverpaymentError, StorageError)
from ..models import Company, Customer, Payment, Supplier
from ..services import (apply_payment, create_bill, create_invoice,
                        delete_payment, update_payment)


class PaymentAllocatorTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Test Co", slug="test-co")
        self.customer = Customer.objects.create(
            company=self.company, code="CUST-000001", name="Acme")
        self.supplier = Supplier.objects.create(
            company=self.company, code="SUPP-000001", name="Parts Inc")
        self.invoice = create_invoice(self.company, {
            "customer_id": self.customer.pk,
            "status": "SENT",
            "items": [{"quantity": 2, "unit_price": "100", "tax_rate": 10}],
        })

    def pay(self, amount, **kwargs):
        kwargs.setdefault("invoice_id", self.invoice.pk)
        kwargs.setdefault("method", "CASH")
        return apply_payment(self.company, amount=amount, **kwargs)

    def test_partial_then_full(self):
        first = self.pay("120", payment_date="2025-05-02")
        self.assertEqual(first.number, "PAY-000001")
        self.assertEqual(first.payment_date, datetime.date(2025, 5, 2))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "PARTIALLY_PAID")
        self.assertEqual(self.invoice.paid_amount, Decimal("120.00"))
        self.assertEqual(self.invoice.balance_amount, Decimal("100.00"))

        second = self.pay("100.00")
        self.assertEqual(second.number, "PAY-000002")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "PAID")
        self.assertEqual(self.invoice.balance_amount, Decimal("0.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("0.00"))

    def test_overpayment_rejected_without_side_effects(self):
        self.pay("200")
        with self.assertRaises(OverpaymentError):
            self.pay("20.01")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("200.00"))
        self.assertEqual(self.invoice.balance_amount, Decimal("20.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("20.00"))
        self.assertEqual(Payment.objects.for_company(self.company).count(), 1)

    def test_reference_must_name_exactly_one_document(self):
        bill = create_bill(self.company, {
            "supplier_id": self.supplier.pk,
            "items": [{"quantity": 1, "unit_price": "10"}],
        })
        with self.assertRaises(InvalidReferenceError):
            apply_payment(self.company, invoice_id=self.invoice.pk,
                          bill_id=bill.pk, amount="1", method="CASH")
        with self.assertRaises(InvalidReferenceError):
            apply_payment(self.company, amount="1", method="CASH")

    def test_amount_and_method_are_validated(self):
        with self.assertRaises(ValidationError):
            self.pay("0")
        with self.assertRaises(ValidationError):
            self.pay("-5")
        with self.assertRaises(ValidationError):
            self.pay("10", method="BARTER")

    def test_missing_document(self):
        with self.assertRaises(NotFoundError):
            self.pay("10", invoice_id=999999)

    def test_bill_payment_reduces_supplier_balance(self):
        bill = create_bill(self.company, {
            "supplier_id": self.supplier.pk,
            "items": [{"quantity": 1, "unit_price": "80"}],
        })
        payment = apply_payment(self.company, bill_id=bill.pk, amount="30",
                                method="bank_transfer")
        self.assertEqual(payment.method, "BANK_TRANSFER")
        self.assertEqual(payment.document, bill)
        self.supplier.refresh_from_db()
        self.assertEqual(self.supplier.balance, Decimal("50.00"))

    def test_delete_payment_reverses_everything(self):
        payment = self.pay("220")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, "PAID")

        delete_payment(self.company, payment.pk)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(self.invoice.balance_amount, Decimal("220.00"))
        self.assertEqual(self.invoice.status, "SENT")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("220.00"))
        self.assertFalse(Payment.objects.filter(pk=payment.pk).exists())

    def test_update_payment_non_financial_fields(self):
        payment = self.pay("50")
        payment = update_payment(self.company, payment.pk, {
            "method": "CHEQUE", "reference_number": "CHQ-1", "notes": "late",
        })
        self.assertEqual(payment.method, "CHEQUE")
        self.assertEqual(payment.reference_number, "CHQ-1")

        with self.assertRaises(ImmutableStateError):
            update_payment(self.company, payment.pk, {"amount": "60"})
        payment.refresh_from_db()
        self.assertEqual(payment.amount, Decimal("50.00"))

    def test_database_failure_rolls_back_and_is_wrapped(self):
        failure = OperationalError("disk I/O error")
        with mock.patch("ledger_core.services.payment.LedgerEffects.apply",
                        side_effect=failure), \
                self.assertLogs("ledger_core.services.base", level="ERROR"):
            with self.assertRaises(StorageError) as cm:
                self.pay("50")

        self.assertIs(cm.exception.__cause__, failure)
        self.assertIn("apply_payment failed", str(cm.exception))
        # payment row and document update were written before the failure
        self.assertFalse(Payment.objects.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("0.00"))
        self.assertEqual(self.invoice.status, "SENT")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("220.00"))


@unittest.skipUnless(connection.vendor == "postgresql",
                     "needs real row locking and concurrent transactions")
class ConcurrentPaymentTests(TransactionTestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Test Co", slug="test-co")
        self.customer = Customer.objects.create(
            company=self.company, code="CUST-000001", name="Acme")
        self.invoice = create_invoice(self.company, {
            "customer_id": self.customer.pk,
            "items": [{"quantity": 1, "unit_price": "100"}],
        })

    def test_concurrent_payments_do_not_lose_updates(self):
        def pay(_):
            try:
                apply_payment(self.company.pk, invoice_id=self.invoice.pk,
                              amount="30", method="CASH")
                return True
            except OverpaymentError:
                return False
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(pay, range(4)))

        # only three payments of 30 fit into 100
        self.assertEqual(results.count(True), 3)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_amount, Decimal("90.00"))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("10.00"))
