import threading
import unittest
from decimal import Decimal

from django.db import close_old_connections, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone

from ..exceptions import DuplicateCodeError
from ..models import Company, Customer, Invoice
from ..services import create_customer, create_invoice
from ..services.numbering import format_number, issue


class NumberFormatTests(TestCase):
    def test_yearly_and_plain_formats(self):
        self.assertEqual(format_number("INVOICE", 42, year=2025), "INV-2025-000042")
        self.assertEqual(format_number("BILL", 1, year=2024), "BILL-2024-000001")
        self.assertEqual(format_number("PAYMENT", 7), "PAY-000007")
        self.assertEqual(format_number("JOURNAL", 1234567), "JE-1234567")

    @override_settings(LEDGER_NUMBER_PADDING=4)
    def test_padding_is_configurable(self):
        self.assertEqual(format_number("EXPENSE", 3), "EXP-0003")

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            format_number("RECEIPT", 1)


class InvoiceNumberingTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Test Co", slug="test-co")
        self.other = Company.objects.create(name="Other Co", slug="other-co")
        self.customer = Customer.objects.create(
            company=self.company, code="CUST-000001", name="Acme")
        self.year = timezone.localdate().year

    def make_invoice(self, number=None, company=None, customer=None):
        data = {
            "customer_id": (customer or self.customer).pk,
            "items": [{"quantity": 1, "unit_price": "100"}],
        }
        if number:
            data["number"] = number
        return create_invoice(company or self.company, data)

    def test_sequence_follows_existing_count(self):
        first = self.make_invoice()
        second = self.make_invoice()
        self.assertEqual(first.number, f"INV-{self.year}-000001")
        self.assertEqual(second.number, f"INV-{self.year}-000002")
        self.assertEqual(issue(self.company, "INVOICE"), f"INV-{self.year}-000003")

    def test_sequences_are_per_company(self):
        self.make_invoice()
        other_customer = Customer.objects.create(
            company=self.other, code="CUST-000001", name="Acme")
        invoice = self.make_invoice(company=self.other, customer=other_customer)
        self.assertEqual(invoice.number, f"INV-{self.year}-000001")

    def test_caller_supplied_duplicate_is_rejected(self):
        self.make_invoice(number="INV-CUSTOM-1")
        with self.assertRaises(DuplicateCodeError):
            self.make_invoice(number="INV-CUSTOM-1")

        # Nothing from the failed create is visible
        self.assertEqual(Invoice.objects.for_company(self.company).count(), 1)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("100.00"))

    def test_collision_moves_to_next_candidate(self):
        # count is 1 but sequence 2 is already taken
        self.make_invoice(number=f"INV-{self.year}-000002")
        invoice = self.make_invoice()
        self.assertEqual(invoice.number, f"INV-{self.year}-000003")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("200.00"))

    @override_settings(LEDGER_NUMBERING_MAX_ATTEMPTS=1)
    def test_retry_budget_exhausted(self):
        self.make_invoice(number=f"INV-{self.year}-000002")
        with self.assertRaises(DuplicateCodeError):
            self.make_invoice()

        self.assertEqual(Invoice.objects.for_company(self.company).count(), 1)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("100.00"))

    def test_master_data_codes(self):
        customer = create_customer(self.company, {"name": "Beta"})
        self.assertEqual(customer.code, "CUST-000002")
        with self.assertRaises(DuplicateCodeError):
            create_customer(self.company, {"name": "Gamma", "code": "CUST-000002"})


@unittest.skipUnless(connection.vendor == "postgresql",
                     "needs real row locking and concurrent transactions")
class ConcurrentNumberingTests(TransactionTestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Test Co", slug="test-co")
        self.customer = Customer.objects.create(
            company=self.company, code="CUST-000001", name="Acme")

    def test_concurrent_creates_get_distinct_numbers(self):
        workers = 5
        barrier = threading.Barrier(workers)
        numbers, errors = [], []

        def worker():
            try:
                barrier.wait()
                invoice = create_invoice(self.company.pk, {
                    "customer_id": self.customer.pk,
                    "items": [{"quantity": 1, "unit_price": "10"}],
                })
                numbers.append(invoice.number)
            except Exception as exc:  # collected and asserted below
                errors.append(exc)
            finally:
                close_old_connections()
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(set(numbers)), workers)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.balance, Decimal("50.00"))
