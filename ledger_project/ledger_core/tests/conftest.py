import pytest

from ledger_core.models import Account, Company, Customer, Supplier
from ledger_core.models.account import ASSET, REVENUE


@pytest.fixture
def company(db):
    return Company.objects.create(name="Test Co", slug="test-co")


@pytest.fixture
def other_company(db):
    return Company.objects.create(name="Other Co", slug="other-co")


@pytest.fixture
def customer(company):
    return Customer.objects.create(company=company, code="CUST-000001", name="Acme")


@pytest.fixture
def supplier(company):
    return Supplier.objects.create(company=company, code="SUPP-000001", name="Parts Inc")


@pytest.fixture
def cash_account(company):
    return Account.objects.create(
        company=company, code="1000", name="Cash", account_type=ASSET)


@pytest.fixture
def revenue_account(company):
    return Account.objects.create(
        company=company, code="4000", name="Sales", account_type=REVENUE)
