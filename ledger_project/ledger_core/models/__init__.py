from .account import Account
from .bill import Bill, BillLine
from .company import Company
from .customer import Customer
from .document import BillableDocument, BillableLine
from .expense import Expense
from .invoice import Invoice, InvoiceLine
from .journal import JournalEntry, JournalLineItem
from .payment import Payment
from .product import Product
from .supplier import Supplier
