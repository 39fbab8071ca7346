from .documents import (cancel_bill, cancel_invoice, create_bill,
                        create_invoice, delete_bill, delete_invoice,
                        update_bill, update_invoice)
from .expenses import create_expense, delete_expense, update_expense
from .masterdata import (create_account, create_customer, create_product,
                         create_supplier)
from .numbering import create_numbered, issue
from .payment import apply_payment, delete_payment, update_payment
from .posting import (cancel_journal_entry, create_journal_entry,
                      delete_journal_entry, post_draft_journal_entry,
                      post_journal_entry, update_journal_entry)
