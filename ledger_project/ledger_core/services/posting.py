import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..exceptions import ImmutableStateError, NotFoundError, UnbalancedEntryError
from ..models import Account, JournalEntry
from ..models.journal import JE_CANCELLED, JE_DRAFT, JE_POSTED
from ..totals import ZERO
from . import numbering
from .base import fetch, ledger_operation, resolve_company
from .effects import LedgerEffects
from .validation import parse_date, parse_id, parse_money, parse_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryLine:
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str = ""


# ----------------------------
# Double-entry validation
# ----------------------------
def parse_entry_lines(raw_lines):
    """Validate journal lines and return them as EntryLine objects.

    Every line carries exactly one positive side, and the debit and credit
    sums are equal to the cent. Raises UnbalancedEntryError otherwise.
    """
    if not isinstance(raw_lines, (list, tuple)) or not raw_lines:
        raise ValidationError("A journal entry needs lines")

    lines = []
    for index, raw in enumerate(raw_lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        prefix = f"lines[{index}]"
        debit = parse_money(raw.get("debit"), f"{prefix}.debit", default=ZERO)
        credit = parse_money(raw.get("credit"), f"{prefix}.credit", default=ZERO)
        if (debit > 0) == (credit > 0):
            raise UnbalancedEntryError(
                f"{prefix} must have either a debit or a credit amount, not both or neither")
        lines.append(EntryLine(
            account_id=parse_id(raw.get("account_id"), f"{prefix}.account_id"),
            debit=debit,
            credit=credit,
            description=parse_text(raw.get("description")),
        ))

    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    if total_debit != total_credit:
        raise UnbalancedEntryError(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}",
            params={"debits": total_debit, "credits": total_credit},
        )
    return lines


def _load_accounts(company, lines):
    ids = {line.account_id for line in lines}
    accounts = Account.objects.active(company).in_bulk(ids)
    missing = ids - set(accounts)
    if missing:
        raise NotFoundError(f"Account {min(missing)} not found")
    return accounts


def _write_lines(entry, lines):
    for position, line in enumerate(lines, start=1):
        entry.lines.create(
            company_id=entry.company_id,
            account_id=line.account_id,
            description=line.description,
            debit_amount=line.debit,
            credit_amount=line.credit,
            position=position,
        )
    entry.total_debit = sum((line.debit for line in lines), ZERO)
    entry.total_credit = sum((line.credit for line in lines), ZERO)


def _post(entry):
    """Apply every line to its account balance and mark the entry posted."""
    lines = list(entry.lines.select_related("account"))
    debit = sum((line.debit_amount for line in lines), ZERO)
    credit = sum((line.credit_amount for line in lines), ZERO)
    # Recheck from storage; never post an entry that does not balance
    if not lines or debit != credit:
        raise UnbalancedEntryError(
            f"Journal not balanced: debits={debit}, credits={credit}")

    effects = LedgerEffects()
    for line in lines:
        account = line.account
        if not account.is_active:
            raise ValidationError(f"Account {account.code} is inactive")
        effects.add(Account, account.pk,
                    account.balance_effect(line.debit_amount, line.credit_amount),
                    f"{entry.number} line {line.position}")

    entry.status = JE_POSTED
    entry.posted_at = timezone.now()
    entry.save(update_fields=["status", "posted_at", "updated_at"])
    effects.apply()


def _log(action, entry):
    logger.info(
        f"Journal entry {action}",
        extra={
            "company_id": entry.company_id,
            "entry_id": entry.pk,
            "number": entry.number,
            "total_debit": str(entry.total_debit),
            "status": entry.status,
        },
    )


# ----------------------------
# Journal-related workflows
# ----------------------------
def create_journal_entry(company, data, user=None) -> JournalEntry:
    """Persist a validated entry; posted right away when status is POSTED.

    ``data`` keys: lines (list of {account_id, debit, credit, description}),
    and optionally entry_date, description, reference, number, status.
    """
    company = resolve_company(company)
    status = str(data.get("status") or JE_DRAFT).upper()
    if status not in (JE_DRAFT, JE_POSTED):
        raise ValidationError("status must be DRAFT or POSTED")
    entry_date = parse_date(data.get("entry_date", data.get("date")),
                            "entry_date", default=timezone.localdate())
    lines = parse_entry_lines(data.get("lines"))

    with ledger_operation("create_journal_entry", company_id=company.pk):
        _load_accounts(company, lines)

        def build(number):
            entry = JournalEntry(
                company=company,
                number=number,
                entry_date=entry_date,
                description=parse_text(data.get("description")),
                reference=parse_text(data.get("reference")),
                created_by=user,
            )
            entry.save()
            return entry

        entry = numbering.create_numbered(
            company, "JOURNAL", build, parse_text(data.get("number")) or None)
        _write_lines(entry, lines)
        entry.save(update_fields=["total_debit", "total_credit", "updated_at"])
        if status == JE_POSTED:
            _post(entry)

    _log("created", entry)
    return entry


def post_journal_entry(company, data, user=None) -> JournalEntry:
    """Create and post in one step."""
    return create_journal_entry(company, {**data, "status": JE_POSTED}, user=user)


def post_draft_journal_entry(company, entry_id) -> JournalEntry:
    company = resolve_company(company)
    with ledger_operation("post_journal_entry", company_id=company.pk,
                          entry_id=entry_id):
        entry = fetch(JournalEntry, company, entry_id, lock=True)
        if entry.status != JE_DRAFT:
            raise ImmutableStateError(
                f"{entry.number} is {entry.status.lower()} and cannot be posted")
        _post(entry)
    _log("posted", entry)
    return entry


def update_journal_entry(company, entry_id, data) -> JournalEntry:
    """Edit a draft. Supplying lines replaces the whole line set."""
    company = resolve_company(company)
    lines = None
    if "lines" in data:
        lines = parse_entry_lines(data.get("lines"))

    with ledger_operation("update_journal_entry", company_id=company.pk,
                          entry_id=entry_id):
        entry = fetch(JournalEntry, company, entry_id, lock=True)
        if entry.status != JE_DRAFT:
            raise ImmutableStateError(
                f"{entry.number} is {entry.status.lower()} and cannot be changed")
        if "entry_date" in data:
            entry.entry_date = parse_date(data.get("entry_date"), "entry_date")
        for field in ("description", "reference"):
            if field in data:
                setattr(entry, field, parse_text(data.get(field)))
        if lines is not None:
            _load_accounts(company, lines)
            entry.lines.all().delete()
            _write_lines(entry, lines)
        entry.save()

    _log("updated", entry)
    return entry


def delete_journal_entry(company, entry_id):
    company = resolve_company(company)
    with ledger_operation("delete_journal_entry", company_id=company.pk,
                          entry_id=entry_id):
        entry = fetch(JournalEntry, company, entry_id, lock=True)
        if entry.status == JE_POSTED:
            raise ImmutableStateError(
                f"{entry.number} is posted; cancel it instead")
        _log("deleted", entry)
        entry.delete()


def cancel_journal_entry(company, entry_id) -> JournalEntry:
    """Void an entry. A posted entry has its balance effects reversed."""
    company = resolve_company(company)
    with ledger_operation("cancel_journal_entry", company_id=company.pk,
                          entry_id=entry_id):
        entry = fetch(JournalEntry, company, entry_id, lock=True)
        if entry.status == JE_CANCELLED:
            raise ImmutableStateError(f"{entry.number} is already cancelled")

        effects = LedgerEffects()
        if entry.status == JE_POSTED:
            for line in entry.lines.select_related("account"):
                effects.add(Account, line.account_id,
                            -line.account.balance_effect(line.debit_amount,
                                                         line.credit_amount),
                            f"{entry.number} cancelled")
        entry.status = JE_CANCELLED
        entry.save(update_fields=["status", "updated_at"])
        effects.apply()

    _log("cancelled", entry)
    return entry
