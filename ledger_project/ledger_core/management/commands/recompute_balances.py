from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Company
from ledger_core.tasks import (recompute_account_balances,
                               recompute_party_balances)


class Command(BaseCommand):
    help = ("Rebuild customer, supplier and account balances from documents "
            "and posted journal entries, reporting any drift.")

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            type=str,
            help="Company id or slug (default: every active company)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drift without fixing it",
        )

    def handle(self, *args, **options):
        companies = Company.objects.filter(is_active=True)
        if options["company"]:
            ref = options["company"]
            lookup = {"pk": int(ref)} if ref.isdigit() else {"slug": ref}
            companies = Company.objects.filter(**lookup)
            if not companies.exists():
                raise CommandError(f"Company {ref} not found")

        fix = not options["dry_run"]
        total = 0
        for company in companies.order_by("pk"):
            # Run synchronously; no worker needed
            drift = recompute_party_balances(company.pk, fix=fix)
            drift += recompute_account_balances(company.pk, fix=fix)
            total += len(drift)
            for row in drift:
                self.stdout.write(self.style.WARNING(
                    f"{company.slug}: {row['model']} {row['code']} "
                    f"stored={row['stored']} expected={row['expected']}"
                ))

        verb = "found" if options["dry_run"] else "fixed"
        self.stdout.write(self.style.SUCCESS(
            f"Balances checked: {total} drifted row(s) {verb}."))
