from __future__ import annotations

from collections import Counter

from django.core.management.base import BaseCommand, CommandError

from dropshipping.services import SupplierService
from dropshipping.states import IntegrationType


class Command(BaseCommand):
    help = "Check supplier integration connections and update their health."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            help="Check only the integrations of the supplier with this id.",
        )
        parser.add_argument(
            "--type",
            choices=IntegrationType.values,
            help="Check only integrations of this type.",
        )
        parser.add_argument(
            "--unhealthy-only",
            action="store_true",
            help="Check only integrations with recent failures or no success yet.",
        )
        parser.add_argument(
            "--details",
            action="store_true",
            help="Print the details of every check.",
        )

    def handle(self, *args, **options):
        integrations = SupplierService.connection_candidates(
            supplier_id=options.get("supplier"),
            integration_type=options.get("type"),
            unhealthy_only=options.get("unhealthy_only"),
        )
        if not integrations:
            self.stdout.write(self.style.WARNING("No supplier integrations found to check."))
            return

        results = [SupplierService.check_connection(integration) for integration in integrations]
        for result in results:
            line = f"{result['supplier_name']} [{result['integration_type']}]"
            if result["success"]:
                self.stdout.write(self.style.SUCCESS(f"{line} ok ({result['response_time_ms']}ms)"))
            else:
                self.stdout.write(self.style.ERROR(f"{line} {result['error_type']}: {result['error']}"))
            if options.get("details"):
                for key, value in result["details"].items():
                    self.stdout.write(f"    {key}: {value}")

        failed = [result for result in results if not result["success"]]
        self.stdout.write(f"{len(results) - len(failed)} of {len(results)} connection(s) ok.")
        if failed:
            breakdown = Counter(result["error_type"] for result in failed)
            self.stdout.write(
                "Failures: " + ", ".join(f"{kind} {count}" for kind, count in sorted(breakdown.items()))
            )
            raise CommandError(f"{len(failed)} connection check(s) failed.")
