from __future__ import annotations

from django.core.management.base import BaseCommand

from dropshipping.services import SupplierService


class Command(BaseCommand):
    help = "Check supplier integration health and email the report to admins."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            help="Check only the supplier with this id.",
        )
        parser.add_argument(
            "--send-report",
            action="store_true",
            help="Email the report even when every supplier is healthy.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the report without emailing it.",
        )

    def handle(self, *args, **options):
        report = SupplierService.check_health(supplier_id=options.get("supplier"))
        if not report:
            self.stdout.write(self.style.WARNING("No suppliers found to check."))
            return

        for entry in report:
            score = entry["health_score"] if entry["health_score"] is not None else "n/a"
            line = f"{entry['supplier_name']} [{entry['integration_type']}] score {score}"
            if entry["is_healthy"]:
                self.stdout.write(self.style.SUCCESS(f"{line} healthy"))
            else:
                self.stdout.write(self.style.ERROR(f"{line} unhealthy ({entry['consecutive_failures']} failures)"))

        unhealthy = [entry for entry in report if not entry["is_healthy"]]
        self.stdout.write(f"{len(report) - len(unhealthy)} of {len(report)} supplier(s) healthy.")

        if options.get("dry_run"):
            return
        if unhealthy or options.get("send_report"):
            if SupplierService.send_health_report(report):
                self.stdout.write("Health report sent.")
