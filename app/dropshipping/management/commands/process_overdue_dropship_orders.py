from __future__ import annotations

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db.models import Count

from dropshipping.models import DropshipOrder
from dropshipping.services import DropshipOrderService


class Command(BaseCommand):
    help = "Flag dropship orders past their estimated delivery and alert on late suppliers."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only show overdue orders per supplier.",
        )

    def handle(self, *args, **options):
        if options.get("dry_run"):
            overdue = DropshipOrder.objects.overdue()
            rows = overdue.values("supplier__name").annotate(count=Count("id")).order_by("-count")
            threshold = settings.DROPSHIP_OVERDUE_ALERT_THRESHOLD
            for row in rows:
                marker = " (alert)" if row["count"] >= threshold else ""
                self.stdout.write(f"{row['supplier__name']}: {row['count']} overdue{marker}")
            self.stdout.write(
                f"{overdue.filter(overdue_flagged_at__isnull=True).count()} order(s) would be flagged, "
                f"{overdue.count()} overdue in total."
            )
            return

        result = DropshipOrderService.process_overdue_orders()
        self.stdout.write(
            f"Flagged {result['processed_count']} order(s), {result['total_overdue']} overdue in total."
        )
        for alert in result["supplier_alerts"]:
            self.stdout.write(self.style.WARNING(f"{alert['supplier_name']}: {alert['overdue_count']} overdue"))
