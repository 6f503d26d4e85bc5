from __future__ import annotations

from django.core.management.base import BaseCommand

from dropshipping.models import DropshipOrder
from dropshipping.services import DropshipOrderService
from dropshipping.states import DropshipStatus


class Command(BaseCommand):
    help = "Send pending dropship orders to their suppliers and retry rejected ones."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            help="Only process orders of the supplier with this name.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of orders to process in one run (default: 100).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only list the orders that would be processed.",
        )

    def handle(self, *args, **options):
        limit = int(options.get("limit") or 100)
        dry_run = bool(options.get("dry_run"))

        qs = DropshipOrder.objects.needs_retry().select_related("supplier", "order").order_by("created_at")
        if options.get("supplier"):
            qs = qs.filter(supplier__name=options["supplier"])
        candidates = list(qs[:limit])

        if dry_run:
            for dropship_order in candidates:
                self.stdout.write(
                    f"{dropship_order.id} order {dropship_order.order.number} "
                    f"-> {dropship_order.supplier.name} ({dropship_order.status})"
                )
            self.stdout.write(f"{len(candidates)} dropship order(s) would be processed.")
            return

        sent = 0
        failed = 0
        for dropship_order in candidates:
            if dropship_order.status == DropshipStatus.PENDING and dropship_order.retry_count == 0:
                result = DropshipOrderService.send_to_supplier(dropship_order)
            else:
                result = DropshipOrderService.retry_dropship_order(dropship_order)

            if result.success:
                sent += 1
            else:
                failed += 1
                self.stderr.write(f"{dropship_order.id}: {result.error}")

        self.stdout.write(self.style.SUCCESS(f"Queued {sent} dropship order(s), {failed} failed."))
