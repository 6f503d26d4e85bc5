from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from core.services import ServiceResult
from dropshipping.exceptions import SupplierCommunicationError
from dropshipping.models import Supplier
from dropshipping.services import SupplierService
from dropshipping.states import SupplierStatus


class Command(BaseCommand):
    help = "Sync supplier stock levels for suppliers with stock sync enabled."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            help="Sync only the supplier with this id.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Fetch and match stock levels without saving them.",
        )

    def handle(self, *args, **options):
        dry_run = options.get("dry_run")
        suppliers = Supplier.objects.filter(
            status=SupplierStatus.ACTIVE, stock_sync_enabled=True
        ).order_by("name")
        if options.get("supplier"):
            suppliers = suppliers.filter(pk=options["supplier"])
        if not suppliers:
            self.stdout.write(self.style.WARNING("No suppliers with stock sync enabled."))
            return

        updated = 0
        out_of_stock = 0
        failed = []
        for supplier in suppliers:
            try:
                result = SupplierService.sync_stock(supplier, dry_run=dry_run)
            except SupplierCommunicationError as e:
                result = ServiceResult.from_exception(e)
            if not result.success:
                failed.append(supplier.name)
                self.stdout.write(self.style.ERROR(f"{supplier.name}: failed ({result.error})"))
                continue

            stats = result.data
            updated += stats["updated"]
            out_of_stock += stats["out_of_stock"]
            line = f"{supplier.name}: {stats['updated']} updated, {stats['out_of_stock']} out of stock"
            if stats["unknown_skus"]:
                line += f", {len(stats['unknown_skus'])} unknown SKU(s)"
            self.stdout.write(line)

        verb = "would be" if dry_run else "were"
        self.stdout.write(f"{updated} stock level(s) {verb} updated, {out_of_stock} out of stock.")
        if out_of_stock:
            self.stdout.write(self.style.WARNING(f"{out_of_stock} supplier product(s) are out of stock."))
        if failed:
            raise CommandError(f"{len(failed)} supplier(s) failed to sync: {', '.join(failed)}")
