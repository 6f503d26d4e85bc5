from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from core.services import ServiceResult
from dropshipping.exceptions import SupplierCommunicationError
from dropshipping.models import Supplier
from dropshipping.services import SupplierService
from dropshipping.states import IntegrationType, SupplierStatus


class Command(BaseCommand):
    help = "Sync supplier catalogs into supplier products."

    def add_arguments(self, parser):
        parser.add_argument(
            "--supplier",
            help="Sync only the supplier with this id.",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Sync even when the catalog was synced recently.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Fetch and compare catalogs without saving changes.",
        )

    def handle(self, *args, **options):
        dry_run = options.get("dry_run")
        suppliers = Supplier.objects.filter(
            status=SupplierStatus.ACTIVE,
            integrations__is_active=True,
            integrations__integration_type=IntegrationType.API,
        ).distinct().order_by("name")
        if options.get("supplier"):
            suppliers = suppliers.filter(pk=options["supplier"])
        if not suppliers:
            raise CommandError("No active suppliers with an API integration found.")

        totals = {"created": 0, "updated": 0, "deactivated": 0}
        failed = []
        for supplier in suppliers:
            try:
                result = SupplierService.sync_products(
                    supplier, force=options.get("force"), dry_run=dry_run
                )
            except SupplierCommunicationError as e:
                result = ServiceResult.from_exception(e)

            if not result.success:
                failed.append(supplier.name)
                self.stdout.write(self.style.ERROR(f"{supplier.name}: failed ({result.error})"))
                continue

            stats = result.data
            if stats["skipped"]:
                self.stdout.write(f"{supplier.name}: skipped, synced recently")
                continue
            for key in totals:
                totals[key] += stats[key]
            self.stdout.write(
                f"{supplier.name}: {stats['found']} found, {stats['created']} created, "
                f"{stats['updated']} updated, {stats['deactivated']} deactivated"
            )

        verb = "would be" if dry_run else "were"
        self.stdout.write(
            f"{totals['created']} product(s) {verb} created, {totals['updated']} {verb} updated, "
            f"{totals['deactivated']} {verb} deactivated."
        )
        if failed:
            raise CommandError(f"{len(failed)} supplier(s) failed to sync: {', '.join(failed)}")
