from __future__ import annotations

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from authentication.roles import ROLE_PERMISSIONS


def _resolve(dotted: str) -> Permission:
    app_label, codename = dotted.split(".")
    try:
        return Permission.objects.get(content_type__app_label=app_label, codename=codename)
    except Permission.DoesNotExist:
        raise CommandError(f"Unknown permission '{dotted}'. Run migrations first.") from None


class Command(BaseCommand):
    help = "Create the staff role groups and sync their permissions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the roles and permissions without saving anything.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        dry_run = options.get("dry_run")

        for role, dotted_permissions in ROLE_PERMISSIONS.items():
            permissions = [_resolve(dotted) for dotted in dotted_permissions]
            if dry_run:
                self.stdout.write(f"{role}: {', '.join(dotted_permissions)}")
                continue

            group, created = Group.objects.get_or_create(name=role)
            group.permissions.set(permissions)
            label = "Created" if created else "Updated"
            self.stdout.write(self.style.SUCCESS(f"{label} {role} ({len(permissions)} permissions)"))

        if dry_run:
            self.stdout.write(self.style.WARNING("Dry run, no groups saved."))
