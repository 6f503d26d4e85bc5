"""
Tests for the seed_roles management command.
"""

from io import StringIO

import pytest
from django.contrib.auth.models import Group
from django.core.management import call_command

from authentication.roles import ROLE_PERMISSIONS, ROLE_REFUND_MANAGER, ROLE_SUPPLIER_MANAGER
from authentication.tests.factories import UserFactory


def run(*args):
    out = StringIO()
    call_command("seed_roles", *args, stdout=out)
    return out.getvalue()


def permission_names(group):
    return sorted(f"{p.content_type.app_label}.{p.codename}" for p in group.permissions.all())


@pytest.mark.django_db
class TestSeedRoles:
    def test_creates_every_role_with_its_permissions(self):
        output = run()

        assert Group.objects.count() == len(ROLE_PERMISSIONS)
        for role, permissions in ROLE_PERMISSIONS.items():
            assert permission_names(Group.objects.get(name=role)) == sorted(permissions)
            assert f"Created {role}" in output

    def test_rerun_updates_instead_of_duplicating(self):
        run()
        refund_managers = Group.objects.get(name=ROLE_REFUND_MANAGER)
        refund_managers.permissions.clear()

        output = run()

        assert Group.objects.count() == len(ROLE_PERMISSIONS)
        assert permission_names(refund_managers) == ["payments.manage_refunds", "payments.view_payment"]
        assert f"Updated {ROLE_REFUND_MANAGER}" in output

    def test_dry_run_saves_nothing(self):
        output = run("--dry-run")

        assert Group.objects.count() == 0
        assert "dropshipping.manage_suppliers" in output
        assert "Dry run" in output

    def test_group_membership_grants_permissions(self):
        run()
        member = UserFactory(is_staff=True)
        member.groups.add(Group.objects.get(name=ROLE_SUPPLIER_MANAGER))

        assert member.has_perm("dropshipping.manage_suppliers")
        assert member.has_perm("dropshipping.manage_dropshipping")
        assert not member.has_perm("payments.manage_refunds")
