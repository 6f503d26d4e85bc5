"""
Role-based permissions for staff endpoints.

Roles are Django groups holding model permissions such as
``payments.manage_refunds`` or ``dropshipping.manage_dropshipping``. A view
declares the permission it needs and HasModelPermission checks it.

Usage:
    class RefundAdminViewSet(viewsets.GenericViewSet):
        permission_classes = [IsAuthenticated, HasModelPermission]
        required_permission = "payments.manage_refunds"
"""

from __future__ import annotations

from rest_framework.permissions import BasePermission


class HasModelPermission(BasePermission):
    """
    Grant access when the user holds the view's ``required_permission``.

    A view may instead define ``required_permissions`` as a mapping of
    action name to permission, with ``"*"`` as the fallback.
    """

    message = "You do not have permission to perform this action."

    def get_required_permission(self, view) -> str | None:
        mapping = getattr(view, "required_permissions", None)
        if mapping:
            action = getattr(view, "action", None)
            return mapping.get(action, mapping.get("*"))
        return getattr(view, "required_permission", None)

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        permission = self.get_required_permission(view)
        if permission is None:
            return bool(user.is_superuser)
        return user.has_perm(permission)
