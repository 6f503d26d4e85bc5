"""
Staff roles and the model permissions each one grants.

Roles are Django groups. Views check the permissions, never the group, so a
user can hold several roles or individual permissions granted in the admin.
"""

ROLE_ORDER_MANAGER = "Order managers"
ROLE_RETURNS_MANAGER = "Returns managers"
ROLE_REFUND_MANAGER = "Refund managers"
ROLE_DROPSHIP_MANAGER = "Dropship managers"
ROLE_SUPPLIER_MANAGER = "Supplier managers"

ROLE_PERMISSIONS: dict[str, list[str]] = {
    ROLE_ORDER_MANAGER: ["orders.manage_orders"],
    ROLE_RETURNS_MANAGER: ["orders.manage_returns"],
    ROLE_REFUND_MANAGER: ["payments.manage_refunds", "payments.view_payment"],
    ROLE_DROPSHIP_MANAGER: ["dropshipping.manage_dropshipping"],
    ROLE_SUPPLIER_MANAGER: ["dropshipping.manage_dropshipping", "dropshipping.manage_suppliers"],
}
