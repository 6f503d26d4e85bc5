"""
Dropshipping app configuration.

Suppliers and their integrations, supplier catalog mappings, and the
supplier orders that fulfil dropship items of paid customer orders.
"""

from django.apps import AppConfig


class DropshippingConfig(AppConfig):
    """Configuration for the dropshipping application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "dropshipping"
    verbose_name = "Dropshipping"

    def ready(self):
        from dropshipping import receivers  # noqa: F401
