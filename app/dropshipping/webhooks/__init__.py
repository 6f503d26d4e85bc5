"""
Supplier webhook intake and event handlers.

Usage:
    from dropshipping.webhooks.views import supplier_webhook

    urlpatterns = [
        path("webhooks/suppliers/<uuid:supplier_id>/", supplier_webhook, name="supplier_webhook"),
    ]
"""
