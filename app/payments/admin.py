"""
Payment admin configuration.

Status fields are FSM-protected and change only through the services, so
they are read-only here.
"""

from django.contrib import admin

from payments.models import Payment, Refund, WebhookEvent
from payments.state_machines import WebhookEventStatus


class RefundInline(admin.TabularInline):
    model = Refund
    fk_name = "payment"
    extra = 0
    can_delete = False
    fields = ["id", "amount_cents", "status", "source", "stripe_refund_id", "processed_at"]
    readonly_fields = fields
    show_change_link = True

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "order",
        "amount_cents",
        "currency",
        "status",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["id", "stripe_payment_intent_id", "stripe_charge_id", "order__number"]
    raw_id_fields = ["order"]
    readonly_fields = [
        "id",
        "status",
        "stripe_payment_intent_id",
        "stripe_charge_id",
        "processed_at",
        "response_payload",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [RefundInline]


@admin.register(Refund)
class RefundAdmin(admin.ModelAdmin):
    """
    Admin configuration for Refund.

    Refund rows are bookkeeping; corrections go through the staff API so
    order and payment status stay reconciled.
    """

    list_display = [
        "id",
        "order",
        "amount_cents",
        "status",
        "source",
        "is_manual",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "source", "is_manual", "created_at"]
    search_fields = ["id", "stripe_refund_id", "order__number", "notes"]
    raw_id_fields = ["order", "payment", "order_return"]
    readonly_fields = [
        "id",
        "status",
        "processed_at",
        "cancelled_at",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "order", "payment", "order_return", "status")}),
        ("Amount", {"fields": ("amount_cents", "source", "is_manual", "stripe_refund_id")}),
        ("Status Timestamps", {"fields": ("processed_at", "cancelled_at")}),
        ("Notes", {"fields": ("notes", "failure_reason"), "classes": ("collapse",)}),
        ("Metadata", {"fields": ("version", "created_at", "updated_at")}),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received. The retry action resets
    failed events so the next retry_failed_webhooks run picks them up.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "attempts",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_events"]

    fieldsets = (
        (None, {"fields": ("id", "stripe_event_id", "event_type", "status")}),
        ("Processing", {"fields": ("processed_at", "attempts")}),
        ("Error Info", {"fields": ("error_message",), "classes": ("collapse",)}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        return False

    @admin.action(description="Queue selected events for processing")
    def requeue_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        queued = 0
        for webhook_event in queryset.exclude(status=WebhookEventStatus.PROCESSED):
            process_webhook_event.delay(str(webhook_event.id))
            queued += 1
        self.message_user(request, f"Queued {queued} webhook event(s).")
