from django.db import migrations

NOTIFICATION_TYPES = [
    {
        "key": "order_confirmed",
        "display_name": "Order confirmed",
        "title_template": "Order {order_number} confirmed",
        "body_template": "Thanks for your order. We received your payment of {total}.",
        "supports_email": True,
        "supports_sms": False,
        "supports_in_app": True,
    },
    {
        "key": "return_status_changed",
        "display_name": "Return status changed",
        "title_template": "Return update for order {order_number}",
        "body_template": "Your return for {product_name} is now {status}.",
        "supports_email": True,
        "supports_sms": False,
        "supports_in_app": True,
    },
    {
        "key": "refund_processed",
        "display_name": "Refund processed",
        "title_template": "Refund processed for order {order_number}",
        "body_template": "We refunded {amount} to your original payment method.",
        "supports_email": True,
        "supports_sms": True,
        "supports_in_app": True,
    },
    {
        "key": "dropship_order_shipped",
        "display_name": "Order shipped",
        "title_template": "Your order {order_number} has shipped",
        "body_template": "Shipped with {carrier}. Tracking number: {tracking_number}.",
        "supports_email": True,
        "supports_sms": True,
        "supports_in_app": True,
    },
    {
        "key": "dropship_order_confirmed",
        "display_name": "Order confirmed by supplier",
        "title_template": "Your order {order_number} is being prepared",
        "body_template": "Our fulfilment partner confirmed your order and is preparing it for shipment.",
        "supports_email": False,
        "supports_sms": False,
        "supports_in_app": True,
    },
]


def seed_notification_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    for definition in NOTIFICATION_TYPES:
        values = dict(definition)
        key = values.pop("key")
        NotificationType.objects.update_or_create(
            key=key,
            defaults={**values, "category": "transactional", "is_active": True},
        )


def remove_notification_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    NotificationType.objects.filter(key__in=[t["key"] for t in NOTIFICATION_TYPES]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_notification_types, remove_notification_types),
    ]
