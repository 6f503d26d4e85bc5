import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

import orders.models

ORDER_STATUS_CHOICES = [
    ("pending_payment", "Pending Payment"),
    ("confirmed", "Confirmed"),
    ("processing", "Processing"),
    ("shipped", "Shipped"),
    ("out_for_delivery", "Out for Delivery"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
    ("failed", "Failed"),
    ("on_hold", "On Hold"),
    ("partially_refunded", "Partially Refunded"),
    ("refunded", "Refunded"),
]

FULFILLMENT_STATUS_CHOICES = [
    ("unfulfilled", "Unfulfilled"),
    ("partially_fulfilled", "Partially Fulfilled"),
    ("fulfilled", "Fulfilled"),
    ("partially_shipped", "Partially Shipped"),
    ("shipped", "Shipped"),
    ("partially_delivered", "Partially Delivered"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
]

RETURN_STATUS_CHOICES = [
    ("requested", "Requested"),
    ("under_review", "Under Review"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("completed", "Completed"),
    ("pending", "Pending"),
]


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier (UUID4)",
            primary_key=True,
            serialize=False,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("name", models.CharField(max_length=255)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("description", models.TextField(blank=True)),
                ("price_cents", models.PositiveBigIntegerField(help_text="Retail price in smallest currency unit")),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("stock_quantity", models.IntegerField(default=0)),
                (
                    "is_dropship",
                    models.BooleanField(
                        default=False, help_text="Fulfilled by a supplier rather than from own stock"
                    ),
                ),
                ("is_virtual", models.BooleanField(default=False, help_text="No physical stock or shipping")),
                ("is_active", models.BooleanField(db_index=True, default=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "number",
                    models.CharField(
                        default=orders.models.generate_order_number, editable=False, max_length=32, unique=True
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=ORDER_STATUS_CHOICES,
                        db_index=True,
                        default="pending_payment",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "fulfillment_status",
                    models.CharField(
                        choices=FULFILLMENT_STATUS_CHOICES, db_index=True, default="unfulfilled", max_length=24
                    ),
                ),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("subtotal_cents", models.PositiveBigIntegerField(default=0)),
                ("shipping_cents", models.PositiveBigIntegerField(default=0)),
                ("total_cents", models.PositiveBigIntegerField(default=0)),
                (
                    "shipping_address",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="name, line1, line2, city, state, postal_code, country, phone",
                    ),
                ),
                (
                    "tracking_numbers",
                    models.JSONField(
                        blank=True, default=list, help_text="Tracking entries appended as supplier orders ship"
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "permissions": [("manage_orders", "Can manage customer orders")],
                "indexes": [models.Index(fields=["user", "status"], name="order_user_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("product_name", models.CharField(max_length=255)),
                ("sku", models.CharField(max_length=64)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("unit_price_cents", models.PositiveBigIntegerField()),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="orders.product",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderReturn",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("reason", models.TextField(blank=True)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=RETURN_STATUS_CHOICES,
                        db_index=True,
                        default="requested",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "is_external",
                    models.BooleanField(
                        default=False,
                        help_text="Created for a refund issued outside the shop (Stripe dashboard)",
                    ),
                ),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "order_item",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="order_return",
                        to="orders.orderitem",
                    ),
                ),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_returns",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "permissions": [("manage_returns", "Can review and process return requests")],
            },
        ),
    ]
