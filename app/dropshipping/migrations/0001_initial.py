import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models

SUPPLIER_STATUS_CHOICES = [
    ("active", "Active"),
    ("inactive", "Inactive"),
    ("suspended", "Suspended"),
]

INTEGRATION_TYPE_CHOICES = [
    ("api", "API"),
    ("webhook", "Webhook"),
    ("email", "Email"),
    ("manual", "Manual"),
]

DROPSHIP_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("sent_to_supplier", "Sent to Supplier"),
    ("confirmed_by_supplier", "Confirmed by Supplier"),
    ("processing", "Processing"),
    ("shipped_by_supplier", "Shipped by Supplier"),
    ("out_for_delivery", "Out for Delivery"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
    ("rejected_by_supplier", "Rejected by Supplier"),
    ("on_hold", "On Hold"),
]

WEBHOOK_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processed", "Processed"),
    ("ignored", "Ignored"),
    ("failed", "Failed"),
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
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Supplier",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("name", models.CharField(max_length=255, unique=True)),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(blank=True, max_length=32)),
                ("contact_person", models.CharField(blank=True, max_length=255)),
                ("country", models.CharField(blank=True, max_length=2)),
                (
                    "status",
                    models.CharField(choices=SUPPLIER_STATUS_CHOICES, db_index=True, default="active", max_length=20),
                ),
                (
                    "integration_type",
                    models.CharField(choices=INTEGRATION_TYPE_CHOICES, default="manual", max_length=20),
                ),
                (
                    "processing_time_days",
                    models.PositiveSmallIntegerField(default=3, help_text="Typical days between order and delivery"),
                ),
                (
                    "auto_fulfill",
                    models.BooleanField(
                        default=False, help_text="Send orders to the supplier as soon as they are created"
                    ),
                ),
                ("stock_sync_enabled", models.BooleanField(default=False)),
                ("minimum_order_value_cents", models.PositiveBigIntegerField(default=0)),
                ("maximum_order_value_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("supported_countries", models.JSONField(blank=True, default=list)),
                ("notes", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["name"],
                "permissions": [("manage_suppliers", "Can manage suppliers, integrations and supplier catalogs")],
            },
        ),
        migrations.CreateModel(
            name="SupplierIntegration",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("integration_type", models.CharField(choices=INTEGRATION_TYPE_CHOICES, max_length=20)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("api_endpoint", models.URLField(blank=True)),
                ("api_key", models.CharField(blank=True, max_length=255)),
                ("webhook_url", models.URLField(blank=True)),
                ("webhook_secret", models.CharField(blank=True, max_length=255)),
                ("email_address", models.EmailField(blank=True, max_length=254)),
                (
                    "configuration",
                    models.JSONField(blank=True, default=dict, help_text='Extra options, e.g. {"timeout": 15}'),
                ),
                ("last_success_at", models.DateTimeField(blank=True, null=True)),
                ("last_failure_at", models.DateTimeField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True)),
                ("consecutive_failures", models.PositiveIntegerField(default=0)),
                ("total_requests", models.PositiveIntegerField(default=0)),
                ("failed_requests", models.PositiveIntegerField(default=0)),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="integrations",
                        to="dropshipping.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["supplier__name", "integration_type"],
            },
        ),
        migrations.CreateModel(
            name="SupplierProduct",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("supplier_sku", models.CharField(max_length=100)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("cost_price_cents", models.PositiveBigIntegerField()),
                ("stock_quantity", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("last_synced_at", models.DateTimeField(blank=True, null=True)),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="products",
                        to="dropshipping.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["supplier__name", "supplier_sku"],
                "constraints": [
                    models.UniqueConstraint(fields=("supplier", "supplier_sku"), name="unique_supplier_sku"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductSupplierMapping",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("is_active", models.BooleanField(default=True)),
                ("priority", models.PositiveSmallIntegerField(default=1)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="supplier_mappings",
                        to="orders.product",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mappings",
                        to="dropshipping.supplier",
                    ),
                ),
                (
                    "supplier_product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mappings",
                        to="dropshipping.supplierproduct",
                    ),
                ),
            ],
            options={
                "ordering": ["priority", "created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "supplier_product"), name="unique_product_supplier_product"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DropshipOrder",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("supplier_order_id", models.CharField(blank=True, db_index=True, max_length=255)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=DROPSHIP_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("total_cost_cents", models.PositiveBigIntegerField(default=0)),
                ("total_retail_cents", models.PositiveBigIntegerField(default=0)),
                ("profit_margin_cents", models.BigIntegerField(default=0)),
                ("shipping_address", models.JSONField(blank=True, default=dict)),
                ("tracking_number", models.CharField(blank=True, max_length=100)),
                ("carrier", models.CharField(blank=True, max_length=100)),
                ("estimated_delivery", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("sent_to_supplier_at", models.DateTimeField(blank=True, null=True)),
                ("confirmed_by_supplier_at", models.DateTimeField(blank=True, null=True)),
                ("shipped_by_supplier_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("overdue_flagged_at", models.DateTimeField(blank=True, null=True)),
                ("supplier_response", models.JSONField(blank=True, default=dict)),
                ("supplier_notes", models.TextField(blank=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
                ("last_retry_at", models.DateTimeField(blank=True, null=True)),
                ("auto_retry_enabled", models.BooleanField(default=True)),
                ("webhook_data", models.JSONField(blank=True, default=dict)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="dropship_orders",
                        to="orders.order",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="dropship_orders",
                        to="dropshipping.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "permissions": [("manage_dropshipping", "Can manage suppliers and supplier orders")],
                "indexes": [
                    models.Index(fields=["status", "estimated_delivery"], name="dropship_status_eta_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("order", "supplier"), name="unique_order_supplier"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DropshipOrderItem",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("supplier_sku", models.CharField(max_length=100)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("supplier_price_cents", models.PositiveBigIntegerField()),
                ("retail_price_cents", models.PositiveBigIntegerField()),
                ("profit_per_item_cents", models.BigIntegerField(default=0)),
                ("product_details", models.JSONField(blank=True, default=dict)),
                (
                    "dropship_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="dropshipping.dropshiporder",
                    ),
                ),
                (
                    "order_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="dropship_items",
                        to="orders.orderitem",
                    ),
                ),
                (
                    "supplier_product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="dropship_items",
                        to="dropshipping.supplierproduct",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="SupplierWebhookEvent",
            fields=[
                *timestamps(),
                uuid_pk(),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                ("payload", models.JSONField()),
                (
                    "status",
                    models.CharField(choices=WEBHOOK_STATUS_CHOICES, db_index=True, default="pending", max_length=20),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="webhook_events",
                        to="dropshipping.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["supplier", "status"], name="supplier_webhook_status_idx"),
                ],
            },
        ),
    ]
