import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("paid", "Paid"),
    ("failed", "Failed"),
    ("partially_refunded", "Partially Refunded"),
    ("refunded", "Refunded"),
    ("cancelled", "Cancelled"),
]

REFUND_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
    ("cancelled", "Cancelled"),
]

REFUND_SOURCE_CHOICES = [
    ("api", "API"),
    ("webhook", "Webhook"),
    ("manual", "Manual"),
    ("stripe_dashboard", "Stripe Dashboard"),
]

WEBHOOK_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("processed", "Processed"),
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


def version_field():
    return (
        "version",
        models.PositiveIntegerField(
            default=1, help_text="Version for optimistic locking - incremented on each save"
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "stripe_payment_intent_id",
                    models.CharField(help_text="Stripe PaymentIntent ID (pi_xxx)", max_length=255, unique=True),
                ),
                (
                    "stripe_charge_id",
                    models.CharField(
                        blank=True, db_index=True, help_text="Stripe Charge ID (ch_xxx), set when paid", max_length=255
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Amount charged in smallest currency unit"),
                ),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=PAYMENT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "response_payload",
                    models.JSONField(
                        blank=True, default=dict, help_text="Last PaymentIntent payload received from Stripe"
                    ),
                ),
                ("failure_code", models.CharField(blank=True, max_length=100)),
                ("failure_message", models.TextField(blank=True)),
                version_field(),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(amount_cents__gt=0), name="payment_amount_positive"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Refund amount in smallest currency unit (e.g., cents)"
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=REFUND_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=REFUND_SOURCE_CHOICES, db_index=True, default="api", max_length=20
                    ),
                ),
                (
                    "is_manual",
                    models.BooleanField(
                        default=False, help_text="Recorded after the fact rather than issued by the shop"
                    ),
                ),
                (
                    "stripe_refund_id",
                    models.CharField(
                        blank=True, help_text="Stripe Refund ID (re_xxx)", max_length=255, null=True, unique=True
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("failure_reason", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                version_field(),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="orders.order",
                    ),
                ),
                (
                    "order_return",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="refunds",
                        to="orders.orderreturn",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "permissions": [("manage_refunds", "Can process, record and cancel refunds")],
                "indexes": [models.Index(fields=["order", "status"], name="refund_order_status_idx")],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(amount_cents__gt=0), name="refund_amount_positive"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *timestamps(),
                uuid_pk(),
                (
                    "stripe_event_id",
                    models.CharField(help_text="Stripe Event ID (evt_xxx)", max_length=255, unique=True),
                ),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                ("payload", models.JSONField(help_text="Full event payload from Stripe")),
                (
                    "status",
                    models.CharField(
                        choices=WEBHOOK_STATUS_CHOICES, db_index=True, default="pending", max_length=20
                    ),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "attempts"], name="webhook_status_attempts_idx")
                ],
            },
        ),
    ]
