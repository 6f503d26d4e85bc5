"""
Payment model: one Stripe PaymentIntent per order.

Usage:
    from payments.models import Payment

    payment = Payment.objects.create(
        order=order,
        stripe_payment_intent_id=intent.id,
        amount_cents=order.total_cents,
        currency=order.currency,
    )

    payment.mark_paid(charge_id="ch_123")  # pending -> paid
    payment.save()

Note:
    status is a protected django-fsm field. Refund states are never set
    directly; RefundProcessor recomputes them from refund rows and applies
    them through apply_refund_status().
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Money collected for an order through Stripe.

    State Flow:
        PENDING -> PAID
        PENDING -> FAILED -> PAID (customer retried)
        PENDING -> CANCELLED
        PAID/PARTIALLY_REFUNDED/REFUNDED -> reconciled refund state
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )
    stripe_charge_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Stripe Charge ID (ch_xxx), set when paid",
    )

    # ==========================================================================
    # Amount & State
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Amount charged in smallest currency unit",
    )
    currency = models.CharField(max_length=3, default="usd")
    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)

    response_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last PaymentIntent payload received from Stripe",
    )
    failure_code = models.CharField(max_length=100, blank=True)
    failure_message = models.TextField(blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount_cents__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.stripe_payment_intent_id}, {self.status})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def is_refundable(self) -> bool:
        return self.status in PaymentStatus.refundable_states()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.FAILED],
        target=PaymentStatus.PAID,
    )
    def mark_paid(self, charge_id: str = ""):
        self.processed_at = timezone.now()
        if charge_id:
            self.stripe_charge_id = charge_id
        self.failure_code = ""
        self.failure_message = ""

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def mark_failed(self, code: str = "", message: str = ""):
        self.failure_code = code or ""
        self.failure_message = message or ""

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.CANCELLED,
    )
    def cancel(self):
        pass

    @transition(
        field=status,
        source=[
            PaymentStatus.PAID,
            PaymentStatus.PARTIALLY_REFUNDED,
            PaymentStatus.REFUNDED,
        ],
        target=RETURN_VALUE(
            PaymentStatus.PAID,
            PaymentStatus.PARTIALLY_REFUNDED,
            PaymentStatus.REFUNDED,
        ),
    )
    def apply_refund_status(self, status):
        """Transition: paid states -> reconciled PAID / PARTIALLY_REFUNDED / REFUNDED"""
        return status
