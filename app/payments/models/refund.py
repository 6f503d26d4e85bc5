"""
Refund model for money returned to customers.

A refund row exists for every refund the shop knows about, whether it was
issued through the API, confirmed by a webhook, entered by staff, or made
directly in the Stripe dashboard. Order and payment refund states are always
recomputed from the sum of ``refunded`` rows.

Usage:
    from payments.models import Refund

    refund = Refund.objects.create(
        order=order,
        payment=payment,
        order_return=order_return,
        amount_cents=2500,
        source=RefundSource.API,
    )
    refund.complete()  # pending -> refunded
    refund.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import RefundSource, RefundStatus


class Refund(UUIDPrimaryKeyMixin, BaseModel):
    """
    Money returned to a customer, optionally tied to an item return.

    State Flow:
        PENDING -> REFUNDED
        PENDING -> FAILED
        PENDING/REFUNDED -> CANCELLED

    Order-level refunds (dashboard refunds with no approved return) have no
    order_return and is_manual=True.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    order_return = models.ForeignKey(
        "orders.OrderReturn",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="refunds",
    )

    # ==========================================================================
    # Amount & State
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Refund amount in smallest currency unit (e.g., cents)",
    )
    status = FSMField(
        default=RefundStatus.PENDING,
        choices=RefundStatus.choices,
        db_index=True,
        protected=True,
    )
    source = models.CharField(
        max_length=20,
        choices=RefundSource.choices,
        default=RefundSource.API,
        db_index=True,
    )
    is_manual = models.BooleanField(
        default=False,
        help_text="Recorded after the fact rather than issued by the shop",
    )

    stripe_refund_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Refund ID (re_xxx)",
    )

    notes = models.TextField(blank=True)
    failure_reason = models.TextField(blank=True)

    processed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("manage_refunds", "Can process, record and cancel refunds"),
        ]
        indexes = [
            models.Index(fields=["order", "status"], name="refund_order_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount_cents__gt=0),
                name="refund_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Refund({self.id}, {self.status}, {self.amount_cents})"

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

    def add_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}".strip() if self.notes else note

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=RefundStatus.PENDING,
        target=RefundStatus.REFUNDED,
    )
    def complete(self):
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=RefundStatus.PENDING,
        target=RefundStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        self.failure_reason = reason or ""
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=[RefundStatus.PENDING, RefundStatus.REFUNDED],
        target=RefundStatus.CANCELLED,
    )
    def cancel(self):
        self.cancelled_at = timezone.now()
