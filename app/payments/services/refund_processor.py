"""
RefundProcessor: refund and return reconciliation.

Every operation that creates, completes, fails or cancels a refund row
follows the same shape:

    1. Acquire refund_lock(order.id) so only one worker reconciles an order
    2. Mutate refund rows and returns inside a transaction
    3. Recompute order and payment status from the sum of refunded rows
    4. Notify the customer after commit (best effort)

Stripe is only called from refund_return, between two short transactions:
the pending row is committed first, the API call runs outside any
transaction, then the row is completed or failed.

Usage:
    from payments.services import RefundProcessor

    result = RefundProcessor.refund_return(order_return.id, actor=request.user)
    if not result.success:
        return Response(result.to_response(), status=422)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed, can_proceed

from core.services import BaseService, ServiceResult
from notifications import notify
from orders.models import Order, OrderReturn
from orders.states import OrderStatus, ReturnStatus
from payments.exceptions import InvalidStateTransitionError
from payments.locks import check_version, refund_lock
from payments.models import Payment, Refund
from payments.services.refund_gateway import StripeRefundGateway, refunded_total
from payments.state_machines import PaymentStatus, RefundSource, RefundStatus

if TYPE_CHECKING:
    from authentication.models import User


CANCELLABLE_REFUND_STATES = (RefundStatus.PENDING, RefundStatus.REFUNDED)


def cancel_match_window() -> timedelta:
    """Refunds this recent are candidates for a cancellation without refund id."""
    return timedelta(hours=getattr(settings, "REFUND_CANCELLATION_MATCH_WINDOW_HOURS", 48))


class RefundProcessor(BaseService):
    """
    Reconciles refunds, returns, orders and payments.

    Gateway mode (refund_return) issues the Stripe refund itself. Webhook and
    manual modes record refunds that already happened elsewhere.
    """

    gateway_class = StripeRefundGateway

    @classmethod
    def get_gateway(cls) -> StripeRefundGateway:
        return cls.gateway_class()

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def _get_order(order_id) -> Order | None:
        return Order.objects.filter(pk=order_id).first()

    @staticmethod
    def _get_payment(order: Order) -> Payment | None:
        return Payment.objects.filter(order=order).first()

    @staticmethod
    def approved_returns(order: Order) -> list[OrderReturn]:
        return list(
            OrderReturn.objects.select_related("order_item")
            .filter(order_item__order=order, status=ReturnStatus.APPROVED)
            .order_by("created_at")
        )

    @staticmethod
    def _order_not_found(order_id) -> ServiceResult:
        return ServiceResult.failure(f"Order {order_id} not found", error_code="NOT_FOUND")

    @staticmethod
    def _payment_not_found(order: Order) -> ServiceResult:
        return ServiceResult.failure(
            f"Order {order.number} has no payment",
            error_code="PAYMENT_NOT_FOUND",
        )

    # =========================================================================
    # Gateway mode
    # =========================================================================

    @classmethod
    def refund_return(
        cls,
        return_id,
        actor: User | None = None,
        *,
        skip_gateway: bool = False,
        notes: str | None = None,
        source: str = RefundSource.API,
    ) -> ServiceResult[Refund]:
        """
        Refund the item of an approved return.

        With skip_gateway the money is assumed to have moved already and
        only the bookkeeping runs.

        Error codes:
            NOT_FOUND: no such return
            RETURN_NOT_APPROVED: return is not in approved state
            PAYMENT_NOT_FOUND: order was never paid through Stripe
            REFUND_FAILED: the gateway rejected or Stripe failed the refund
        """
        logger = cls.get_logger()

        order_return = (
            OrderReturn.objects.select_related("order_item__order").filter(pk=return_id).first()
        )
        if order_return is None:
            return ServiceResult.failure(f"Return {return_id} not found", error_code="NOT_FOUND")

        order = order_return.order_item.order

        with refund_lock(order.id):
            order_return = OrderReturn.objects.select_related("order_item__order").get(
                pk=return_id
            )
            if not order_return.is_approved():
                return ServiceResult.failure(
                    f"Return must be approved before refunding (status {order_return.status})",
                    error_code="RETURN_NOT_APPROVED",
                )

            payment = cls._get_payment(order)
            if payment is None:
                return cls._payment_not_found(order)

            order_item = order_return.order_item
            amount_cents = order_item.refund_amount()
            actor_note = f"Processed by {actor.email}" if actor is not None else ""
            note = "\n".join(part for part in (notes, actor_note) if part)

            if skip_gateway:
                with cls.atomic():
                    refund = cls._finalise_return(
                        order_return,
                        payment,
                        amount_cents=amount_cents,
                        source=source,
                        notes=note,
                    )
                    cls.recalculate_order_status(order)
                    cls._notify_refund(refund)
                return ServiceResult.success(refund)

            if amount_cents <= 0:
                return ServiceResult.failure(
                    "Refund amount must be greater than zero",
                    error_code="REFUND_FAILED",
                )

            # Phase 1: commit the pending row before talking to Stripe
            with cls.atomic():
                refund = Refund.objects.create(
                    order=order,
                    payment=payment,
                    order_return=order_return,
                    amount_cents=amount_cents,
                    source=source,
                    notes=note,
                )

            gateway_result = cls.get_gateway().refund(order, order_item)

            # Phase 2: record the outcome
            with cls.atomic():
                refund = Refund.objects.select_for_update().get(pk=refund.pk)
                if not gateway_result.success:
                    refund.fail(gateway_result.reason)
                    refund.save()
                    logger.warning(
                        f"Refund for return {order_return.id} failed: {gateway_result.reason}",
                        extra={
                            "order_id": str(order.id),
                            "refund_id": str(refund.id),
                            "amount_cents": amount_cents,
                        },
                    )
                    return ServiceResult.failure(
                        gateway_result.reason or "Refund failed",
                        error_code="REFUND_FAILED",
                    )

                refund.stripe_refund_id = gateway_result.stripe_refund_id
                refund = cls._finalise_return(
                    order_return,
                    payment,
                    amount_cents=amount_cents,
                    source=source,
                    refund=refund,
                )
                cls.recalculate_order_status(order)
                cls._notify_refund(refund)

        logger.info(
            f"Refunded return {order_return.id} of order {order.number}",
            extra={
                "order_id": str(order.id),
                "refund_id": str(refund.id),
                "stripe_refund_id": refund.stripe_refund_id,
                "amount_cents": refund.amount_cents,
                "source": source,
            },
        )
        return ServiceResult.success(refund)

    # =========================================================================
    # Webhook and manual modes
    # =========================================================================

    @classmethod
    def refund_order_returns(
        cls,
        order_id,
        *,
        source: str = RefundSource.WEBHOOK,
        notes: str | None = None,
        stripe_refund_id: str | None = None,
    ) -> ServiceResult[list[Refund]]:
        """
        Finalise every approved return of an order without calling Stripe.

        stripe_refund_id is stored on the first row when given, so the
        matching charge.refunded / refund.updated events stay idempotent.
        """
        order = cls._get_order(order_id)
        if order is None:
            return cls._order_not_found(order_id)

        with refund_lock(order.id):
            returns = cls.approved_returns(order)
            if not returns:
                return ServiceResult.failure(
                    f"Order {order.number} has no approved returns",
                    error_code="NO_APPROVED_RETURNS",
                )

            payment = cls._get_payment(order)
            if payment is None:
                return cls._payment_not_found(order)

            refunds = []
            with cls.atomic():
                for index, order_return in enumerate(returns):
                    refunds.append(
                        cls._finalise_return(
                            order_return,
                            payment,
                            amount_cents=order_return.order_item.refund_amount(),
                            source=source,
                            notes=notes or "",
                            stripe_refund_id=stripe_refund_id if index == 0 else None,
                        )
                    )
                cls.recalculate_order_status(order)
                for refund in refunds:
                    cls._notify_refund(refund)

        cls.get_logger().info(
            f"Finalised {len(refunds)} returns of order {order.number}",
            extra={
                "order_id": str(order.id),
                "source": source,
                "amount_cents": sum(r.amount_cents for r in refunds),
            },
        )
        return ServiceResult.success(refunds)

    @classmethod
    def create_manual_refund(
        cls,
        order_id,
        amount_cents: int,
        notes: str = "",
        source: str = RefundSource.MANUAL,
    ) -> ServiceResult[list[Refund]]:
        """
        Record a refund made outside the shop against the approved returns.

        Each return takes its item's refund amount, capped by what is left;
        the last return takes the remainder. Returns whose share is zero are
        left approved.

        Error codes:
            NOT_FOUND, INVALID_AMOUNT, NO_APPROVED_RETURNS, PAYMENT_NOT_FOUND
        """
        if amount_cents <= 0:
            return ServiceResult.failure(
                "Refund amount must be greater than zero",
                error_code="INVALID_AMOUNT",
            )

        order = cls._get_order(order_id)
        if order is None:
            return cls._order_not_found(order_id)

        with refund_lock(order.id):
            returns = cls.approved_returns(order)
            if not returns:
                return ServiceResult.failure(
                    f"Order {order.number} has no approved returns",
                    error_code="NO_APPROVED_RETURNS",
                )

            payment = cls._get_payment(order)
            if payment is None:
                return cls._payment_not_found(order)

            refunds = []
            remaining = amount_cents
            with cls.atomic():
                for index, order_return in enumerate(returns):
                    is_last = index == len(returns) - 1
                    share = remaining if is_last else min(
                        order_return.order_item.refund_amount(), remaining
                    )
                    if share <= 0:
                        continue
                    remaining -= share
                    refunds.append(
                        cls._finalise_return(
                            order_return,
                            payment,
                            amount_cents=share,
                            source=source,
                            notes=notes,
                            is_manual=True,
                        )
                    )
                cls.recalculate_order_status(order)
                cls._notify_refund(refunds[0], amount_cents=amount_cents)

        cls.get_logger().info(
            f"Manual refund of {amount_cents} recorded for order {order.number}",
            extra={
                "order_id": str(order.id),
                "amount_cents": amount_cents,
                "refund_count": len(refunds),
                "source": source,
            },
        )
        return ServiceResult.success(refunds)

    @classmethod
    def record_external_refund(
        cls,
        order: Order,
        amount_cents: int,
        stripe_refund_id: str | None = None,
    ) -> ServiceResult[Refund]:
        """
        Record a Stripe dashboard refund that no approved return explains.

        When the amount equals the refund amount of exactly one item without
        a return, an external return is created for that item so the item
        shows as returned. Otherwise the row is order-level.
        """
        if amount_cents <= 0:
            return ServiceResult.failure(
                "Refund amount must be greater than zero",
                error_code="INVALID_AMOUNT",
            )

        with refund_lock(order.id):
            if stripe_refund_id and Refund.objects.filter(stripe_refund_id=stripe_refund_id).exists():
                return ServiceResult.failure(
                    f"Stripe refund {stripe_refund_id} already recorded",
                    error_code="DUPLICATE",
                )

            payment = cls._get_payment(order)
            if payment is None:
                cls.get_logger().warning(
                    f"External refund for order {order.number} without payment ignored",
                    extra={"order_id": str(order.id), "amount_cents": amount_cents},
                )
                return cls._payment_not_found(order)

            with cls.atomic():
                order_return = cls._external_return_for(order, amount_cents)
                refund = Refund.objects.create(
                    order=order,
                    payment=payment,
                    order_return=order_return,
                    amount_cents=amount_cents,
                    stripe_refund_id=stripe_refund_id,
                    source=RefundSource.STRIPE_DASHBOARD,
                    is_manual=True,
                    notes="Refund issued outside the shop",
                )
                refund.complete()
                refund.save()
                if order_return is not None:
                    order_return.complete()
                    order_return.save()
                cls.recalculate_order_status(order)
                cls._notify_refund(refund)

        cls.get_logger().info(
            f"External refund recorded for order {order.number}",
            extra={
                "order_id": str(order.id),
                "refund_id": str(refund.id),
                "stripe_refund_id": stripe_refund_id,
                "amount_cents": amount_cents,
                "return_id": str(order_return.id) if order_return else None,
            },
        )
        return ServiceResult.success(refund)

    @staticmethod
    def _external_return_for(order: Order, amount_cents: int) -> OrderReturn | None:
        candidates = [
            item
            for item in order.items.filter(order_return__isnull=True)
            if item.refund_amount() == amount_cents
        ]
        if len(candidates) != 1:
            return None
        return OrderReturn.objects.create(
            order_item=candidates[0],
            status=ReturnStatus.PENDING,
            is_external=True,
            reason="Refunded from the Stripe dashboard",
        )

    @classmethod
    def complete_pending_refund(
        cls,
        order: Order,
        stripe_refund_id: str,
        amount_cents: int | None = None,
    ) -> ServiceResult[Refund | None]:
        """
        Complete the pending refund Stripe reports as succeeded.

        A pending row without a Stripe id and the same amount is linked to
        the id first. An already refunded row is a no-op.
        """
        with refund_lock(order.id):
            with cls.atomic():
                refund = (
                    Refund.objects.select_for_update()
                    .filter(order=order, stripe_refund_id=stripe_refund_id)
                    .first()
                )
                if refund is None and amount_cents:
                    refund = (
                        Refund.objects.select_for_update()
                        .filter(
                            order=order,
                            status=RefundStatus.PENDING,
                            stripe_refund_id__isnull=True,
                            amount_cents=amount_cents,
                        )
                        .order_by("-created_at")
                        .first()
                    )
                    if refund is not None:
                        refund.stripe_refund_id = stripe_refund_id

                if refund is None:
                    return ServiceResult.failure(
                        f"No refund for Stripe refund {stripe_refund_id}",
                        error_code="REFUND_NOT_FOUND",
                    )
                if refund.status != RefundStatus.PENDING:
                    return ServiceResult.success(refund)

                refund.complete()
                refund.save()
                order_return = refund.order_return
                if order_return is not None and order_return.status in (
                    ReturnStatus.APPROVED,
                    ReturnStatus.PENDING,
                ):
                    order_return.complete()
                    order_return.save()
                cls.recalculate_order_status(order)
                cls._notify_refund(refund)

        return ServiceResult.success(refund)

    # =========================================================================
    # Cancellation and failure
    # =========================================================================

    @classmethod
    def cancel_refund(
        cls,
        order_id,
        amount_cents: int,
        stripe_refund_id: str | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Cancel the refund Stripe reports as canceled.

        Matching order: the row with stripe_refund_id, then the newest
        refunded/pending row of the last 48h with the same amount, then the
        newest of those rows. Recalculation runs even when nothing matches.
        """
        order = cls._get_order(order_id)
        if order is None:
            return cls._order_not_found(order_id)

        with refund_lock(order.id):
            with cls.atomic():
                if stripe_refund_id:
                    existing = Refund.objects.filter(
                        order=order, stripe_refund_id=stripe_refund_id
                    ).first()
                    if existing is not None and existing.status == RefundStatus.CANCELLED:
                        return ServiceResult.success({"refund": existing, "cancelled": False})

                refund = cls._find_refund_to_cancel(order, amount_cents, stripe_refund_id)
                if refund is None:
                    cls.recalculate_order_status(order)
                    return ServiceResult.failure(
                        f"No refund to cancel for order {order.number}",
                        error_code="REFUND_NOT_FOUND",
                    )

                cls._cancel(refund, "Refund cancelled in Stripe")
                cls.recalculate_order_status(order)

        return ServiceResult.success({"refund": refund, "cancelled": True})

    @classmethod
    def cancel_refund_by_id(
        cls,
        refund_id,
        expected_version: int | None = None,
        actor: User | None = None,
    ) -> ServiceResult[Refund]:
        """
        Staff cancellation of one refund row.

        With expected_version the row must not have changed since the caller
        read it (StaleRecordError otherwise). Only local bookkeeping changes;
        the money is not pulled back from the customer.
        """
        refund = Refund.objects.select_related("order").filter(pk=refund_id).first()
        if refund is None:
            return ServiceResult.failure(f"Refund {refund_id} not found", error_code="NOT_FOUND")

        order = refund.order
        with refund_lock(order.id):
            with cls.atomic():
                if expected_version is not None:
                    refund = check_version(Refund, refund_id, expected_version)
                else:
                    refund = Refund.objects.select_for_update().get(pk=refund_id)

                note = f"Cancelled by {actor.email}" if actor is not None else "Cancelled by staff"
                try:
                    cls._cancel(refund, note)
                except InvalidStateTransitionError as e:
                    return ServiceResult.failure(e.message, error_code="REFUND_NOT_CANCELLABLE")
                cls.recalculate_order_status(order)

        return ServiceResult.success(refund)

    @classmethod
    def fail_refund(cls, order_id, reason: str) -> ServiceResult[list[Refund]]:
        """Fail every pending refund of an order and reopen their returns."""
        order = cls._get_order(order_id)
        if order is None:
            return cls._order_not_found(order_id)

        with refund_lock(order.id):
            with cls.atomic():
                pending = list(
                    Refund.objects.select_for_update()
                    .select_related("order_return")
                    .filter(order=order, status=RefundStatus.PENDING)
                )
                if not pending:
                    return ServiceResult.failure(
                        f"Order {order.number} has no pending refunds",
                        error_code="NO_PENDING_REFUNDS",
                    )

                for refund in pending:
                    refund.fail(reason)
                    refund.save()
                    cls._revert_return(refund.order_return)
                cls.recalculate_order_status(order)

        cls.get_logger().warning(
            f"Failed {len(pending)} pending refunds of order {order.number}: {reason}",
            extra={"order_id": str(order.id), "refund_count": len(pending)},
        )
        return ServiceResult.success(pending)

    @staticmethod
    def _find_refund_to_cancel(
        order: Order,
        amount_cents: int,
        stripe_refund_id: str | None,
    ) -> Refund | None:
        candidates = Refund.objects.select_for_update().filter(
            order=order, status__in=CANCELLABLE_REFUND_STATES
        )
        if stripe_refund_id:
            refund = candidates.filter(stripe_refund_id=stripe_refund_id).first()
            if refund is not None:
                return refund

        recent = candidates.filter(
            created_at__gte=timezone.now() - cancel_match_window()
        ).order_by("-created_at")
        return recent.filter(amount_cents=amount_cents).first() or recent.first()

    @classmethod
    def _cancel(cls, refund: Refund, note: str) -> None:
        try:
            refund.cancel()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Refund in status {refund.status} cannot be cancelled",
                details={"current_state": refund.status, "transition": "cancel"},
            ) from None
        refund.add_note(note)
        refund.save()
        cls._revert_return(refund.order_return)
        cls.get_logger().info(
            f"Refund {refund.id} cancelled",
            extra={
                "refund_id": str(refund.id),
                "order_id": str(refund.order_id),
                "amount_cents": refund.amount_cents,
            },
        )

    @staticmethod
    def _revert_return(order_return: OrderReturn | None) -> None:
        """Completed returns become refundable again (external ones pending)."""
        if order_return is None:
            return
        order_return = OrderReturn.objects.get(pk=order_return.pk)
        if order_return.status == ReturnStatus.COMPLETED:
            order_return.reopen()
            order_return.save()

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def recalculate_order_status(cls, order: Order) -> ServiceResult[dict[str, Any]]:
        """
        Recompute order and payment status from refunded rows.

        Full refund (by amount or every item refunded) -> refunded,
        some refund -> partially_refunded, none -> confirmed/paid (cancelled
        for orders cancelled before the refund) but only when currently in a
        refund state.
        """
        logger = cls.get_logger()

        with cls.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            payment = Payment.objects.select_for_update().filter(order=order).first()
            if payment is None:
                logger.warning(
                    f"Cannot recalculate order {order.number}: no payment",
                    extra={"order_id": str(order.id)},
                )
                return ServiceResult.failure(
                    f"Order {order.number} has no payment",
                    error_code="PAYMENT_NOT_FOUND",
                )

            total = refunded_total(order)
            item_ids = set(order.items.values_list("id", flat=True))
            refunded_item_ids = set(
                Refund.objects.filter(
                    order=order,
                    status=RefundStatus.REFUNDED,
                    order_return__isnull=False,
                ).values_list("order_return__order_item_id", flat=True)
            )
            full_by_amount = total >= payment.amount_cents
            full_by_items = bool(item_ids) and item_ids <= refunded_item_ids

            before = {"order_status": order.status, "payment_status": payment.status}

            if total > 0 and (full_by_amount or full_by_items):
                order_target, payment_target = OrderStatus.REFUNDED, PaymentStatus.REFUNDED
            elif total > 0:
                order_target = OrderStatus.PARTIALLY_REFUNDED
                payment_target = PaymentStatus.PARTIALLY_REFUNDED
            else:
                order_target = order.status
                if order.status in OrderStatus.refund_states():
                    order_target = (
                        OrderStatus.CANCELLED if order.cancelled_at else OrderStatus.CONFIRMED
                    )
                payment_target = (
                    PaymentStatus.PAID
                    if payment.status in PaymentStatus.refund_states()
                    else payment.status
                )

            cls._apply(order, order_target, OrderStatus.refund_source_states())
            cls._apply(payment, payment_target, PaymentStatus.refundable_states() + [PaymentStatus.REFUNDED])

            after = {"order_status": order.status, "payment_status": payment.status}

        logger.info(
            f"Recalculated refund status of order {order.number}",
            extra={
                "order_id": str(order.id),
                "refunded_cents": total,
                "payment_amount_cents": payment.amount_cents,
                "before": before,
                "after": after,
            },
        )
        return ServiceResult.success(
            {
                "order": order,
                "payment": payment,
                "refunded_cents": total,
                "changed": before != after,
            }
        )

    @classmethod
    def recalculate(cls, order_id) -> ServiceResult[dict[str, Any]]:
        """Locked entry point for staff-triggered recalculation."""
        order = cls._get_order(order_id)
        if order is None:
            return cls._order_not_found(order_id)
        with refund_lock(order.id):
            return cls.recalculate_order_status(order)

    @classmethod
    def _apply(cls, instance: Order | Payment, target: str, allowed_sources: list[str]) -> None:
        if instance.status == target:
            return
        if instance.status not in allowed_sources or not can_proceed(
            instance.apply_refund_status
        ):
            cls.get_logger().warning(
                f"{instance.__class__.__name__} {instance.pk} in status {instance.status} "
                f"cannot move to {target}",
                extra={"pk": str(instance.pk), "target": target},
            )
            return
        instance.apply_refund_status(target)
        instance.save()

    # =========================================================================
    # Internals
    # =========================================================================

    @classmethod
    def _finalise_return(
        cls,
        order_return: OrderReturn,
        payment: Payment,
        *,
        amount_cents: int,
        source: str,
        notes: str = "",
        refund: Refund | None = None,
        stripe_refund_id: str | None = None,
        is_manual: bool = False,
    ) -> Refund:
        """
        Complete a refund row for the return and mark the return completed.

        A pending row already linked to the return is reused, so a webhook
        arriving after a gateway refund does not count the money twice.
        A manual refund takes over such a row with the amount staff entered.
        """
        if refund is None:
            refund = (
                Refund.objects.select_for_update()
                .filter(order_return=order_return, status=RefundStatus.PENDING)
                .first()
            )
            if refund is not None and is_manual:
                refund.amount_cents = amount_cents
                refund.source = source
                refund.is_manual = True
        if refund is None:
            refund = Refund.objects.create(
                order=payment.order,
                payment=payment,
                order_return=order_return,
                amount_cents=amount_cents,
                source=source,
                is_manual=is_manual,
            )

        if stripe_refund_id and not refund.stripe_refund_id:
            refund.stripe_refund_id = stripe_refund_id
        if notes:
            refund.add_note(notes)
        refund.complete()
        refund.save()

        order_return = OrderReturn.objects.get(pk=order_return.pk)
        if order_return.status != ReturnStatus.COMPLETED:
            order_return.complete()
            order_return.save()
        return refund

    @staticmethod
    def _notify_refund(refund: Refund, amount_cents: int | None = None) -> None:
        transaction.on_commit(lambda: notify.refund_processed(refund, amount_cents=amount_cents))
