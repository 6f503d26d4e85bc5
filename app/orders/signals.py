"""
Order lifecycle signals.

Signals:
    order_paid: sent once the order's payment is confirmed and committed.
        kwargs: order

Receivers live in the consuming apps (dropshipping creates supplier orders,
notifications confirm the order to the customer).

Usage:
    from orders.signals import send_order_paid

    order.confirm_payment()
    order.save()
    send_order_paid(order)  # dispatched after the transaction commits
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

order_paid = Signal()


def send_order_paid(order) -> None:
    def _send():
        logger.info(f"Order {order.number} paid", extra={"order_id": str(order.id)})
        for receiver, response in order_paid.send_robust(sender=order.__class__, order=order):
            if isinstance(response, Exception):
                logger.error(
                    f"order_paid receiver {getattr(receiver, '__name__', receiver)} failed: {response}",
                    extra={"order_id": str(order.id)},
                    exc_info=response,
                )

    transaction.on_commit(_send)
