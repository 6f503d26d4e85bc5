"""Signal receivers connected in DropshippingConfig.ready()."""

from django.conf import settings
from django.dispatch import receiver

from orders.signals import order_paid


@receiver(order_paid, dispatch_uid="dropshipping.create_dropship_orders")
def queue_dropship_orders(sender, order, **kwargs):
    """Split the paid order into supplier orders once payment settles."""
    from dropshipping.tasks import create_dropship_orders_for_order

    if not order.items.filter(product__is_dropship=True).exists():
        return
    create_dropship_orders_for_order.apply_async(
        args=[str(order.id)],
        countdown=settings.DROPSHIP_CREATE_DELAY_SECONDS,
    )
