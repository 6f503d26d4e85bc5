"""Signal receivers connected in NotificationsConfig.ready()."""

from django.dispatch import receiver

from notifications import notify
from orders.signals import order_paid


@receiver(order_paid, dispatch_uid="notifications.order_confirmed")
def notify_order_confirmed(sender, order, **kwargs):
    notify.order_confirmed(order)
