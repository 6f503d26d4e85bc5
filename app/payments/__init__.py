"""
Payments app for Stripe integration.

This app handles:
- PaymentIntent creation and confirmation for orders
- Refunds for approved returns, manual and dashboard refunds
- Order and payment status reconciliation from refund rows
- Asynchronous Stripe webhook processing

Related apps:
    - orders: Order, OrderItem and OrderReturn being paid and refunded
    - notifications: Refund processed messages to customers

Usage:
    from payments.services import PaymentService, RefundProcessor

    PaymentService.create_payment_for_order(order)
    RefundProcessor.refund_return(order_return.id, actor=request.user)
"""
