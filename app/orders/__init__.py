"""
Orders application.

Catalog products, customer orders and per-item return requests.

Key components:
    - Product, Order, OrderItem, OrderReturn models
    - CheckoutService: order creation with a Stripe PaymentIntent
    - OrderService: cancellation with stock restoration
    - ReturnService: customer return requests and staff review
    - order_paid signal: fired once payment is confirmed

Usage:
    from orders.services import CheckoutService, ReturnService
"""
