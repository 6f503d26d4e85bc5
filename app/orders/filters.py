"""django-filter FilterSets for staff order and return listings."""

import django_filters

from orders.models import Order, OrderReturn
from orders.states import FulfillmentStatus, OrderStatus, ReturnStatus


class OrderFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=OrderStatus.choices)
    fulfillment_status = django_filters.ChoiceFilter(choices=FulfillmentStatus.choices)
    user = django_filters.UUIDFilter(field_name="user_id")
    email = django_filters.CharFilter(field_name="user__email", lookup_expr="iexact")
    number = django_filters.CharFilter(lookup_expr="icontains")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["status", "fulfillment_status", "user"]


class OrderReturnFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=ReturnStatus.choices)
    order = django_filters.UUIDFilter(field_name="order_item__order_id")
    is_external = django_filters.BooleanFilter()

    class Meta:
        model = OrderReturn
        fields = ["status", "is_external"]
