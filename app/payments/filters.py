"""django-filter FilterSets for staff payment and refund listings."""

import django_filters

from payments.models import Payment, Refund
from payments.state_machines import PaymentStatus, RefundSource, RefundStatus


class PaymentFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=PaymentStatus.choices)
    order = django_filters.UUIDFilter(field_name="order_id")
    order_number = django_filters.CharFilter(field_name="order__number", lookup_expr="icontains")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Payment
        fields = ["status", "order"]


class RefundFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=RefundStatus.choices)
    source = django_filters.ChoiceFilter(choices=RefundSource.choices)
    order = django_filters.UUIDFilter(field_name="order_id")
    is_manual = django_filters.BooleanFilter()
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Refund
        fields = ["status", "source", "order", "is_manual"]
