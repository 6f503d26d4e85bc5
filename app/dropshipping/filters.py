"""django-filter FilterSets for staff dropshipping listings."""

import django_filters
from django.db.models import Q

from dropshipping.models import DropshipOrder, Supplier, SupplierProduct
from dropshipping.states import DropshipStatus, IntegrationType, SupplierStatus


class DropshipOrderFilter(django_filters.FilterSet):
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    status = django_filters.MultipleChoiceFilter(choices=DropshipStatus.choices)
    order = django_filters.UUIDFilter(field_name="order_id")
    search = django_filters.CharFilter(method="filter_search")
    date_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    date_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    overdue = django_filters.BooleanFilter(method="filter_overdue")
    needs_retry = django_filters.BooleanFilter(method="filter_needs_retry")

    class Meta:
        model = DropshipOrder
        fields = ["supplier", "status", "order"]

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(order__number__icontains=value)
            | Q(supplier_order_id__icontains=value)
            | Q(tracking_number__icontains=value)
            | Q(order__user__email__icontains=value)
        )

    def filter_overdue(self, queryset, name, value):
        overdue = DropshipOrder.objects.overdue().values("pk")
        return queryset.filter(pk__in=overdue) if value else queryset.exclude(pk__in=overdue)

    def filter_needs_retry(self, queryset, name, value):
        retryable = DropshipOrder.objects.needs_retry().values("pk")
        return queryset.filter(pk__in=retryable) if value else queryset.exclude(pk__in=retryable)


class SupplierFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=SupplierStatus.choices)
    integration_type = django_filters.ChoiceFilter(choices=IntegrationType.choices)
    name = django_filters.CharFilter(lookup_expr="icontains")

    class Meta:
        model = Supplier
        fields = ["status", "integration_type", "auto_fulfill"]


class SupplierProductFilter(django_filters.FilterSet):
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    sku = django_filters.CharFilter(field_name="supplier_sku", lookup_expr="icontains")
    in_stock = django_filters.BooleanFilter(method="filter_in_stock")

    class Meta:
        model = SupplierProduct
        fields = ["supplier", "is_active"]

    def filter_in_stock(self, queryset, name, value):
        return queryset.filter(stock_quantity__gt=0) if value else queryset.filter(stock_quantity__lte=0)
