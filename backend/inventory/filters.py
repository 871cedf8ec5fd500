import django_filters
from django.db.models import F, Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for Product model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.ChoiceFilter(choices=Product.CATEGORY_CHOICES)
    is_active = django_filters.BooleanFilter()
    low_stock = django_filters.BooleanFilter(method='filter_low_stock', label='At or below reorder point')

    class Meta:
        model = Product
        fields = ['search', 'category', 'is_active', 'low_stock']

    def filter_low_stock(self, queryset, name, value):
        if value is None:
            return queryset
        if value:
            return queryset.filter(stock_on_hand__lte=F('reorder_point'))
        return queryset.filter(stock_on_hand__gt=F('reorder_point'))

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(sku__icontains=value) |
            Q(name__icontains=value) |
            Q(description__icontains=value)
        )
