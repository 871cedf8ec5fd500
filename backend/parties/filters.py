import django_filters
from django.db.models import Q
from .models import Client


class ClientFilter(django_filters.FilterSet):
    """Filter for Client model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    client_type = django_filters.ChoiceFilter(choices=Client.CLIENT_TYPE_CHOICES)
    trade_discount_level = django_filters.ChoiceFilter(choices=Client.TRADE_DISCOUNT_LEVEL_CHOICES)

    class Meta:
        model = Client
        fields = ['search', 'client_type', 'trade_discount_level']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(phone__icontains=value) |
            Q(email__icontains=value) |
            Q(company_name__icontains=value)
        )
