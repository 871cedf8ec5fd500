import django_filters
from django.db.models import Q
from .models import Lead
from .stages import LEAD_STAGES, LEAD_STATUSES, STAGE_TO_STATUS


class LeadFilter(django_filters.FilterSet):
    """Filter for Lead model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    stage = django_filters.MultipleChoiceFilter(choices=LEAD_STAGES)
    status = django_filters.ChoiceFilter(choices=LEAD_STATUSES, method='filter_status', label='Board status')
    source = django_filters.ChoiceFilter(choices=Lead.SOURCE_CHOICES)
    lead_type = django_filters.ChoiceFilter(choices=Lead.LEAD_TYPE_CHOICES)
    assigned_to = django_filters.NumberFilter(field_name='assigned_to_id')
    unassigned = django_filters.BooleanFilter(field_name='assigned_to', lookup_expr='isnull')
    client = django_filters.NumberFilter(field_name='client_id')

    class Meta:
        model = Lead
        fields = ['search', 'stage', 'status', 'source', 'lead_type', 'assigned_to', 'unassigned', 'client']

    def filter_status(self, queryset, name, value):
        stages = [stage for stage, status in STAGE_TO_STATUS.items() if status == value]
        return queryset.filter(stage__in=stages)

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(lead_number__icontains=value) |
            Q(client__name__icontains=value) |
            Q(client__phone__icontains=value) |
            Q(site_address__icontains=value) |
            Q(description__icontains=value)
        )
