import django_filters
from django.conf import settings
from django.db.models import Q
from .models import Quote, Job, Payment, ProductionTask, InstallTask, ScheduleEvent


class QuoteFilter(django_filters.FilterSet):
    """Filter for Quote model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.MultipleChoiceFilter(choices=Quote.STATUS_CHOICES)
    client = django_filters.NumberFilter(field_name='client_id')
    lead = django_filters.NumberFilter(field_name='lead_id')

    class Meta:
        model = Quote
        fields = ['search', 'status', 'client', 'lead', 'is_trade_quote']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(quote_number__icontains=value) |
            Q(client__name__icontains=value) |
            Q(site_address__icontains=value)
        )


class JobFilter(django_filters.FilterSet):
    """Filter for Job model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(method='filter_status', label='Status keys (comma separated)')
    active = django_filters.BooleanFilter(method='filter_active', label='Not completed')
    client = django_filters.NumberFilter(field_name='client_id')
    pipeline = django_filters.NumberFilter(field_name='pipeline_id')
    job_type = django_filters.ChoiceFilter(choices=Job.JOB_TYPE_CHOICES)
    scheduled_from = django_filters.DateFilter(field_name='scheduled_start_date', lookup_expr='date__gte')
    scheduled_to = django_filters.DateFilter(field_name='scheduled_start_date', lookup_expr='date__lte')

    class Meta:
        model = Job
        fields = ['search', 'status', 'active', 'client', 'pipeline', 'job_type', 'scheduled_from', 'scheduled_to']

    def filter_status(self, queryset, name, value):
        keys = [key.strip() for key in value.split(',') if key.strip()]
        if not keys:
            return queryset
        return queryset.filter(status__in=keys)

    def filter_active(self, queryset, name, value):
        if value is None:
            return queryset
        if value:
            return queryset.exclude(status__in=settings.COMPLETED_JOB_STATUSES)
        return queryset.filter(status__in=settings.COMPLETED_JOB_STATUSES)

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(job_number__icontains=value) |
            Q(client__name__icontains=value) |
            Q(site_address__icontains=value)
        )


class PaymentFilter(django_filters.FilterSet):
    """Filter for Payment model using django-filter"""
    pending = django_filters.BooleanFilter(method='filter_pending', label='Pending only')
    status = django_filters.ChoiceFilter(choices=Payment.STATUS_CHOICES)
    payment_type = django_filters.ChoiceFilter(choices=Payment.PAYMENT_TYPE_CHOICES)
    client = django_filters.NumberFilter(field_name='client_id')
    job = django_filters.NumberFilter(field_name='job_id')

    class Meta:
        model = Payment
        fields = ['pending', 'status', 'payment_type', 'client', 'job']

    def filter_pending(self, queryset, name, value):
        if value:
            return queryset.filter(status='pending')
        return queryset


class ProductionTaskFilter(django_filters.FilterSet):
    """Filter for ProductionTask model using django-filter"""
    job = django_filters.NumberFilter(field_name='job_id')
    assigned_to = django_filters.NumberFilter(field_name='assigned_to_id')
    status = django_filters.MultipleChoiceFilter(choices=ProductionTask.STATUS_CHOICES)
    task_type = django_filters.ChoiceFilter(choices=ProductionTask.TASK_TYPE_CHOICES)

    class Meta:
        model = ProductionTask
        fields = ['job', 'assigned_to', 'status', 'task_type']


class InstallTaskFilter(django_filters.FilterSet):
    """Filter for InstallTask model; ?date= matches the whole local day"""
    job = django_filters.NumberFilter(field_name='job_id')
    installer = django_filters.NumberFilter(field_name='installer_id')
    status = django_filters.MultipleChoiceFilter(choices=InstallTask.STATUS_CHOICES)
    date = django_filters.DateFilter(field_name='scheduled_date', lookup_expr='date')

    class Meta:
        model = InstallTask
        fields = ['job', 'installer', 'status', 'date']


class ScheduleEventFilter(django_filters.FilterSet):
    """Events inside a window (?start=&end=), for an assignee or a job"""
    start = django_filters.IsoDateTimeFilter(field_name='start_date', lookup_expr='gte')
    end = django_filters.IsoDateTimeFilter(field_name='end_date', lookup_expr='lte')
    assigned_to = django_filters.NumberFilter(field_name='assigned_to_id')
    job = django_filters.NumberFilter(field_name='job_id')
    event_type = django_filters.ChoiceFilter(choices=ScheduleEvent.EVENT_TYPE_CHOICES)

    class Meta:
        model = ScheduleEvent
        fields = ['start', 'end', 'assigned_to', 'job', 'event_type']
