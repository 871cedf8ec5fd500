"""
Dashboard statistics.

Each statistic is declared once as a StatDefinition: a model, a set of field
lookups and an aggregate. The same definition is evaluated two ways:

- against the database (StatDefinition.server_value), and
- over records that have already been fetched (compute_record_stats), which
  fills in any statistic whose aggregate fails or comes back empty.

compute_dashboard_stats runs both and merges them.

Because both paths read the same lookups they cannot drift apart; the
check_dashboard_stats command compares them anyway.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal
import logging

from django.apps import apps
from django.conf import settings
from django.db import DatabaseError
from django.db.models import F, Q, Sum
from django.utils import timezone

from backend.workflow.progress import percentage

logger = logging.getLogger('backend.reports')

SOURCE_SERVER = 'server'
SOURCE_COMPUTED = 'computed'


def _resolve(value, record):
    if isinstance(value, F):
        return _field_value(record, value.name)
    return value


def _field_value(record, field):
    if isinstance(record, dict):
        return record.get(field)
    return getattr(record, field, None)


def _matches(record, lookup, expected):
    field, _, op = lookup.partition('__')
    actual = _field_value(record, field)
    expected = _resolve(expected, record)
    op = op or 'exact'
    if op == 'exact':
        return actual == expected
    if op == 'in':
        return actual in expected
    if actual is None or expected is None:
        return False
    if op == 'lte':
        return actual <= expected
    if op == 'lt':
        return actual < expected
    if op == 'gte':
        return actual >= expected
    if op == 'gt':
        return actual > expected
    raise ValueError(f"Unsupported lookup '{lookup}'")


class StatDefinition:
    """
    One dashboard statistic.

    include and exclude are Django lookup dicts (exact, in, lt, lte, gt, gte;
    values may be F() references to another field of the same record). When
    sum_field is set the statistic is the sum of that field, otherwise a count.
    """

    def __init__(self, name, model, include=None, exclude=None, sum_field=None):
        self.name = name
        self.model = model
        self._include = include or {}
        self._exclude = exclude or {}
        self.sum_field = sum_field

    @property
    def include(self):
        return self._include() if callable(self._include) else self._include

    @property
    def exclude(self):
        return self._exclude() if callable(self._exclude) else self._exclude

    def get_model(self):
        return apps.get_model(self.model)

    def queryset(self):
        queryset = self.get_model().objects.filter(**self.include)
        if self.exclude:
            queryset = queryset.exclude(Q(**self.exclude))
        return queryset

    def server_value(self):
        queryset = self.queryset()
        if self.sum_field:
            return queryset.aggregate(total=Sum(self.sum_field))['total'] or Decimal('0.00')
        return queryset.count()

    def selects(self, record):
        if not all(_matches(record, lookup, value) for lookup, value in self.include.items()):
            return False
        # exclude(Q(a, b)) drops records matching every exclude lookup
        if self.exclude and all(_matches(record, lookup, value) for lookup, value in self.exclude.items()):
            return False
        return True

    def record_value(self, records):
        selected = [record for record in records if self.selects(record)]
        if self.sum_field:
            total = Decimal('0.00')
            for record in selected:
                total += Decimal(str(_field_value(record, self.sum_field) or 0))
            return total
        return len(selected)


def _today_range():
    """Install tasks scheduled between local midnight today and tomorrow"""
    start = timezone.make_aware(datetime.combine(timezone.localdate(), time.min))
    return {'scheduled_date__gte': start, 'scheduled_date__lt': start + timedelta(days=1)}


STAT_DEFINITIONS = [
    StatDefinition('new_leads', 'leads.Lead', include={'stage': 'new'}),
    StatDefinition('quotes_awaiting_follow_up', 'jobs.Quote', include={'status': 'sent'}),
    StatDefinition('jobs_in_production', 'jobs.Job',
                   include=lambda: {'status__in': settings.PRODUCTION_JOB_STATUSES}),
    StatDefinition('jobs_in_progress', 'jobs.Job',
                   exclude=lambda: {'status__in': settings.COMPLETED_JOB_STATUSES}),
    StatDefinition('jobs_ready_for_install', 'jobs.Job', include={'status': 'scheduled'}),
    StatDefinition('low_stock_products', 'inventory.Product',
                   include={'is_active': True, 'stock_on_hand__lte': F('reorder_point')}),
    StatDefinition('pending_payments_total', 'jobs.Payment', include={'status': 'pending'}, sum_field='amount'),
    StatDefinition('today_installs', 'jobs.InstallTask', include=_today_range),
]

STATS_BY_NAME = {definition.name: definition for definition in STAT_DEFINITIONS}


def _json_value(value):
    return str(value) if isinstance(value, Decimal) else value


def compute_record_stats(records_by_model):
    """
    Evaluate every statistic over already-fetched records.

    records_by_model maps a model label ('jobs.Job') to an iterable of model
    instances or dicts. Statistics whose model has no records listed count 0.
    """
    return {
        definition.name: definition.record_value(records_by_model.get(definition.model, []))
        for definition in STAT_DEFINITIONS
    }


def fetch_records(definition):
    fields = set(definition.include) | set(definition.exclude)
    names = {lookup.split('__')[0] for lookup in fields}
    for value in list(definition.include.values()) + list(definition.exclude.values()):
        if isinstance(value, F):
            names.add(value.name)
    if definition.sum_field:
        names.add(definition.sum_field)
    return list(definition.get_model().objects.values(*sorted(names)))


def fetch_model_records(labels):
    """Every row of each model label, as dicts"""
    return {label: list(apps.get_model(label).objects.values()) for label in labels}


def compute_dashboard_stats():
    """
    Aggregate every statistic in the database, then fill the gaps from records.

    A statistic whose aggregate fails or comes back empty (0) is recomputed
    from the records of its model and the two are merged with merge_stats.
    The result reports the source of every value.
    """
    server = {}
    for definition in STAT_DEFINITIONS:
        try:
            server[definition.name] = definition.server_value()
        except DatabaseError as e:
            logger.warning(f"Aggregate for {definition.name} failed, recomputing from records: {e}")
            server[definition.name] = None

    labels = {definition.model for definition in STAT_DEFINITIONS if not server[definition.name]}
    computed = compute_record_stats(fetch_model_records(sorted(labels))) if labels else {}
    values = merge_stats(server, computed)

    sources = {}
    for name, value in values.items():
        from_server = server[name] is not None and value == server[name]
        sources[name] = SOURCE_SERVER if from_server else SOURCE_COMPUTED
        if not from_server:
            logger.info(f"Dashboard statistic {name} taken from records: {value}")
    return {
        'stats': {name: _json_value(value) for name, value in values.items()},
        'sources': sources,
    }


def merge_stats(server, computed):
    """
    Prefer each server value that is set, otherwise the computed one.

    Empty server values (None, 0) fall back to the computed value; a server
    0 is kept when nothing was computed for that statistic.
    """
    server = server or {}
    merged = {}
    for name in STATS_BY_NAME:
        value = server.get(name)
        merged[name] = value if value else computed.get(name, value)
    return merged


def production_progress():
    """
    Job counts for the statuses of the production kanban column.

    The production column is the first active column whose title contains
    "production"; without one, PRODUCTION_JOB_STATUSES is used. Percentages
    are of all jobs in those statuses, rounded to whole numbers.
    """
    KanbanColumn = apps.get_model('workflow.KanbanColumn')
    JobStatus = apps.get_model('workflow.JobStatus')
    Job = apps.get_model('jobs.Job')

    column = next(
        (c for c in KanbanColumn.objects.filter(is_active=True) if 'production' in c.title.lower()),
        None,
    )
    status_keys = list(column.statuses) if column else list(settings.PRODUCTION_JOB_STATUSES)
    labels = dict(JobStatus.objects.filter(key__in=status_keys).values_list('key', 'label'))
    counts = {key: 0 for key in status_keys}
    for key in Job.objects.filter(status__in=status_keys).values_list('status', flat=True):
        counts[key] += 1
    total = sum(counts.values())

    return {
        'column': column.title if column else None,
        'total': total,
        'stages': [
            {
                'status_key': key,
                'label': labels.get(key, 'Unknown'),
                'job_count': counts[key],
                'progress': percentage(counts[key], total),
            }
            for key in status_keys
        ],
    }
