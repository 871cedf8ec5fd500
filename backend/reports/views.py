import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.cache_utils import get_or_build
from backend.core.model_cache import DASHBOARD_STATS_KEY, PRODUCTION_PROGRESS_KEY, REPORTS_CACHE_TTL
from .stats import compute_dashboard_stats, production_progress

logger = logging.getLogger('backend.reports')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """
    Dashboard counters: new leads, quotes awaiting follow-up, jobs in
    production / in progress / ready for install, low-stock products, the
    pending payments total and today's installs. 'sources' says whether each
    value came from a database aggregate or was recomputed from records; an
    aggregate that fails or returns 0 falls back to the recomputed value.
    """
    return Response(get_or_build(DASHBOARD_STATS_KEY, compute_dashboard_stats, REPORTS_CACHE_TTL))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def production_progress_report(request):
    """Job counts and percentages for each status of the production column"""
    return Response(get_or_build(PRODUCTION_PROGRESS_KEY, production_progress, REPORTS_CACHE_TTL))
