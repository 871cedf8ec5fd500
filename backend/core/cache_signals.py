"""
Cache invalidation signals
Automatically invalidate cache when data changes

CACHE_INVALIDATION lists, per model, every cached read that a change to that
model makes stale. Bulk writes (bulk_update, queryset.update) do not send
signals, so the code performing them calls invalidate_model_cache itself.
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_keys
from .model_cache import (
    JOB_STATUS_LIST_KEY, JOB_STATUS_DEPENDENCY_LIST_KEY, KANBAN_COLUMN_LIST_KEY,
    JOB_PIPELINE_LIST_KEY, LEAD_BOARD_KEY, JOB_BOARD_KEY, DASHBOARD_STATS_KEY,
    PRODUCTION_PROGRESS_KEY, get_dependency_cache_key, get_pipeline_stages_cache_key,
)

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _job_status_keys(instance, deleted):
    # Column lists and dependency lists render status labels
    keys = [
        JOB_STATUS_LIST_KEY, JOB_BOARD_KEY, PRODUCTION_PROGRESS_KEY,
        KANBAN_COLUMN_LIST_KEY, JOB_STATUS_DEPENDENCY_LIST_KEY,
        get_dependency_cache_key(instance.key),
    ]
    if not deleted:
        # On delete the cascaded dependency rows invalidate their own statuses
        from backend.workflow.models import JobStatusDependency
        dependents = (
            JobStatusDependency.objects
            .filter(prerequisite_id=instance.key)
            .values_list('status_id', flat=True)
        )
        keys += [get_dependency_cache_key(key) for key in dependents]
    return keys


def _dependency_keys(instance, deleted):
    return [JOB_STATUS_DEPENDENCY_LIST_KEY, get_dependency_cache_key(instance.status_id)]


def _kanban_column_keys(instance, deleted):
    return [KANBAN_COLUMN_LIST_KEY, JOB_BOARD_KEY, PRODUCTION_PROGRESS_KEY]


def _pipeline_keys(instance, deleted):
    return [JOB_PIPELINE_LIST_KEY, get_pipeline_stages_cache_key(instance.pk)]


def _pipeline_stage_keys(instance, deleted):
    # The pipeline list carries a stage count
    return [JOB_PIPELINE_LIST_KEY, get_pipeline_stages_cache_key(instance.pipeline_id)]


def _lead_keys(instance, deleted):
    return [LEAD_BOARD_KEY, DASHBOARD_STATS_KEY]


def _client_keys(instance, deleted):
    # Boards show client names
    return [LEAD_BOARD_KEY, JOB_BOARD_KEY]


def _user_keys(instance, deleted):
    # The lead board shows assignee names
    return [LEAD_BOARD_KEY]


def _job_keys(instance, deleted):
    return [JOB_BOARD_KEY, DASHBOARD_STATS_KEY, PRODUCTION_PROGRESS_KEY]


def _dashboard_keys(instance, deleted):
    return [DASHBOARD_STATS_KEY]


CACHE_INVALIDATION = {
    'workflow.JobStatus': _job_status_keys,
    'workflow.JobStatusDependency': _dependency_keys,
    'workflow.KanbanColumn': _kanban_column_keys,
    'workflow.JobPipeline': _pipeline_keys,
    'workflow.JobPipelineStage': _pipeline_stage_keys,
    'leads.Lead': _lead_keys,
    'parties.Client': _client_keys,
    'core.User': _user_keys,
    'jobs.Quote': _dashboard_keys,
    'jobs.Job': _job_keys,
    'jobs.Payment': _dashboard_keys,
    'jobs.InstallTask': _dashboard_keys,
    'inventory.Product': _dashboard_keys,
}


def cache_keys_for(instance, deleted=False):
    """Return the cache keys a change to instance makes stale"""
    key_builder = CACHE_INVALIDATION.get(instance._meta.label)
    if key_builder is None:
        return []
    return key_builder(instance, deleted)


def invalidate_model_cache(instance, deleted=False):
    """Manually invalidate every cached read that depends on instance"""
    try:
        invalidate_keys(cache_keys_for(instance, deleted))
    except Exception as e:
        logger.warning(f"Error invalidating cache for {instance._meta.label}: {e}")


# --- Signal Handlers ---

@receiver(post_save)
def invalidate_on_save(sender, instance, **kwargs):
    """Invalidate cached reads when a tracked model is saved"""
    if is_suspended() or sender._meta.label not in CACHE_INVALIDATION:
        return
    invalidate_model_cache(instance)


@receiver(post_delete)
def invalidate_on_delete(sender, instance, **kwargs):
    """Invalidate cached reads when a tracked model is deleted"""
    if is_suspended() or sender._meta.label not in CACHE_INVALIDATION:
        return
    invalidate_model_cache(instance, deleted=True)
