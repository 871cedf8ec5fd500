import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import IntegrityError
from django.db.models import Count
from django.shortcuts import get_object_or_404

from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import get_or_build, invalidate_keys, optimistic_cache_write
from backend.core.model_cache import (
    JOB_STATUS_LIST_KEY, JOB_STATUS_DEPENDENCY_LIST_KEY, KANBAN_COLUMN_LIST_KEY, JOB_PIPELINE_LIST_KEY,
    JOB_BOARD_KEY, PRODUCTION_PROGRESS_KEY, WORKFLOW_CACHE_TTL,
    get_dependency_cache_key, get_pipeline_stages_cache_key,
)
from backend.core.permissions import config_admin_denied
from backend.core.utils import create_audit_log, get_username, parse_bool
from .dependencies import replace_dependencies
from .editors import available_prerequisites, normalize_status_key, toggle_column_status, validate_column_form
from .exceptions import WorkflowError
from .models import JobStatus, JobStatusDependency, KanbanColumn, JobPipeline, JobPipelineStage
from .ordering import parse_order_payload, resolve_order, persist_order, move_item
from .serializers import (
    JobStatusSerializer, JobStatusDependencySerializer, KanbanColumnSerializer,
    JobPipelineSerializer, JobPipelineStageSerializer,
)

logger = logging.getLogger('backend.workflow')

UNEXPECTED_ERROR = {'error': 'An unexpected error occurred'}


def _unexpected_error(action, request, exc):
    logger.error(f"Unexpected error during {action} by {get_username(request)}: {exc}", exc_info=True)
    return Response(UNEXPECTED_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _workflow_error(action, request, exc):
    logger.warning(f"Rejected {action} by {get_username(request)}: {exc.message}")
    return Response(exc.as_response_data(), status=status.HTTP_400_BAD_REQUEST)


def _save_ordered(request, model, ordered, data, cache_key, model_name, scope_id='all', extra_keys=()):
    """Persist a complete order behind an optimistic write of its cached list"""
    with optimistic_cache_write(cache_key, data, WORKFLOW_CACHE_TTL):
        with suspend_cache_signals():
            persist_order(model, ordered)
        create_audit_log(
            request=request,
            action='reorder',
            model_name=model_name,
            object_id=scope_id,
            changes={'order': [obj.pk for obj in ordered]},
        )
    invalidate_keys(extra_keys)
    logger.info(f"{model_name} order updated by {get_username(request)}: {[obj.pk for obj in ordered]}")
    return Response(data)


# ==================== JOB STATUSES ====================

def _status_list_data():
    return list(JobStatusSerializer(JobStatus.objects.all(), many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_status_list_create(request):
    """List the status registry in order or create a status at the end of it"""
    if request.method == 'GET':
        data = get_or_build(JOB_STATUS_LIST_KEY, _status_list_data, WORKFLOW_CACHE_TTL)
        if parse_bool(request.query_params.get('active')):
            data = [item for item in data if item['is_active']]
        return Response(data)

    denied = config_admin_denied(request)
    if denied:
        return denied
    serializer = JobStatusSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Invalid job status from {get_username(request)}: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        job_status = serializer.save()
    except IntegrityError:
        return Response({'error': 'A status with this key already exists'}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        return _unexpected_error('job status create', request, e)
    create_audit_log(request=request, action='create', model_name='JobStatus', object_id=job_status.id,
                     object_name=job_status.label, object_reference=job_status.key, changes=serializer.data)
    logger.info(f"Job status '{job_status.key}' created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_status_detail(request, pk):
    """Retrieve, update or delete a status. The key cannot change."""
    job_status = get_object_or_404(JobStatus, pk=pk)

    if request.method == 'GET':
        return Response(JobStatusSerializer(job_status).data)

    denied = config_admin_denied(request)
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = JobStatusSerializer(job_status, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            logger.warning(f"Invalid job status update from {get_username(request)}: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='JobStatus', object_id=job_status.id,
                         object_name=job_status.label, object_reference=job_status.key,
                         changes=dict(request.data))
        return Response(serializer.data)

    # DELETE: jobs keep their status value; report how many still use it
    from backend.jobs.models import Job
    key = job_status.key
    referencing_jobs = Job.objects.filter(status=key).count()
    try:
        job_status.delete()
    except Exception as e:
        return _unexpected_error('job status delete', request, e)
    create_audit_log(request=request, action='delete', model_name='JobStatus', object_id=pk,
                     object_name=job_status.label, object_reference=key,
                     changes={'jobs_referencing': referencing_jobs})
    logger.info(f"Job status '{key}' deleted by {get_username(request)} ({referencing_jobs} jobs still reference it)")
    response_data = {'deleted': key, 'jobs_referencing': referencing_jobs}
    if referencing_jobs:
        response_data['warning'] = f"{referencing_jobs} existing job(s) still use the status '{key}'."
    return Response(response_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_status_reorder(request):
    """Persist the complete ordered list of status ids"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    try:
        ids = parse_order_payload(request.data, field='statusIds')
        ordered = resolve_order(JobStatus.objects.all(), ids)
        data = list(JobStatusSerializer(ordered, many=True).data)
        return _save_ordered(request, JobStatus, ordered, data, JOB_STATUS_LIST_KEY, 'JobStatus')
    except WorkflowError as e:
        return _workflow_error('job status reorder', request, e)
    except Exception as e:
        return _unexpected_error('job status reorder', request, e)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_status_move(request, pk):
    """Swap a status with its neighbour ({"direction": "up"|"down"})"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    get_object_or_404(JobStatus, pk=pk)
    try:
        ordered = move_item(JobStatus.objects.all(), pk, request.data.get('direction'))
        if ordered is None:
            return Response(_status_list_data())
        data = list(JobStatusSerializer(ordered, many=True).data)
        return _save_ordered(request, JobStatus, ordered, data, JOB_STATUS_LIST_KEY, 'JobStatus')
    except WorkflowError as e:
        return _workflow_error('job status move', request, e)
    except Exception as e:
        return _unexpected_error('job status move', request, e)


# ==================== DEPENDENCIES ====================

def _dependency_queryset():
    return JobStatusDependency.objects.select_related('prerequisite').order_by('status_id', 'id')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dependency_list(request):
    """All dependency edges across the registry"""
    data = get_or_build(
        JOB_STATUS_DEPENDENCY_LIST_KEY,
        lambda: list(JobStatusDependencySerializer(_dependency_queryset(), many=True).data),
        WORKFLOW_CACHE_TTL,
    )
    return Response(data)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def dependency_detail(request, status_key):
    """Read or fully replace the dependency set of one status"""
    job_status = get_object_or_404(JobStatus, key=normalize_status_key(status_key))
    cache_key = get_dependency_cache_key(job_status.key)

    if request.method == 'GET':
        data = get_or_build(
            cache_key,
            lambda: list(JobStatusDependencySerializer(
                _dependency_queryset().filter(status_id=job_status.key), many=True
            ).data),
            WORKFLOW_CACHE_TTL,
        )
        return Response(data)

    denied = config_admin_denied(request)
    if denied:
        return denied
    payload = request.data
    dependencies = payload.get('dependencies') if isinstance(payload, dict) else payload
    try:
        replace_dependencies(job_status, dependencies)
    except WorkflowError as e:
        return _workflow_error('dependency replace', request, e)
    except Exception as e:
        return _unexpected_error('dependency replace', request, e)

    # Replacing an empty set with an empty set sends no signals
    invalidate_keys([JOB_STATUS_DEPENDENCY_LIST_KEY, cache_key])
    data = list(JobStatusDependencySerializer(
        _dependency_queryset().filter(status_id=job_status.key), many=True
    ).data)
    create_audit_log(request=request, action='dependency_replace', model_name='JobStatusDependency',
                     object_id=job_status.id, object_name=job_status.label, object_reference=job_status.key,
                     changes={'dependencies': [
                         {'prerequisite_key': item['prerequisite_key'], 'dependency_type': item['dependency_type']}
                         for item in data
                     ]})
    logger.info(f"Dependencies for '{job_status.key}' replaced by {get_username(request)} ({len(data)} entries)")
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dependency_available(request, status_key):
    """
    Statuses that can still be added as prerequisites of status_key.

    ?selected=a,b names the prerequisites already staged in the editor; without
    it the saved prerequisites are excluded.
    """
    job_status = get_object_or_404(JobStatus, key=normalize_status_key(status_key))
    selected_param = request.query_params.get('selected')
    if selected_param is None:
        selected = list(job_status.dependencies.values_list('prerequisite_id', flat=True))
    else:
        selected = [normalize_status_key(key) for key in selected_param.split(',') if key.strip()]
    statuses = list(JobStatus.objects.all())
    keys = available_prerequisites([s.key for s in statuses], job_status.key, selected)
    labels = {s.key: s.label for s in statuses}
    return Response([{'key': key, 'label': labels[key]} for key in keys])


# ==================== KANBAN COLUMNS ====================

def _column_context():
    return {'status_labels': dict(JobStatus.objects.values_list('key', 'label'))}


def _column_list_data():
    return list(KanbanColumnSerializer(KanbanColumn.objects.all(), many=True, context=_column_context()).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def kanban_column_list_create(request):
    """List kanban columns in order or create a column at the end"""
    if request.method == 'GET':
        data = get_or_build(KANBAN_COLUMN_LIST_KEY, _column_list_data, WORKFLOW_CACHE_TTL)
        if parse_bool(request.query_params.get('active')):
            data = [item for item in data if item['is_active']]
        return Response(data)

    denied = config_admin_denied(request)
    if denied:
        return denied
    serializer = KanbanColumnSerializer(data=request.data, context=_column_context())
    if not serializer.is_valid():
        logger.warning(f"Invalid kanban column from {get_username(request)}: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        column = serializer.save()
    except Exception as e:
        return _unexpected_error('kanban column create', request, e)
    create_audit_log(request=request, action='create', model_name='KanbanColumn', object_id=column.id,
                     object_name=column.title, changes=serializer.data)
    logger.info(f"Kanban column '{column.title}' created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def kanban_column_detail(request, pk):
    """Retrieve, update or delete a kanban column"""
    column = get_object_or_404(KanbanColumn, pk=pk)

    if request.method == 'GET':
        return Response(KanbanColumnSerializer(column, context=_column_context()).data)

    denied = config_admin_denied(request)
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = KanbanColumnSerializer(column, data=request.data, partial=request.method == 'PATCH',
                                            context=_column_context())
        if not serializer.is_valid():
            logger.warning(f"Invalid kanban column update from {get_username(request)}: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='KanbanColumn', object_id=column.id,
                         object_name=column.title, changes=dict(request.data))
        return Response(serializer.data)

    title = column.title
    column.delete()
    create_audit_log(request=request, action='delete', model_name='KanbanColumn', object_id=pk, object_name=title)
    logger.info(f"Kanban column '{title}' deleted by {get_username(request)}")
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def kanban_column_toggle_status(request, pk):
    """Add or remove one status from a column, repairing its default status"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    column = get_object_or_404(KanbanColumn, pk=pk)
    key = normalize_status_key(request.data.get('status'))
    if not key:
        return Response({'status': ['This field is required.']}, status=status.HTTP_400_BAD_REQUEST)

    form = toggle_column_status({
        'title': column.title,
        'statuses': list(column.statuses),
        'default_status': column.default_status,
        'color': column.color,
        'is_active': column.is_active,
    }, key)
    errors = validate_column_form(form)
    if key in form['statuses'] and not JobStatus.objects.filter(key=key).exists():
        errors['statuses'] = f"Unknown status key: {key}."
    if errors:
        logger.warning(f"Rejected status toggle on column {column.id} by {get_username(request)}: {errors}")
        return Response({**errors, 'form': form}, status=status.HTTP_400_BAD_REQUEST)

    column.statuses = form['statuses']
    column.default_status = form['default_status']
    column.save(update_fields=['statuses', 'default_status', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='KanbanColumn', object_id=column.id,
                     object_name=column.title,
                     changes={'statuses': column.statuses, 'default_status': column.default_status})
    return Response(KanbanColumnSerializer(column, context=_column_context()).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def kanban_column_reorder(request):
    """Persist the complete ordered list of column ids"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    try:
        ids = parse_order_payload(request.data, field='columnIds')
        ordered = resolve_order(KanbanColumn.objects.all(), ids)
        data = list(KanbanColumnSerializer(ordered, many=True, context=_column_context()).data)
        return _save_ordered(request, KanbanColumn, ordered, data, KANBAN_COLUMN_LIST_KEY, 'KanbanColumn',
                             extra_keys=[JOB_BOARD_KEY, PRODUCTION_PROGRESS_KEY])
    except WorkflowError as e:
        return _workflow_error('kanban column reorder', request, e)
    except Exception as e:
        return _unexpected_error('kanban column reorder', request, e)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def kanban_column_move(request, pk):
    """Swap a column with its neighbour ({"direction": "up"|"down"})"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    get_object_or_404(KanbanColumn, pk=pk)
    try:
        ordered = move_item(KanbanColumn.objects.all(), pk, request.data.get('direction'))
        if ordered is None:
            return Response(_column_list_data())
        data = list(KanbanColumnSerializer(ordered, many=True, context=_column_context()).data)
        return _save_ordered(request, KanbanColumn, ordered, data, KANBAN_COLUMN_LIST_KEY, 'KanbanColumn',
                             extra_keys=[JOB_BOARD_KEY, PRODUCTION_PROGRESS_KEY])
    except WorkflowError as e:
        return _workflow_error('kanban column move', request, e)
    except Exception as e:
        return _unexpected_error('kanban column move', request, e)


# ==================== PIPELINES ====================

def _pipeline_list_data():
    pipelines = JobPipeline.objects.annotate(stage_count=Count('stages'))
    return list(JobPipelineSerializer(pipelines, many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def pipeline_list_create(request):
    """List pipelines with their stage counts (stages are fetched per pipeline) or create one"""
    if request.method == 'GET':
        data = get_or_build(JOB_PIPELINE_LIST_KEY, _pipeline_list_data, WORKFLOW_CACHE_TTL)
        if parse_bool(request.query_params.get('active')):
            data = [item for item in data if item['is_active']]
        return Response(data)

    denied = config_admin_denied(request)
    if denied:
        return denied
    serializer = JobPipelineSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    pipeline = serializer.save()
    create_audit_log(request=request, action='create', model_name='JobPipeline', object_id=pipeline.id,
                     object_name=pipeline.name)
    logger.info(f"Pipeline '{pipeline.name}' created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def pipeline_detail(request, pk):
    """Retrieve, update or delete a pipeline (deleting removes its stages)"""
    pipeline = get_object_or_404(JobPipeline, pk=pk)

    if request.method == 'GET':
        return Response(JobPipelineSerializer(pipeline).data)

    denied = config_admin_denied(request)
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = JobPipelineSerializer(pipeline, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='JobPipeline', object_id=pipeline.id,
                         object_name=pipeline.name, changes=dict(request.data))
        return Response(serializer.data)

    name = pipeline.name
    pipeline.delete()
    create_audit_log(request=request, action='delete', model_name='JobPipeline', object_id=pk, object_name=name)
    logger.info(f"Pipeline '{name}' deleted by {get_username(request)}")
    return Response(status=status.HTTP_204_NO_CONTENT)


def _stage_list_data(pipeline):
    return list(JobPipelineStageSerializer(pipeline.stages.order_by('sort_order', 'id'), many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def pipeline_stage_list_create(request, pk):
    """List one pipeline's stages in order or append a stage to it"""
    pipeline = get_object_or_404(JobPipeline, pk=pk)

    if request.method == 'GET':
        data = get_or_build(get_pipeline_stages_cache_key(pipeline.id),
                            lambda: _stage_list_data(pipeline), WORKFLOW_CACHE_TTL)
        return Response(data)

    denied = config_admin_denied(request)
    if denied:
        return denied
    serializer = JobPipelineStageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    stage = serializer.save(pipeline=pipeline)
    create_audit_log(request=request, action='create', model_name='JobPipelineStage', object_id=stage.id,
                     object_name=stage.name, object_reference=pipeline.name)
    logger.info(f"Stage '{stage.name}' added to pipeline '{pipeline.name}' by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def pipeline_stage_detail(request, pk, stage_pk):
    """Retrieve, update or delete a stage of a pipeline"""
    stage = get_object_or_404(JobPipelineStage, pk=stage_pk, pipeline_id=pk)

    if request.method == 'GET':
        return Response(JobPipelineStageSerializer(stage).data)

    denied = config_admin_denied(request)
    if denied:
        return denied

    if request.method in ('PUT', 'PATCH'):
        serializer = JobPipelineStageSerializer(stage, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='JobPipelineStage', object_id=stage.id,
                         object_name=stage.name, changes=dict(request.data))
        return Response(serializer.data)

    name = stage.name
    stage.delete()
    create_audit_log(request=request, action='delete', model_name='JobPipelineStage', object_id=stage_pk,
                     object_name=name)
    logger.info(f"Stage '{name}' deleted from pipeline {pk} by {get_username(request)}")
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def pipeline_stage_reorder(request, pk):
    """Persist the complete ordered list of one pipeline's stage ids"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    pipeline = get_object_or_404(JobPipeline, pk=pk)
    try:
        ids = parse_order_payload(request.data, field='stageIds')
        ordered = resolve_order(pipeline.stages.all(), ids)
        data = list(JobPipelineStageSerializer(ordered, many=True).data)
        return _save_ordered(request, JobPipelineStage, ordered, data,
                             get_pipeline_stages_cache_key(pipeline.id), 'JobPipelineStage',
                             scope_id=pipeline.id)
    except WorkflowError as e:
        return _workflow_error('pipeline stage reorder', request, e)
    except Exception as e:
        return _unexpected_error('pipeline stage reorder', request, e)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def pipeline_stage_move(request, pk, stage_pk):
    """Swap a stage with its neighbour ({"direction": "up"|"down"})"""
    denied = config_admin_denied(request)
    if denied:
        return denied
    pipeline = get_object_or_404(JobPipeline, pk=pk)
    get_object_or_404(JobPipelineStage, pk=stage_pk, pipeline=pipeline)
    try:
        ordered = move_item(pipeline.stages.order_by('sort_order', 'id'), stage_pk, request.data.get('direction'))
        if ordered is None:
            return Response(_stage_list_data(pipeline))
        data = list(JobPipelineStageSerializer(ordered, many=True).data)
        return _save_ordered(request, JobPipelineStage, ordered, data,
                             get_pipeline_stages_cache_key(pipeline.id), 'JobPipelineStage',
                             scope_id=pipeline.id)
    except WorkflowError as e:
        return _workflow_error('pipeline stage move', request, e)
    except Exception as e:
        return _unexpected_error('pipeline stage move', request, e)
