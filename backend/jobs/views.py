import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models.deletion import ProtectedError
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.cache_utils import get_or_build
from backend.core.model_cache import JOB_BOARD_KEY, BOARD_CACHE_TTL
from backend.core.numbering import next_document_number
from backend.core.utils import create_audit_log, create_notification, get_username
from backend.workflow.exceptions import WorkflowError
from backend.workflow.models import JobStatus, JobPipelineStage, KanbanColumn
from backend.workflow.progress import build_board, complete_stage, pipeline_progress
from .filters import (
    QuoteFilter, JobFilter, PaymentFilter, ProductionTaskFilter, InstallTaskFilter, ScheduleEventFilter,
)
from .models import Quote, Job, Payment, BillOfMaterials, ProductionTask, InstallTask, ScheduleEvent
from .serializers import (
    QuoteSerializer, JobSerializer, JobCreateSerializer, JobCardSerializer, JobStatusChangeSerializer,
    JobStatusUpdateSerializer, PaymentSerializer, BillOfMaterialsSerializer, ProductionTaskSerializer,
    ProductionTaskStartSerializer, ProductionTaskCompleteSerializer, InstallTaskSerializer,
    InstallTaskCompleteSerializer, ScheduleEventSerializer,
)
from .services import (
    accept_quote, active_status_keys, apply_payment_status, change_job_status, initial_job_status, send_quote,
    start_production_task, complete_production_task, check_in_install_task, complete_install_task,
)

logger = logging.getLogger('backend.jobs')

UNEXPECTED_ERROR = {'error': 'An unexpected error occurred'}


def _workflow_error(action, request, exc):
    logger.warning(f"Rejected {action} by {get_username(request)}: {exc.message}")
    return Response(exc.as_response_data(), status=status.HTTP_400_BAD_REQUEST)


def _status_labels():
    return dict(JobStatus.objects.values_list('key', 'label'))


def _with_job(request, job):
    data = request.data.copy()
    data['job'] = job.pk
    return data


# ==================== QUOTES ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quote_list_create(request):
    """List quotes (?status=, ?client=, ?lead=, ?search=) or create a draft quote"""
    if request.method == 'GET':
        queryset = Quote.objects.select_related('client', 'lead')
        filterset = QuoteFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(QuoteSerializer(filterset.qs, many=True).data)

    serializer = QuoteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    quote = serializer.save(created_by=request.user)
    create_audit_log(request=request, action='create', model_name='Quote', object_id=quote.id,
                     object_reference=quote.quote_number)
    logger.info(f"Quote {quote.quote_number} created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def quote_next_number(request):
    """The number the next quote will be given"""
    return Response({'quote_number': next_document_number(Quote, 'quote_number', 'Q')})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def quote_detail(request, pk):
    """Retrieve, update or delete a quote"""
    quote = get_object_or_404(Quote.objects.select_related('client', 'lead'), pk=pk)

    if request.method == 'GET':
        return Response(QuoteSerializer(quote).data)
    elif request.method in ('PUT', 'PATCH'):
        if quote.status == 'approved':
            return Response({'error': 'Approved quotes cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)
        serializer = QuoteSerializer(quote, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='Quote', object_id=quote.id,
                         object_reference=quote.quote_number, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        quote_number = quote.quote_number
        try:
            quote.delete()
        except ProtectedError:
            return Response({'error': 'This quote has a job and cannot be deleted'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='Quote', object_id=pk,
                         object_reference=quote_number)
        logger.info(f"Quote {quote_number} deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_send(request, pk):
    """Mark a quote as sent to the client"""
    quote = get_object_or_404(Quote, pk=pk)
    try:
        send_quote(quote)
    except WorkflowError as e:
        return _workflow_error('quote send', request, e)
    create_audit_log(request=request, action='quote_send', model_name='Quote', object_id=quote.id,
                     object_reference=quote.quote_number)
    logger.info(f"Quote {quote.quote_number} sent by {get_username(request)}")
    return Response(QuoteSerializer(quote).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_accept(request, pk):
    """Approve a quote and create its job (plus a pending deposit payment)"""
    quote = get_object_or_404(Quote.objects.select_related('lead'), pk=pk)
    pipeline = None
    pipeline_id = request.data.get('pipeline')
    if pipeline_id:
        from backend.workflow.models import JobPipeline
        pipeline = get_object_or_404(JobPipeline, pk=pipeline_id, is_active=True)
    job_type = request.data.get('job_type')
    if job_type is not None and job_type not in dict(Job.JOB_TYPE_CHOICES):
        return Response({'job_type': [f'"{job_type}" is not a valid choice.']}, status=status.HTTP_400_BAD_REQUEST)

    try:
        job = accept_quote(
            quote,
            user=request.user,
            job_type=job_type,
            fence_style=request.data.get('fence_style', ''),
            pipeline=pipeline,
        )
    except WorkflowError as e:
        return _workflow_error('quote accept', request, e)
    except Exception as e:
        logger.error(f"Unexpected error accepting quote {quote.quote_number}: {e}", exc_info=True)
        return Response(UNEXPECTED_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='quote_accept', model_name='Quote', object_id=quote.id,
                     object_reference=quote.quote_number, changes={'job': job.job_number})
    return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


# ==================== JOBS ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_list_create(request):
    """List jobs (?status=a,b, ?active=, ?client=, ?search=) or create a job directly"""
    if request.method == 'GET':
        queryset = Job.objects.select_related('client', 'quote', 'assigned_installer')
        filterset = JobFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = JobSerializer(filterset.qs, many=True, context={'status_labels': _status_labels()})
        return Response(serializer.data)

    serializer = JobCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        status_key = serializer.validated_data.get('status') or initial_job_status()
    except WorkflowError as e:
        return _workflow_error('job create', request, e)
    if status_key not in active_status_keys():
        return Response({'status': [f"'{status_key}' is not an active job status."]},
                        status=status.HTTP_400_BAD_REQUEST)
    job = serializer.save(status=status_key)
    job.status_changes.create(from_status='', to_status=status_key, changed_by=request.user)
    create_audit_log(request=request, action='create', model_name='Job', object_id=job.id,
                     object_reference=job.job_number)
    logger.info(f"Job {job.job_number} created by {get_username(request)} in '{status_key}'")
    return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_detail(request, pk):
    """Retrieve, update or delete a job. The job number and status are not editable here."""
    job = get_object_or_404(Job.objects.select_related('client', 'quote', 'assigned_installer'), pk=pk)

    if request.method == 'GET':
        data = JobSerializer(job).data
        data['status_history'] = JobStatusChangeSerializer(
            job.status_changes.select_related('changed_by'), many=True
        ).data
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = JobSerializer(job, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='Job', object_id=job.id,
                         object_reference=job.job_number, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        job_number = job.job_number
        job.delete()
        create_audit_log(request=request, action='delete', model_name='Job', object_id=pk,
                         object_reference=job_number)
        logger.info(f"Job {job_number} deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def job_status_update(request, pk):
    """
    Move a job to another status.

    Mandatory prerequisites the job has never held block the move (400);
    unmet advisory prerequisites come back as warnings.
    """
    job = get_object_or_404(Job, pk=pk)
    serializer = JobStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = job.status
    target = serializer.validated_data['status']
    try:
        check = change_job_status(job, target, user=request.user, notes=serializer.validated_data.get('notes', ''))
    except WorkflowError as e:
        return _workflow_error('job status change', request, e)

    if previous != job.status:
        create_audit_log(request=request, action='status_change', model_name='Job', object_id=job.id,
                         object_reference=job.job_number,
                         changes={'from_status': previous, 'to_status': job.status, 'warnings': check.warnings})
    data = JobSerializer(job).data
    data['warnings'] = check.warnings
    return Response(data)


def _board_data():
    columns = KanbanColumn.objects.filter(is_active=True)
    jobs = Job.objects.select_related('client', 'assigned_installer').order_by('scheduled_start_date', '-created_at')
    context = {'status_labels': _status_labels()}
    return build_board(columns, jobs, lambda job: JobCardSerializer(job, context=context).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_board(request):
    """Jobs grouped into the active kanban columns with per-column counts and totals"""
    return Response(get_or_build(JOB_BOARD_KEY, _board_data, BOARD_CACHE_TTL))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_pipeline_progress(request, pk):
    job = get_object_or_404(Job.objects.select_related('pipeline'), pk=pk)
    return Response(pipeline_progress(job))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_stage_complete(request, pk, stage_pk):
    """Mark a manual pipeline stage complete for a job"""
    job = get_object_or_404(Job.objects.select_related('pipeline'), pk=pk)
    stage = get_object_or_404(JobPipelineStage, pk=stage_pk)
    try:
        progress = complete_stage(job, stage)
    except WorkflowError as e:
        return _workflow_error('stage completion', request, e)
    create_audit_log(request=request, action='stage_complete', model_name='Job', object_id=job.id,
                     object_reference=job.job_number, changes={'stage': stage.name, 'percent': progress['percent']})
    logger.info(f"Stage '{stage.name}' completed on job {job.job_number} by {get_username(request)}")
    return Response(progress)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_bom(request, pk):
    """
    A job's bill of materials.

    GET returns 404 until one is saved. POST creates it (201) or replaces the
    fields it names on the existing one (200).
    """
    job = get_object_or_404(Job, pk=pk)
    bom = BillOfMaterials.objects.filter(job=job).first()

    if request.method == 'GET':
        if bom is None:
            return Response({'error': 'No bill of materials for this job'}, status=status.HTTP_404_NOT_FOUND)
        return Response(BillOfMaterialsSerializer(bom).data)

    serializer = BillOfMaterialsSerializer(bom, data=request.data, partial=bom is not None)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    created = bom is None
    bom = serializer.save(job=job)
    create_audit_log(request=request, action='create' if created else 'update', model_name='BillOfMaterials',
                     object_id=bom.id, object_reference=job.job_number,
                     changes={'items': len(bom.items), 'wastage_percent': str(bom.wastage_percent)})
    logger.info(f"BOM for job {job.job_number} {'created' if created else 'updated'} by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_production_tasks(request, pk):
    """List a job's production tasks or add one"""
    job = get_object_or_404(Job, pk=pk)
    if request.method == 'GET':
        tasks = job.production_tasks.select_related('job', 'assigned_to')
        return Response(ProductionTaskSerializer(tasks, many=True).data)
    return _create_production_task(request, _with_job(request, job))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_install_tasks(request, pk):
    """List a job's install tasks or schedule one"""
    job = get_object_or_404(Job, pk=pk)
    if request.method == 'GET':
        tasks = job.install_tasks.select_related('job', 'installer')
        return Response(InstallTaskSerializer(tasks, many=True).data)
    return _create_install_task(request, _with_job(request, job))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_payments(request, pk):
    job = get_object_or_404(Job, pk=pk)
    return Response(PaymentSerializer(job.payments.select_related('client', 'job'), many=True).data)


# ==================== PAYMENTS ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_list_create(request):
    """List payments (?pending=true, ?job=, ?client=) or record a payment"""
    if request.method == 'GET':
        queryset = Payment.objects.select_related('client', 'job')
        filterset = PaymentFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(PaymentSerializer(filterset.qs, many=True).data)

    serializer = PaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    extra = {'created_by': request.user}
    if serializer.validated_data.get('status') == 'paid' and not serializer.validated_data.get('paid_at'):
        extra['paid_at'] = timezone.now()
    payment = serializer.save(**extra)
    apply_payment_status(payment)
    create_audit_log(request=request, action='payment_add', model_name='Payment', object_id=payment.id,
                     object_reference=payment.job.job_number if payment.job else None,
                     changes={'amount': str(payment.amount), 'payment_type': payment.payment_type,
                              'status': payment.status})
    logger.info(f"Payment {payment.id} ({payment.amount}) recorded by {get_username(request)}")
    return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def payment_detail(request, pk):
    """Retrieve or update a payment; marking it paid updates the job's paid flags"""
    payment = get_object_or_404(Payment.objects.select_related('client', 'job'), pk=pk)

    if request.method == 'GET':
        return Response(PaymentSerializer(payment).data)

    previous_status = payment.status
    serializer = PaymentSerializer(payment, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    extra = {}
    if serializer.validated_data.get('status') == 'paid' and previous_status != 'paid' and not payment.paid_at:
        extra['paid_at'] = timezone.now()
    payment = serializer.save(**extra)
    if payment.status != previous_status:
        apply_payment_status(payment)
    create_audit_log(request=request, action='update', model_name='Payment', object_id=payment.id,
                     changes=dict(request.data))
    return Response(PaymentSerializer(payment).data)


# ==================== PRODUCTION TASKS ====================

def _create_production_task(request, data):
    serializer = ProductionTaskSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    task = serializer.save()
    create_audit_log(request=request, action='create', model_name='ProductionTask', object_id=task.id,
                     object_name=task.get_task_type_display(), object_reference=task.job.job_number)
    logger.info(f"Production task {task.id} ({task.task_type}) added to job {task.job.job_number} by {get_username(request)}")
    return Response(ProductionTaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def production_task_list_create(request):
    """List production tasks (?job=, ?assigned_to=, ?status=, ?task_type=) or add one"""
    if request.method == 'GET':
        queryset = ProductionTask.objects.select_related('job', 'assigned_to')
        filterset = ProductionTaskFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(ProductionTaskSerializer(filterset.qs, many=True).data)
    return _create_production_task(request, request.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def production_task_detail(request, pk):
    task = get_object_or_404(ProductionTask.objects.select_related('job', 'assigned_to'), pk=pk)

    if request.method == 'GET':
        return Response(ProductionTaskSerializer(task).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductionTaskSerializer(task, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='ProductionTask', object_id=task.id,
                         object_reference=task.job.job_number, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        job_number = task.job.job_number
        task.delete()
        create_audit_log(request=request, action='delete', model_name='ProductionTask', object_id=pk,
                         object_reference=job_number)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def production_task_start(request, pk):
    """Start a production task now, optionally assigning it"""
    task = get_object_or_404(ProductionTask.objects.select_related('job'), pk=pk)
    serializer = ProductionTaskStartSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        start_production_task(task, assigned_to=serializer.validated_data.get('assigned_to'))
    except WorkflowError as e:
        return _workflow_error('production task start', request, e)
    create_audit_log(request=request, action='task_start', model_name='ProductionTask', object_id=task.id,
                     object_name=task.get_task_type_display(), object_reference=task.job.job_number)
    return Response(ProductionTaskSerializer(task).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def production_task_complete(request, pk):
    """Complete a production task, recording time spent and the QA result"""
    task = get_object_or_404(ProductionTask.objects.select_related('job'), pk=pk)
    serializer = ProductionTaskCompleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        complete_production_task(
            task,
            qa_result=serializer.validated_data.get('qa_result', ''),
            notes=serializer.validated_data.get('notes'),
        )
    except WorkflowError as e:
        return _workflow_error('production task completion', request, e)
    create_audit_log(request=request, action='task_complete', model_name='ProductionTask', object_id=task.id,
                     object_name=task.get_task_type_display(), object_reference=task.job.job_number,
                     changes={'time_spent_minutes': task.time_spent_minutes, 'qa_result': task.qa_result})
    return Response(ProductionTaskSerializer(task).data)


# ==================== INSTALL TASKS ====================

def _notify_installer(task):
    create_notification(
        task.installer,
        title=f"Install booked for {task.job.job_number}",
        message=f"{timezone.localtime(task.scheduled_date):%a %d %b %Y %H:%M} at {task.job.site_address or 'site address TBC'}",
        type='install_assigned',
        related=task,
    )


def _create_install_task(request, data):
    serializer = InstallTaskSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    task = serializer.save()
    _notify_installer(task)
    create_audit_log(request=request, action='create', model_name='InstallTask', object_id=task.id,
                     object_reference=task.job.job_number)
    logger.info(f"Install task {task.id} for job {task.job.job_number} booked by {get_username(request)}")
    return Response(InstallTaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def install_task_list_create(request):
    """List install tasks (?job=, ?installer=, ?date=YYYY-MM-DD, ?status=) or book one"""
    if request.method == 'GET':
        queryset = InstallTask.objects.select_related('job', 'installer')
        filterset = InstallTaskFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(InstallTaskSerializer(filterset.qs, many=True).data)
    return _create_install_task(request, request.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def install_task_detail(request, pk):
    """Retrieve, update or delete an install task; a new installer is notified"""
    task = get_object_or_404(InstallTask.objects.select_related('job', 'installer'), pk=pk)

    if request.method == 'GET':
        return Response(InstallTaskSerializer(task).data)
    elif request.method in ('PUT', 'PATCH'):
        previous_installer = task.installer_id
        serializer = InstallTaskSerializer(task, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        task = serializer.save()
        if task.installer_id != previous_installer:
            _notify_installer(task)
        create_audit_log(request=request, action='update', model_name='InstallTask', object_id=task.id,
                         object_reference=task.job.job_number, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        job_number = task.job.job_number
        task.delete()
        create_audit_log(request=request, action='delete', model_name='InstallTask', object_id=pk,
                         object_reference=job_number)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def install_task_check_in(request, pk):
    """Installer arrives on site"""
    task = get_object_or_404(InstallTask.objects.select_related('job', 'installer'), pk=pk)
    try:
        check_in_install_task(task)
    except WorkflowError as e:
        return _workflow_error('install check-in', request, e)
    create_audit_log(request=request, action='install_check_in', model_name='InstallTask', object_id=task.id,
                     object_reference=task.job.job_number)
    return Response(InstallTaskSerializer(task).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def install_task_complete(request, pk):
    """
    Complete an install with notes, variations and photos.

    The job moves to the install-complete status; a blocked move (400) leaves
    the task open.
    """
    task = get_object_or_404(InstallTask.objects.select_related('job', 'installer'), pk=pk)
    serializer = InstallTaskCompleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    previous_job_status = task.job.status
    try:
        warnings = complete_install_task(task, user=request.user, **serializer.validated_data)
    except WorkflowError as e:
        return _workflow_error('install completion', request, e)
    except Exception as e:
        logger.error(f"Unexpected error completing install task {task.id}: {e}", exc_info=True)
        return Response(UNEXPECTED_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='task_complete', model_name='InstallTask', object_id=task.id,
                     object_reference=task.job.job_number,
                     changes={'from_status': previous_job_status, 'to_status': task.job.status, 'warnings': warnings})
    data = InstallTaskSerializer(task).data
    data['job_status'] = task.job.status
    data['warnings'] = warnings
    return Response(data)


# ==================== SCHEDULE ====================

def _notify_assignee(event):
    create_notification(
        event.assigned_to,
        title=f"{event.get_event_type_display()}: {event.title}",
        message=f"{timezone.localtime(event.start_date):%a %d %b %Y %H:%M}",
        type='schedule_assigned',
        related=event,
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def schedule_list_create(request):
    """Calendar events (?start=&end= window, ?assigned_to=, ?job=, ?event_type=) or add one"""
    if request.method == 'GET':
        queryset = ScheduleEvent.objects.select_related('job', 'assigned_to')
        filterset = ScheduleEventFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(ScheduleEventSerializer(filterset.qs.order_by('start_date', 'id'), many=True).data)

    serializer = ScheduleEventSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    event = serializer.save()
    if event.assigned_to_id:
        _notify_assignee(event)
    create_audit_log(request=request, action='create', model_name='ScheduleEvent', object_id=event.id,
                     object_name=event.title, object_reference=event.job.job_number if event.job else None)
    logger.info(f"Schedule event '{event.title}' added by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def schedule_detail(request, pk):
    event = get_object_or_404(ScheduleEvent.objects.select_related('job', 'assigned_to'), pk=pk)

    if request.method == 'GET':
        return Response(ScheduleEventSerializer(event).data)
    elif request.method in ('PUT', 'PATCH'):
        previous_assignee = event.assigned_to_id
        serializer = ScheduleEventSerializer(event, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        event = serializer.save()
        if event.assigned_to_id and event.assigned_to_id != previous_assignee:
            _notify_assignee(event)
        create_audit_log(request=request, action='update', model_name='ScheduleEvent', object_id=event.id,
                         object_name=event.title, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        title = event.title
        event.delete()
        create_audit_log(request=request, action='delete', model_name='ScheduleEvent', object_id=pk,
                         object_name=title)
        return Response(status=status.HTTP_204_NO_CONTENT)
