"""
Quote acceptance, job status transitions and production/install task steps.

They run inside a transaction and raise WorkflowError subclasses for rule
violations; the views turn those into 400 responses.
"""
from decimal import Decimal, ROUND_HALF_UP
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from backend.workflow.dependencies import evaluate_transition
from backend.workflow.exceptions import (
    QuoteStateError, TaskStateError, TransitionBlocked, UnknownStatusError, WorkflowError,
)
from backend.workflow.models import JobStatus
from .models import Job, JobStatusChange, Payment

logger = logging.getLogger('backend.jobs')

SENDABLE_QUOTE_STATUSES = ['draft', 'sent']
ACCEPTABLE_QUOTE_STATUSES = ['draft', 'sent']


def calculate_deposit(total_amount, deposit_percent):
    if total_amount is None or not deposit_percent:
        return None
    deposit = Decimal(total_amount) * Decimal(deposit_percent) / Decimal(100)
    return deposit.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def active_status_keys():
    return list(JobStatus.objects.filter(is_active=True).values_list('key', flat=True))


def initial_job_status():
    """INITIAL_JOB_STATUS when it is an active status, otherwise the first active status"""
    keys = active_status_keys()
    if settings.INITIAL_JOB_STATUS in keys:
        return settings.INITIAL_JOB_STATUS
    if keys:
        return keys[0]
    raise WorkflowError('No active job statuses are configured', field='status')


def send_quote(quote):
    if quote.status not in SENDABLE_QUOTE_STATUSES:
        raise QuoteStateError(f"A {quote.status} quote cannot be sent", field='status')
    quote.status = 'sent'
    quote.sent_at = timezone.now()
    quote.save(update_fields=['status', 'sent_at', 'updated_at'])
    return quote


def accept_quote(quote, user=None, job_type=None, fence_style='', pipeline=None):
    """
    Approve a quote and create its job.

    The job starts in the initial status; a pending deposit payment is created
    when the quote asks for a deposit, and the originating lead is marked as
    converted.
    """
    if quote.status not in ACCEPTABLE_QUOTE_STATUSES:
        raise QuoteStateError(f"A {quote.status} quote cannot be accepted", field='status')

    start_status = initial_job_status()
    with transaction.atomic():
        quote.status = 'approved'
        quote.approved_at = timezone.now()
        quote.save(update_fields=['status', 'approved_at', 'updated_at'])

        if job_type is None:
            job_type = quote.lead.job_fulfillment_type if quote.lead_id else 'supply_install'
        job = Job.objects.create(
            client_id=quote.client_id,
            lead_id=quote.lead_id,
            quote=quote,
            job_type=job_type,
            site_address=quote.site_address,
            status=start_status,
            fence_style=fence_style or '',
            total_length=quote.total_length,
            fence_height=quote.fence_height,
            total_amount=quote.total_amount,
            deposit_amount=quote.deposit_required,
            pipeline=pipeline,
        )
        JobStatusChange.objects.create(job=job, from_status='', to_status=start_status, changed_by=user)

        if quote.deposit_required:
            Payment.objects.create(
                client_id=quote.client_id,
                job=job,
                quote=quote,
                amount=quote.deposit_required,
                payment_type='deposit',
                status='pending',
                created_by=user,
            )

        if quote.lead_id:
            lead = quote.lead
            lead.stage = 'converted_to_job'
            lead.save(update_fields=['stage', 'updated_at'])

    logger.info(f"Quote {quote.quote_number} accepted; created job {job.job_number} in '{start_status}'")
    return job


def held_status_keys(job):
    """Every status the job has been in, including the current one"""
    held = set(job.status_changes.values_list('to_status', flat=True))
    held.add(job.status)
    return held


def change_job_status(job, target_key, user=None, notes=''):
    """
    Move a job into target_key.

    Returns the TransitionCheck; its warnings list unmet advisory
    prerequisites. Raises TransitionBlocked when a mandatory prerequisite has
    never been held.
    """
    if target_key not in active_status_keys():
        raise UnknownStatusError(f"'{target_key}' is not an active job status", field='status')

    check = evaluate_transition(target_key, held_status_keys(job))
    if not check.allowed:
        raise TransitionBlocked(target_key, check.missing_mandatory)
    if target_key == job.status:
        return check

    with transaction.atomic():
        previous = job.status
        job.status = target_key
        update_fields = ['status', 'updated_at']
        if target_key in settings.COMPLETED_JOB_STATUSES and job.completion_date is None:
            job.completion_date = timezone.now()
            update_fields.append('completion_date')
        job.save(update_fields=update_fields)
        JobStatusChange.objects.create(
            job=job, from_status=previous, to_status=target_key, changed_by=user, notes=notes or ''
        )
    logger.info(f"Job {job.job_number} moved {previous} -> {target_key}")
    return check


def apply_payment_status(payment):
    """Keep the job's deposit/final paid flags in step with a payment's status"""
    if payment.job_id is None or payment.payment_type not in ('deposit', 'final'):
        return
    job = payment.job
    paid = payment.status == 'paid'
    if payment.payment_type == 'deposit':
        job.deposit_paid = paid
        job.save(update_fields=['deposit_paid', 'updated_at'])
    else:
        job.final_paid = paid
        job.save(update_fields=['final_paid', 'updated_at'])


def _ensure_open(task, action):
    if task.status == 'completed':
        raise TaskStateError(f"A completed task cannot be {action}", field='status')


def start_production_task(task, assigned_to=None):
    """Put a production task in progress from now; assigned_to replaces the assignee when given"""
    _ensure_open(task, 'started')
    task.status = 'in_progress'
    task.start_time = timezone.now()
    update_fields = ['status', 'start_time', 'updated_at']
    if assigned_to is not None:
        task.assigned_to = assigned_to
        update_fields.append('assigned_to')
    task.save(update_fields=update_fields)
    logger.info(f"Production task {task.pk} ({task.task_type}) started on job {task.job_id}")
    return task


def complete_production_task(task, qa_result='', notes=None):
    """
    Finish a production task.

    Time spent is the whole minutes between start and now (0 when the task was
    never started). A passed QA result stamps qa_passed_at.
    """
    _ensure_open(task, 'completed again')
    now = timezone.now()
    started = task.start_time or now
    task.status = 'completed'
    task.end_time = now
    task.time_spent_minutes = max(round((now - started).total_seconds() / 60), 0)
    if qa_result:
        task.qa_result = qa_result
        if qa_result == 'passed':
            task.qa_passed_at = now
    if notes is not None:
        task.notes = notes
    task.save()
    logger.info(f"Production task {task.pk} completed in {task.time_spent_minutes} min (qa: {task.qa_result or '-'})")
    return task


def check_in_install_task(task):
    """Record the installer's arrival on site"""
    _ensure_open(task, 'checked into')
    task.status = 'on_site'
    task.check_in_time = timezone.now()
    task.save(update_fields=['status', 'check_in_time', 'updated_at'])
    logger.info(f"Installer checked in on install task {task.pk} for job {task.job_id}")
    return task


def complete_install_task(task, user=None, notes=None, variations_found=None, photos=None):
    """
    Check out of an install and move its job to INSTALL_COMPLETE_JOB_STATUS.

    The job move goes through change_job_status, so a blocked transition rolls
    the completion back. Returns the advisory warnings of the move.
    """
    _ensure_open(task, 'completed again')
    target = settings.INSTALL_COMPLETE_JOB_STATUS
    warnings = []
    with transaction.atomic():
        task.status = 'completed'
        task.check_out_time = timezone.now()
        if notes is not None:
            task.notes = notes
        if variations_found is not None:
            task.variations_found = variations_found
        if photos is not None:
            task.photos = photos
        task.save()

        if target in active_status_keys():
            check = change_job_status(task.job, target, user=user, notes=f"Install task {task.pk} completed")
            warnings = check.warnings
        else:
            logger.warning(f"Install task {task.pk} completed but '{target}' is not an active status; job unchanged")
    logger.info(f"Install task {task.pk} completed for job {task.job_id}")
    return warnings
