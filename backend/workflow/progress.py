"""
Pipeline progress and kanban board grouping for jobs.
"""
from decimal import Decimal
import logging

from .exceptions import StageCompletionError
from .models import KANBAN_COLOR_CLASSES, DEFAULT_KANBAN_COLOR

logger = logging.getLogger('backend.workflow')


def percentage(part, whole):
    """Whole-number percentage; 0 when whole is 0"""
    if not whole:
        return 0
    return int(round(part * 100 / whole))


def pipeline_progress(job):
    """
    Progress of a job through its pipeline's active stages.

    Returns a dict with the completed/total counts and the rounded percentage.
    A job without a pipeline reports no stages.
    """
    if job.pipeline_id is None:
        return {'pipeline': None, 'completed': 0, 'total': 0, 'percent': 0, 'stages': []}

    stages = [stage for stage in job.pipeline.stages.all() if stage.is_active]
    stages.sort(key=lambda stage: (stage.sort_order, stage.id))
    completed_ids = set(job.completed_stages.values_list('id', flat=True))
    completed = sum(1 for stage in stages if stage.id in completed_ids)
    return {
        'pipeline': job.pipeline_id,
        'completed': completed,
        'total': len(stages),
        'percent': percentage(completed, len(stages)),
        'stages': [
            {
                'id': stage.id,
                'name': stage.name,
                'icon': stage.icon,
                'completion_type': stage.completion_type,
                'completed': stage.id in completed_ids,
            }
            for stage in stages
        ],
    }


def complete_stage(job, stage):
    """Mark a manual stage of the job's pipeline as complete"""
    if job.pipeline_id is None or stage.pipeline_id != job.pipeline_id:
        raise StageCompletionError("Stage does not belong to this job's pipeline", field='stage')
    if not stage.is_active:
        raise StageCompletionError('Inactive stages cannot be completed', field='stage')
    if stage.completion_type != 'manual':
        raise StageCompletionError('Automatic stages are completed by the system, not by hand', field='stage')
    job.completed_stages.add(stage)
    logger.info(f"Completed stage '{stage.name}' for job {job.job_number}")
    return pipeline_progress(job)


def build_board(columns, jobs, describe_job):
    """
    Group jobs into the given columns (in order) by their status key.

    describe_job turns a job into the card dict shown on the board. Jobs whose
    status no column claims are returned under 'unassigned'.
    """
    column_for_status = {}
    board_columns = []
    for column in columns:
        entry = {
            'id': column.id,
            'title': column.title,
            'statuses': list(column.statuses),
            'default_status': column.default_status,
            'color': column.color,
            'color_classes': KANBAN_COLOR_CLASSES.get(column.color, KANBAN_COLOR_CLASSES[DEFAULT_KANBAN_COLOR]),
            'count': 0,
            'total_value': Decimal('0.00'),
            'jobs': [],
        }
        board_columns.append(entry)
        for status_key in column.statuses:
            # First column to claim a status wins
            column_for_status.setdefault(status_key, entry)

    unassigned = []
    for job in jobs:
        card = describe_job(job)
        entry = column_for_status.get(job.status)
        if entry is None:
            unassigned.append(card)
            continue
        entry['jobs'].append(card)
        entry['count'] += 1
        entry['total_value'] += job.total_amount or Decimal('0.00')

    for entry in board_columns:
        entry['total_value'] = str(entry['total_value'])
    return {'columns': board_columns, 'unassigned': unassigned}
