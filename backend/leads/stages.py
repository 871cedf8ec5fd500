"""
Lead stages and the coarse board buckets (lead statuses) they collapse into.

Every stage in LEAD_STAGES must appear in STAGE_TO_STATUS; the module refuses
to import otherwise, so adding a stage without deciding its bucket fails at
startup instead of silently landing in "new".
"""
from functools import lru_cache
import logging

from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger('backend.leads')

LEAD_STAGES = [
    ('new', 'New'),
    ('contacted', 'Contacted'),
    ('site_visit_scheduled', 'Site Visit Scheduled'),
    ('site_visit_complete', 'Site Visit Complete'),
    ('quote_sent', 'Quote Sent'),
    ('quote_revised', 'Quote Revised'),
    ('approved', 'Approved'),
    ('converted_to_job', 'Converted to Job'),
    ('declined', 'Declined'),
    ('lost', 'Lost'),
]

LEAD_STATUSES = [
    ('new', 'New'),
    ('contacted', 'Contacted'),
    ('quoted', 'Quoted'),
    ('approved', 'Approved'),
    ('declined', 'Declined'),
]

STAGE_TO_STATUS = {
    'new': 'new',
    'contacted': 'contacted',
    'site_visit_scheduled': 'contacted',
    'site_visit_complete': 'contacted',
    'quote_sent': 'quoted',
    'quote_revised': 'quoted',
    'approved': 'approved',
    'converted_to_job': 'approved',
    'declined': 'declined',
    'lost': 'declined',
}

# Canonical stage a card takes when dropped into a bucket
STATUS_TO_STAGE = {
    'new': 'new',
    'contacted': 'contacted',
    'quoted': 'quote_sent',
    'approved': 'approved',
    'declined': 'declined',
}

STAGE_KEYS = [key for key, _ in LEAD_STAGES]
STATUS_KEYS = [key for key, _ in LEAD_STATUSES]
FALLBACK_STATUS = 'new'


def _check_tables():
    missing = [stage for stage in STAGE_KEYS if stage not in STAGE_TO_STATUS]
    extra = [stage for stage in STAGE_TO_STATUS if stage not in STAGE_KEYS]
    if missing or extra:
        raise ImproperlyConfigured(
            f"Lead stage mapping out of sync with LEAD_STAGES (unmapped: {missing}, unknown: {extra})"
        )
    bad_buckets = {stage: status for stage, status in STAGE_TO_STATUS.items() if status not in STATUS_KEYS}
    if bad_buckets:
        raise ImproperlyConfigured(f"Lead stages mapped to unknown statuses: {bad_buckets}")
    if set(STATUS_TO_STAGE) != set(STATUS_KEYS):
        raise ImproperlyConfigured("Every lead status needs a canonical stage")
    for status, stage in STATUS_TO_STAGE.items():
        if STAGE_TO_STATUS.get(stage) != status:
            raise ImproperlyConfigured(f"Canonical stage '{stage}' does not map back to '{status}'")


_check_tables()


@lru_cache(maxsize=None)
def map_stage_to_status(stage):
    """Bucket for a lead stage; anything outside the vocabulary is 'new'"""
    status = STAGE_TO_STATUS.get(stage)
    if status is None:
        logger.warning(f"Unknown lead stage {stage!r}, showing it as '{FALLBACK_STATUS}'")
        return FALLBACK_STATUS
    return status


def map_status_to_stage(status):
    """
    Canonical stage for a bucket. Lossy: several stages share a bucket, so
    map_status_to_stage(map_stage_to_status(stage)) is not always stage.
    """
    try:
        return STATUS_TO_STAGE[status]
    except KeyError:
        raise ValueError(f"Unknown lead status: {status!r}")


def stage_for_move(current_stage, target_status):
    """
    Stage a lead takes when its card is dropped into target_status.

    A lead already in the target bucket keeps its finer-grained stage;
    otherwise it takes the bucket's canonical stage.
    """
    canonical = map_status_to_stage(target_status)
    if current_stage in STAGE_TO_STATUS and STAGE_TO_STATUS[current_stage] == target_status:
        return current_stage
    return canonical
