"""
Form staging rules for the workflow configuration editors.

These functions work on plain dicts so the same rules apply to a form being
edited and to the payload the REST endpoints receive.
"""
import re

from .models import KANBAN_COLORS, DEFAULT_KANBAN_COLOR, JobStatusDependency

COLOR_NAMES = [name for name, _ in KANBAN_COLORS]
DEPENDENCY_TYPES = [name for name, _ in JobStatusDependency.DEPENDENCY_TYPE_CHOICES]
DEFAULT_DEPENDENCY_TYPE = 'mandatory'

_WHITESPACE = re.compile(r'\s+')


def normalize_status_key(value):
    """Lowercase the key and replace whitespace runs with underscores"""
    if value is None:
        return ''
    return _WHITESPACE.sub('_', str(value).strip().lower())


def new_column_form():
    return {
        'title': '',
        'statuses': [],
        'default_status': '',
        'color': DEFAULT_KANBAN_COLOR,
        'is_active': True,
    }


def repair_default_status(statuses, default_status):
    """Keep default_status when still selected, else fall back to the first status or ''"""
    if default_status and default_status in statuses:
        return default_status
    return statuses[0] if statuses else ''


def toggle_column_status(form, key):
    """
    Add key to the column's statuses, or remove it when already present.

    Returns a new form; removing the default falls back to the first remaining
    status, or '' when none remain.
    """
    statuses = list(form.get('statuses') or [])
    if key in statuses:
        statuses.remove(key)
    else:
        statuses.append(key)
    updated = dict(form)
    updated['statuses'] = statuses
    updated['default_status'] = repair_default_status(statuses, form.get('default_status') or '')
    return updated


def validate_column_form(form):
    """Return a dict of field errors; empty when the column can be saved"""
    errors = {}
    title = (form.get('title') or '').strip()
    statuses = form.get('statuses') or []
    default_status = form.get('default_status') or ''
    color = form.get('color') or DEFAULT_KANBAN_COLOR

    if not title:
        errors['title'] = 'Title is required.'
    if not statuses:
        errors['statuses'] = 'Select at least one status.'
    elif len(statuses) != len(set(statuses)):
        errors['statuses'] = 'Statuses must not repeat.'
    if not default_status:
        errors['default_status'] = 'A default status is required.'
    elif statuses and default_status not in statuses:
        errors['default_status'] = 'The default status must be one of the selected statuses.'
    if color not in COLOR_NAMES:
        errors['color'] = f"Colour must be one of: {', '.join(COLOR_NAMES)}."
    return errors


def validate_status_form(form):
    """Return a dict of field errors for a new status; the key is normalised first"""
    errors = {}
    if not normalize_status_key(form.get('key')):
        errors['key'] = 'Key is required.'
    if not (form.get('label') or '').strip():
        errors['label'] = 'Label is required.'
    return errors


def available_prerequisites(status_keys, target_key, selected):
    """Status keys that may still be added as prerequisites of target_key"""
    selected = set(selected or [])
    return [key for key in status_keys if key != target_key and key not in selected]


def add_dependency(dependencies, status_keys, target_key, prerequisite_key=None):
    """
    Append a dependency row to the staged list.

    Without an explicit prerequisite the first available key is used; when
    nothing is available the list is returned unchanged.
    """
    selected = [dep['prerequisite_key'] for dep in dependencies]
    available = available_prerequisites(status_keys, target_key, selected)
    if prerequisite_key is None:
        if not available:
            return list(dependencies)
        prerequisite_key = available[0]
    elif prerequisite_key not in available:
        return list(dependencies)
    return list(dependencies) + [{
        'prerequisite_key': prerequisite_key,
        'dependency_type': DEFAULT_DEPENDENCY_TYPE,
    }]
