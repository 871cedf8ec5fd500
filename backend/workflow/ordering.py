"""
Full-list ordering for statuses, kanban columns and pipeline stages.

An order is only ever written as the complete ordered id list of a scope; a
single-item move is expressed as an adjacent swap followed by a full write.
"""
import logging

from django.db import transaction
from django.db.models import Max

from .exceptions import InvalidOrderError

logger = logging.getLogger('backend.workflow')

UP = 'up'
DOWN = 'down'


def parse_order_payload(data, field='ids'):
    """
    Accept either a bare JSON array of ids or an object holding the array
    under `field` (``{"ids": [...]}``, ``{"stageIds": [...]}``).
    """
    if isinstance(data, dict):
        for name in (field, 'ids'):
            if name in data:
                data = data[name]
                break
        else:
            raise InvalidOrderError(f"Expected the complete ordered id list under '{field}'", field=field)
    if not isinstance(data, (list, tuple)):
        raise InvalidOrderError('Expected the complete ordered id list as an array', field=field)
    ids = []
    for value in data:
        if isinstance(value, bool):
            raise InvalidOrderError(f"Invalid id: {value!r}", field=field)
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            raise InvalidOrderError(f"Invalid id: {value!r}", field=field)
    return ids


def swap_adjacent(items, index, direction):
    """
    Return a copy of items with the element at index swapped with its
    neighbour in direction. Moving past either end returns an unchanged copy.
    """
    result = list(items)
    if direction not in (UP, DOWN):
        raise InvalidOrderError(f"Direction must be '{UP}' or '{DOWN}'", field='direction')
    target = index - 1 if direction == UP else index + 1
    if index < 0 or index >= len(result) or target < 0 or target >= len(result):
        return result
    result[index], result[target] = result[target], result[index]
    return result


def resolve_order(queryset, ids):
    """
    Return the objects of queryset arranged in the order of ids.

    ids must name every object in the queryset exactly once.
    """
    objects = {obj.pk: obj for obj in queryset}
    if len(ids) != len(set(ids)):
        raise InvalidOrderError('Order contains duplicate ids')
    unknown = [pk for pk in ids if pk not in objects]
    if unknown:
        raise InvalidOrderError(f"Unknown ids in order: {', '.join(str(pk) for pk in unknown)}")
    missing = [pk for pk in objects if pk not in set(ids)]
    if missing:
        raise InvalidOrderError(
            f"Order must list every item; missing ids: {', '.join(str(pk) for pk in missing)}"
        )
    ordered = [objects[pk] for pk in ids]
    for position, obj in enumerate(ordered):
        obj.sort_order = position
    return ordered


def persist_order(model, ordered):
    """Write the sort_order of already arranged objects in one transaction"""
    with transaction.atomic():
        model.objects.bulk_update(ordered, ['sort_order'])
    logger.info(f"Persisted order for {len(ordered)} {model._meta.verbose_name_plural}")
    return ordered


def move_item(queryset, pk, direction):
    """
    Swap the object pk with its neighbour and return the complete new order,
    or None when the move would run past either end.
    """
    items = list(queryset)
    ids = [obj.pk for obj in items]
    if pk not in ids:
        raise InvalidOrderError(f"Unknown id: {pk}")
    index = ids.index(pk)
    new_ids = [obj.pk for obj in swap_adjacent(items, index, direction)]
    if new_ids == ids:
        return None
    return resolve_order(items, new_ids)


def next_sort_order(queryset):
    """Sort position for an item appended to the end of queryset"""
    current = queryset.aggregate(max_order=Max('sort_order'))['max_order']
    return 0 if current is None else current + 1
