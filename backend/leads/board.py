"""
Lead board: leads grouped into their coarse status buckets.

The board is a cached read. A move rewrites the cached board first (the card
appears in its new bucket straight away) and then persists the new stage.
"""
import copy

from .models import Lead
from .serializers import LeadCardSerializer
from .stages import LEAD_STATUSES, map_stage_to_status


def build_board():
    leads = Lead.objects.select_related('client', 'assigned_to').order_by('-created_at', '-id')
    columns = [
        {'status': key, 'label': label, 'count': 0, 'leads': []}
        for key, label in LEAD_STATUSES
    ]
    by_status = {column['status']: column for column in columns}
    for card in LeadCardSerializer(leads, many=True).data:
        column = by_status[map_stage_to_status(card['stage'])]
        column['leads'].append(card)
        column['count'] += 1
    return {'columns': columns}


def board_with_move(board, lead_id, new_stage):
    """
    Copy of board with the card for lead_id moved to the bucket of new_stage.

    A card that is not on the board is returned unchanged.
    """
    moved = copy.deepcopy(board)
    card = None
    for column in moved['columns']:
        for index, candidate in enumerate(column['leads']):
            if candidate['id'] == lead_id:
                card = column['leads'].pop(index)
                column['count'] -= 1
                break
        if card is not None:
            break
    if card is None:
        return moved

    card['stage'] = new_stage
    card['status'] = map_stage_to_status(new_stage)
    for column in moved['columns']:
        if column['status'] == card['status']:
            column['leads'].insert(0, card)
            column['count'] += 1
            break
    return moved
