import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404

from backend.core.cache_utils import get_or_build, optimistic_cache_write
from backend.core.exports import csv_response
from backend.core.model_cache import LEAD_BOARD_KEY, BOARD_CACHE_TTL
from backend.core.utils import create_audit_log, get_username
from .board import build_board, board_with_move
from .filters import LeadFilter
from .models import Lead
from .serializers import LeadSerializer, LeadMoveSerializer
from .stages import map_stage_to_status, stage_for_move

logger = logging.getLogger('backend.leads')

UNEXPECTED_ERROR = {'error': 'An unexpected error occurred'}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def lead_list_create(request):
    """List leads (?search=, ?stage=, ?status=, ?source=, ?assigned_to=) or create a lead"""
    if request.method == 'GET':
        queryset = Lead.objects.select_related('client', 'assigned_to')
        filterset = LeadFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = LeadSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = LeadSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Invalid lead from {get_username(request)}: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    lead = serializer.save()
    create_audit_log(request=request, action='create', model_name='Lead', object_id=lead.id,
                     object_reference=lead.lead_number)
    logger.info(f"Lead {lead.lead_number} created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def lead_detail(request, pk):
    """Retrieve, update or delete a lead"""
    lead = get_object_or_404(Lead.objects.select_related('client', 'assigned_to'), pk=pk)

    if request.method == 'GET':
        return Response(LeadSerializer(lead).data)
    elif request.method in ('PUT', 'PATCH'):
        previous_stage = lead.stage
        serializer = LeadSerializer(lead, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        changes = dict(request.data)
        if lead.stage != previous_stage:
            changes['previous_stage'] = previous_stage
        create_audit_log(request=request, action='update', model_name='Lead', object_id=lead.id,
                         object_reference=lead.lead_number, changes=changes)
        return Response(serializer.data)
    else:  # DELETE
        lead_number = lead.lead_number
        lead.delete()
        create_audit_log(request=request, action='delete', model_name='Lead', object_id=pk,
                         object_reference=lead_number)
        logger.info(f"Lead {lead_number} deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def lead_board(request):
    """Leads grouped by board status"""
    return Response(get_or_build(LEAD_BOARD_KEY, build_board, BOARD_CACHE_TTL))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def lead_move(request, pk):
    """
    Drop a lead into a board status.

    The cached board shows the move immediately; if saving the lead fails the
    board reverts to what was cached before.
    """
    lead = get_object_or_404(Lead, pk=pk)
    serializer = LeadMoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    target_status = serializer.validated_data['status']
    previous_stage = lead.stage
    new_stage = stage_for_move(previous_stage, target_status)
    if new_stage == previous_stage:
        return Response(LeadSerializer(lead).data)

    board = get_or_build(LEAD_BOARD_KEY, build_board, BOARD_CACHE_TTL)
    try:
        with optimistic_cache_write(LEAD_BOARD_KEY, board_with_move(board, lead.id, new_stage), BOARD_CACHE_TTL):
            with transaction.atomic():
                lead.stage = new_stage
                lead.save(update_fields=['stage', 'updated_at'])
                create_audit_log(
                    request=request,
                    action='lead_move',
                    model_name='Lead',
                    object_id=lead.id,
                    object_reference=lead.lead_number,
                    changes={'from_stage': previous_stage, 'to_stage': new_stage, 'status': target_status},
                )
    except Exception as e:
        logger.error(f"Failed to move lead {lead.lead_number} by {get_username(request)}: {e}", exc_info=True)
        return Response(UNEXPECTED_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info(
        f"Lead {lead.lead_number} moved {previous_stage} -> {new_stage} "
        f"({map_stage_to_status(new_stage)}) by {get_username(request)}"
    )
    return Response(LeadSerializer(lead).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def lead_convert_to_quote(request, pk):
    """Create a draft quote from a lead and mark the lead as quoted"""
    from backend.jobs.models import Quote
    from backend.jobs.serializers import QuoteSerializer

    lead = get_object_or_404(Lead.objects.select_related('client'), pk=pk)
    if lead.client_id is None:
        return Response(
            {'error': 'Assign a client to this lead before creating a quote', 'field': 'client'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    with transaction.atomic():
        quote = Quote.objects.create(
            client=lead.client,
            lead=lead,
            site_address=lead.site_address,
            total_length=lead.fence_length,
            is_trade_quote=lead.lead_type == 'trade',
            notes=lead.notes,
        )
        previous_stage = lead.stage
        lead.stage = 'quote_sent'
        lead.save(update_fields=['stage', 'updated_at'])
        create_audit_log(
            request=request,
            action='lead_convert',
            model_name='Lead',
            object_id=lead.id,
            object_reference=lead.lead_number,
            changes={'quote': quote.quote_number, 'from_stage': previous_stage},
        )

    logger.info(f"Lead {lead.lead_number} converted to quote {quote.quote_number} by {get_username(request)}")
    return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def lead_export(request):
    """Download every lead as CSV"""
    leads = Lead.objects.select_related('client', 'assigned_to')
    rows = (
        [lead.lead_number, lead.client.name if lead.client else '', lead.stage, map_stage_to_status(lead.stage),
         lead.source, lead.lead_type, lead.job_fulfillment_type, lead.site_address, lead.fence_style,
         lead.fence_length, lead.assigned_to.display_name if lead.assigned_to else '',
         lead.follow_up_date.isoformat() if lead.follow_up_date else '', lead.created_at.isoformat()]
        for lead in leads
    )
    return csv_response(
        'leads',
        ['lead_number', 'client', 'stage', 'status', 'source', 'lead_type', 'job_fulfillment_type',
         'site_address', 'fence_style', 'fence_length', 'assigned_to', 'follow_up_date', 'created_at'],
        rows,
    )
