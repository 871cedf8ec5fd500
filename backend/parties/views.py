import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db.models.deletion import ProtectedError
from django.shortcuts import get_object_or_404

from backend.core.exports import csv_response
from backend.core.utils import create_audit_log, get_username
from .filters import ClientFilter
from .models import Client
from .serializers import ClientSerializer

logger = logging.getLogger('backend.parties')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def client_list_create(request):
    """List clients (?search=, ?client_type=) or create a new client"""
    if request.method == 'GET':
        filterset = ClientFilter(request.query_params, queryset=Client.objects.all())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ClientSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = ClientSerializer(data=request.data)
    if serializer.is_valid():
        client = serializer.save()
        create_audit_log(request=request, action='create', model_name='Client', object_id=client.id,
                         object_name=client.name)
        logger.info(f"Client '{client.name}' created by {get_username(request)}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    client = get_object_or_404(Client, pk=pk)

    if request.method == 'GET':
        from backend.jobs.models import Job
        data = ClientSerializer(client).data
        jobs = Job.objects.filter(client=client)
        data['job_count'] = jobs.count()
        data['active_job_count'] = jobs.exclude(status__in=settings.COMPLETED_JOB_STATUSES).count()
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        name = client.name
        try:
            client.delete()
        except ProtectedError:
            logger.warning(f"Client '{name}' not deleted by {get_username(request)}: quotes or jobs reference it")
            return Response(
                {'error': 'This client has quotes or jobs and cannot be deleted'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        create_audit_log(request=request, action='delete', model_name='Client', object_id=pk, object_name=name)
        logger.info(f"Client '{name}' deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_jobs(request, pk):
    from backend.jobs.serializers import JobSerializer
    client = get_object_or_404(Client, pk=pk)
    return Response(JobSerializer(client.jobs.select_related('client', 'quote', 'assigned_installer'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_quotes(request, pk):
    from backend.jobs.serializers import QuoteSerializer
    client = get_object_or_404(Client, pk=pk)
    return Response(QuoteSerializer(client.quotes.select_related('client', 'lead'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_payments(request, pk):
    """Every payment from a client, newest first"""
    from backend.jobs.serializers import PaymentSerializer
    client = get_object_or_404(Client, pk=pk)
    return Response(PaymentSerializer(client.payments.select_related('client', 'job'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_export(request):
    """Download every client as CSV"""
    clients = Client.objects.all()
    rows = (
        [c.id, c.name, c.phone, c.email, c.address, c.client_type, c.trade_discount_level,
         c.company_name, c.abn, c.notes, c.created_at.isoformat()]
        for c in clients
    )
    return csv_response(
        'clients',
        ['id', 'name', 'phone', 'email', 'address', 'client_type', 'trade_discount_level',
         'company_name', 'abn', 'notes', 'created_at'],
        rows,
    )
