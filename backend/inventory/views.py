import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404

from backend.core.utils import create_audit_log, get_username, parse_bool
from .filters import ProductFilter
from .models import Product, StockAdjustment, FenceStyle
from .serializers import ProductSerializer, ProductCreateSerializer, StockAdjustmentSerializer, FenceStyleSerializer

logger = logging.getLogger('backend.inventory')


def apply_adjustment(product, adjustment_type, quantity):
    """New stock level after an adjustment; stock out never goes below 0"""
    if adjustment_type == 'in':
        return product.stock_on_hand + quantity
    if adjustment_type == 'out':
        return max(product.stock_on_hand - quantity, 0)
    return quantity


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List products (?low_stock=true, ?category=, ?search=) or create a product"""
    if request.method == 'GET':
        filterset = ProductFilter(request.query_params, queryset=Product.objects.all())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(ProductSerializer(filterset.qs, many=True).data)

    serializer = ProductCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        product = serializer.save()
    except IntegrityError:
        return Response({'error': 'A product with this SKU already exists'}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='Product', object_id=product.id,
                     object_name=product.name, object_reference=product.sku)
    logger.info(f"Product {product.sku} created by {get_username(request)}")
    return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product. Stock levels change through the stock endpoint."""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            serializer.save()
        except IntegrityError:
            return Response({'error': 'A product with this SKU already exists'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', model_name='Product', object_id=product.id,
                         object_name=product.name, object_reference=product.sku, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        sku = product.sku
        product.delete()
        create_audit_log(request=request, action='delete', model_name='Product', object_id=pk, object_reference=sku)
        logger.info(f"Product {sku} deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_stock(request, pk):
    """List a product's stock adjustments or record one (in, out or count)"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        adjustments = product.adjustments.select_related('created_by')
        return Response(StockAdjustmentSerializer(adjustments, many=True).data)

    serializer = StockAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        product = Product.objects.select_for_update().get(pk=product.pk)
        previous_quantity = product.stock_on_hand
        new_quantity = apply_adjustment(
            product, serializer.validated_data['adjustment_type'], serializer.validated_data['quantity']
        )
        adjustment = serializer.save(
            product=product,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            created_by=request.user,
        )
        product.stock_on_hand = new_quantity
        product.save(update_fields=['stock_on_hand', 'updated_at'])

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        object_reference=product.sku,
        changes={
            'adjustment_type': adjustment.adjustment_type,
            'quantity': adjustment.quantity,
            'reason': adjustment.reason,
            'previous_quantity': previous_quantity,
            'new_quantity': new_quantity,
        },
    )
    logger.info(f"Stock for {product.sku} adjusted {previous_quantity} -> {new_quantity} by {get_username(request)}")
    data = StockAdjustmentSerializer(adjustment).data
    data['product_detail'] = ProductSerializer(product).data
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_adjustment_list(request):
    """Recent stock adjustments across all products"""
    adjustments = StockAdjustment.objects.select_related('product', 'created_by')[:200]
    return Response(StockAdjustmentSerializer(adjustments, many=True).data)


# ==================== FENCE STYLES ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def fence_style_list_create(request):
    """List fence styles (?active=true for the ones offered) or add one"""
    if request.method == 'GET':
        queryset = FenceStyle.objects.all()
        active = parse_bool(request.query_params.get('active'))
        if active is not None:
            queryset = queryset.filter(is_active=active)
        return Response(FenceStyleSerializer(queryset, many=True).data)

    serializer = FenceStyleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        style = serializer.save()
    except IntegrityError:
        return Response({'error': 'A fence style with this name already exists'}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request=request, action='create', model_name='FenceStyle', object_id=style.id,
                     object_name=style.name)
    logger.info(f"Fence style '{style.name}' created by {get_username(request)}")
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def fence_style_detail(request, pk):
    style = get_object_or_404(FenceStyle, pk=pk)

    if request.method == 'GET':
        return Response(FenceStyleSerializer(style).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = FenceStyleSerializer(style, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            serializer.save()
        except IntegrityError:
            return Response({'error': 'A fence style with this name already exists'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='update', model_name='FenceStyle', object_id=style.id,
                         object_name=style.name, changes=dict(request.data))
        return Response(serializer.data)
    else:  # DELETE
        name = style.name
        style.delete()
        create_audit_log(request=request, action='delete', model_name='FenceStyle', object_id=pk, object_name=name)
        logger.info(f"Fence style '{name}' deleted by {get_username(request)}")
        return Response(status=status.HTTP_204_NO_CONTENT)
