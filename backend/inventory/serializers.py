from rest_framework import serializers
from .models import Product, StockAdjustment, FenceStyle


class ProductSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'description', 'category', 'dimensions', 'color', 'cost_price',
            'sell_price', 'trade_price', 'stock_on_hand', 'reorder_point', 'is_low_stock', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['stock_on_hand', 'created_at', 'updated_at']

    def validate_sku(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError('SKU is required.')
        return value

    def validate(self, attrs):
        for field in ('cost_price', 'sell_price', 'trade_price'):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: 'Prices cannot be negative.'})
        return attrs


class ProductCreateSerializer(ProductSerializer):
    """Opening stock can be given when a product is created"""
    class Meta(ProductSerializer.Meta):
        read_only_fields = ['created_at', 'updated_at']


class StockAdjustmentSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = StockAdjustment
        fields = [
            'id', 'product', 'product_name', 'adjustment_type', 'quantity', 'reason', 'previous_quantity',
            'new_quantity', 'job', 'notes', 'created_by', 'created_by_name', 'created_at'
        ]
        read_only_fields = ['product', 'previous_quantity', 'new_quantity', 'created_by', 'created_at']

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by else 'System'

    def validate(self, attrs):
        quantity = attrs.get('quantity')
        if attrs.get('adjustment_type') == 'count':
            if quantity < 0:
                raise serializers.ValidationError({'quantity': 'A stock count cannot be negative.'})
        elif quantity is not None and quantity <= 0:
            raise serializers.ValidationError({'quantity': 'Quantity must be greater than zero.'})
        return attrs


class FenceStyleSerializer(serializers.ModelSerializer):
    class Meta:
        model = FenceStyle
        fields = ['id', 'name', 'description', 'standard_heights', 'post_types', 'picket_spacing_options',
                  'base_price', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required.')
        return value.strip()

    def validate_base_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Prices cannot be negative.')
        return value

    def validate(self, attrs):
        for field in ('standard_heights', 'post_types', 'picket_spacing_options'):
            if field in attrs and not isinstance(attrs[field], list):
                raise serializers.ValidationError({field: 'Must be a list.'})
        return attrs
