from django.contrib import admin
from .models import Product, StockAdjustment, FenceStyle


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'category', 'sell_price', 'stock_on_hand', 'reorder_point', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['sku', 'name']
    ordering = ['category', 'name']


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['product', 'adjustment_type', 'quantity', 'previous_quantity', 'new_quantity', 'reason', 'created_by', 'created_at']
    list_filter = ['adjustment_type', 'reason', 'created_at']
    search_fields = ['product__name', 'product__sku', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['created_at']


@admin.register(FenceStyle)
class FenceStyleAdmin(admin.ModelAdmin):
    list_display = ['name', 'base_price', 'is_active', 'updated_at']
    list_filter = ['is_active']
    search_fields = ['name']
