from django.urls import path
from .views import (
    product_list_create, product_detail, product_stock, stock_adjustment_list,
    fence_style_list_create, fence_style_detail,
)

urlpatterns = [
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/stock/', product_stock, name='product-stock'),
    path('stock-adjustments/', stock_adjustment_list, name='stock-adjustment-list'),
    path('fence-styles/', fence_style_list_create, name='fence-style-list-create'),
    path('fence-styles/<int:pk>/', fence_style_detail, name='fence-style-detail'),
]
