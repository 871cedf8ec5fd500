from django.db import models
from decimal import Decimal


class Product(models.Model):
    """Fencing materials held in stock"""
    CATEGORY_CHOICES = [
        ('posts', 'Posts'),
        ('rails', 'Rails'),
        ('pickets', 'Pickets'),
        ('caps', 'Caps'),
        ('gates', 'Gates'),
        ('hardware', 'Hardware'),
        ('accessories', 'Accessories'),
    ]

    sku = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    dimensions = models.CharField(max_length=100, blank=True)
    color = models.CharField(max_length=50, blank=True)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    sell_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    trade_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    stock_on_hand = models.IntegerField(default=0)
    reorder_point = models.PositiveIntegerField(default=10)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.sku} - {self.name}"

    @property
    def is_low_stock(self):
        return self.stock_on_hand <= self.reorder_point

    class Meta:
        db_table = 'products'
        ordering = ['category', 'name', 'id']
        indexes = [
            models.Index(fields=['category'], name='products_category_idx'),
        ]


class StockAdjustment(models.Model):
    """Stock adjustments (in/out/count)"""
    ADJUSTMENT_TYPE_CHOICES = [
        ('in', 'Stock In'),
        ('out', 'Stock Out'),
        ('count', 'Stock Count'),
    ]

    REASON_CHOICES = [
        ('received', 'Received'),
        ('job_usage', 'Used on Job'),
        ('damaged', 'Damaged'),
        ('found', 'Found'),
        ('correction', 'Correction'),
        ('other', 'Other'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='adjustments')
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPE_CHOICES)
    quantity = models.IntegerField()
    reason = models.CharField(max_length=50, choices=REASON_CHOICES, default='correction')
    previous_quantity = models.IntegerField()
    new_quantity = models.IntegerField()
    job = models.ForeignKey('jobs.Job', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_adjustments')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='stock_adjustments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_adjustments'
        ordering = ['-created_at', '-id']


class FenceStyle(models.Model):
    """Catalogue of fence styles offered on quotes"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    # Lists of the options offered, e.g. [900, 1200, 1800] mm heights
    standard_heights = models.JSONField(default=list, blank=True)
    post_types = models.JSONField(default=list, blank=True)
    picket_spacing_options = models.JSONField(default=list, blank=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'fence_styles'
        ordering = ['name']
