from django.contrib import admin
from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'email', 'client_type', 'trade_discount_level', 'company_name', 'created_at']
    list_filter = ['client_type', 'trade_discount_level', 'created_at']
    search_fields = ['name', 'phone', 'email', 'company_name', 'abn']
    ordering = ['name']
