from django.contrib import admin
from .models import Lead


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ['lead_number', 'client', 'stage', 'source', 'lead_type', 'assigned_to', 'follow_up_date', 'created_at']
    list_filter = ['stage', 'source', 'lead_type', 'job_fulfillment_type', 'created_at']
    search_fields = ['lead_number', 'client__name', 'site_address', 'description']
    readonly_fields = ['lead_number', 'created_at', 'updated_at']
    ordering = ['-created_at']
