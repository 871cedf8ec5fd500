from django.contrib import admin
from .models import Quote, Job, JobStatusChange, Payment, BillOfMaterials, ProductionTask, InstallTask, ScheduleEvent


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'client', 'status', 'total_amount', 'deposit_required', 'sent_at', 'created_at']
    list_filter = ['status', 'is_trade_quote', 'created_at']
    search_fields = ['quote_number', 'client__name', 'site_address']
    readonly_fields = ['quote_number', 'created_at', 'updated_at']


class JobStatusChangeInline(admin.TabularInline):
    model = JobStatusChange
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'notes', 'created_at']
    can_delete = False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ['amount', 'payment_type', 'payment_method', 'status', 'paid_at']


class ProductionTaskInline(admin.TabularInline):
    model = ProductionTask
    extra = 0
    fields = ['task_type', 'status', 'assigned_to', 'time_spent_minutes', 'qa_result']


class InstallTaskInline(admin.TabularInline):
    model = InstallTask
    extra = 0
    fields = ['scheduled_date', 'installer', 'status']


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ['job_number', 'client', 'status', 'job_type', 'total_amount', 'deposit_paid', 'final_paid',
                    'scheduled_start_date']
    list_filter = ['status', 'job_type', 'deposit_paid', 'final_paid', 'pipeline']
    search_fields = ['job_number', 'client__name', 'site_address']
    readonly_fields = ['job_number', 'created_at', 'updated_at']
    filter_horizontal = ['completed_stages']
    inlines = [JobStatusChangeInline, PaymentInline, ProductionTaskInline, InstallTaskInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'client', 'job', 'amount', 'payment_type', 'payment_method', 'status', 'paid_at']
    list_filter = ['status', 'payment_type', 'payment_method']
    search_fields = ['client__name', 'job__job_number', 'reference']


@admin.register(BillOfMaterials)
class BillOfMaterialsAdmin(admin.ModelAdmin):
    list_display = ['job', 'wastage_percent', 'estimated_machine_time', 'estimated_labour_time', 'updated_at']
    search_fields = ['job__job_number']


@admin.register(ProductionTask)
class ProductionTaskAdmin(admin.ModelAdmin):
    list_display = ['job', 'task_type', 'status', 'assigned_to', 'time_spent_minutes', 'qa_result']
    list_filter = ['task_type', 'status', 'qa_result']
    search_fields = ['job__job_number', 'machine_used']


@admin.register(InstallTask)
class InstallTaskAdmin(admin.ModelAdmin):
    list_display = ['job', 'scheduled_date', 'installer', 'status', 'check_in_time', 'check_out_time']
    list_filter = ['status', 'scheduled_date']
    search_fields = ['job__job_number', 'installer__username']


@admin.register(ScheduleEvent)
class ScheduleEventAdmin(admin.ModelAdmin):
    list_display = ['title', 'event_type', 'start_date', 'end_date', 'assigned_to', 'is_confirmed']
    list_filter = ['event_type', 'is_confirmed']
    search_fields = ['title', 'job__job_number']
