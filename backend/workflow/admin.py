from django.contrib import admin
from .models import JobStatus, JobStatusDependency, KanbanColumn, JobPipeline, JobPipelineStage


class JobStatusDependencyInline(admin.TabularInline):
    model = JobStatusDependency
    fk_name = 'status'
    extra = 0


@admin.register(JobStatus)
class JobStatusAdmin(admin.ModelAdmin):
    list_display = ['key', 'label', 'is_active', 'sort_order', 'updated_at']
    list_filter = ['is_active']
    search_fields = ['key', 'label', 'description']
    ordering = ['sort_order', 'id']
    inlines = [JobStatusDependencyInline]

    def get_readonly_fields(self, request, obj=None):
        # Keys are frozen once a status exists
        if obj is not None:
            return ['key', 'created_at', 'updated_at']
        return ['created_at', 'updated_at']


@admin.register(JobStatusDependency)
class JobStatusDependencyAdmin(admin.ModelAdmin):
    list_display = ['status', 'prerequisite', 'dependency_type', 'created_at']
    list_filter = ['dependency_type']
    search_fields = ['status__key', 'prerequisite__key']


@admin.register(KanbanColumn)
class KanbanColumnAdmin(admin.ModelAdmin):
    list_display = ['title', 'default_status', 'color', 'is_active', 'sort_order']
    list_filter = ['is_active', 'color']
    search_fields = ['title']
    ordering = ['sort_order', 'id']


class JobPipelineStageInline(admin.TabularInline):
    model = JobPipelineStage
    extra = 0
    ordering = ['sort_order', 'id']


@admin.register(JobPipeline)
class JobPipelineAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']
    inlines = [JobPipelineStageInline]


@admin.register(JobPipelineStage)
class JobPipelineStageAdmin(admin.ModelAdmin):
    list_display = ['name', 'pipeline', 'completion_type', 'is_active', 'sort_order']
    list_filter = ['pipeline', 'completion_type', 'is_active']
    search_fields = ['name', 'pipeline__name']
