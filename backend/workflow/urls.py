from django.urls import path
from .views import (
    job_status_list_create, job_status_detail, job_status_reorder, job_status_move,
    dependency_list, dependency_detail, dependency_available,
    kanban_column_list_create, kanban_column_detail, kanban_column_toggle_status,
    kanban_column_reorder, kanban_column_move,
    pipeline_list_create, pipeline_detail,
    pipeline_stage_list_create, pipeline_stage_detail, pipeline_stage_reorder, pipeline_stage_move,
)

urlpatterns = [
    # Job status registry
    path('job-statuses/', job_status_list_create, name='job-status-list-create'),
    path('job-statuses/reorder/', job_status_reorder, name='job-status-reorder'),
    path('job-statuses/<int:pk>/', job_status_detail, name='job-status-detail'),
    path('job-statuses/<int:pk>/move/', job_status_move, name='job-status-move'),

    # Dependencies (keyed by status key)
    path('job-status-dependencies/', dependency_list, name='job-status-dependency-list'),
    path('job-status-dependencies/<str:status_key>/', dependency_detail, name='job-status-dependency-detail'),
    path('job-status-dependencies/<str:status_key>/available/', dependency_available,
         name='job-status-dependency-available'),

    # Kanban columns
    path('kanban-columns/', kanban_column_list_create, name='kanban-column-list-create'),
    path('kanban-columns/reorder/', kanban_column_reorder, name='kanban-column-reorder'),
    path('kanban-columns/<int:pk>/', kanban_column_detail, name='kanban-column-detail'),
    path('kanban-columns/<int:pk>/move/', kanban_column_move, name='kanban-column-move'),
    path('kanban-columns/<int:pk>/toggle-status/', kanban_column_toggle_status, name='kanban-column-toggle-status'),

    # Pipelines and their stages
    path('job-pipelines/', pipeline_list_create, name='pipeline-list-create'),
    path('job-pipelines/<int:pk>/', pipeline_detail, name='pipeline-detail'),
    path('job-pipelines/<int:pk>/stages/', pipeline_stage_list_create, name='pipeline-stage-list-create'),
    path('job-pipelines/<int:pk>/stages/reorder/', pipeline_stage_reorder, name='pipeline-stage-reorder'),
    path('job-pipelines/<int:pk>/stages/<int:stage_pk>/', pipeline_stage_detail, name='pipeline-stage-detail'),
    path('job-pipelines/<int:pk>/stages/<int:stage_pk>/move/', pipeline_stage_move, name='pipeline-stage-move'),
]
