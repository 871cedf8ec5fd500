from django.urls import path
from .views import (
    quote_list_create, quote_next_number, quote_detail, quote_send, quote_accept,
    job_list_create, job_detail, job_status_update, job_board, job_pipeline_progress, job_stage_complete,
    job_bom, job_production_tasks, job_install_tasks, job_payments,
    payment_list_create, payment_detail,
    production_task_list_create, production_task_detail, production_task_start, production_task_complete,
    install_task_list_create, install_task_detail, install_task_check_in, install_task_complete,
    schedule_list_create, schedule_detail,
)

urlpatterns = [
    # Quotes
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/next-number/', quote_next_number, name='quote-next-number'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/send/', quote_send, name='quote-send'),
    path('quotes/<int:pk>/accept/', quote_accept, name='quote-accept'),
    # Jobs
    path('jobs/', job_list_create, name='job-list-create'),
    path('jobs/board/', job_board, name='job-board'),
    path('jobs/<int:pk>/', job_detail, name='job-detail'),
    path('jobs/<int:pk>/status/', job_status_update, name='job-status-update'),
    path('jobs/<int:pk>/pipeline-progress/', job_pipeline_progress, name='job-pipeline-progress'),
    path('jobs/<int:pk>/pipeline-stages/<int:stage_pk>/complete/', job_stage_complete, name='job-stage-complete'),
    path('jobs/<int:pk>/bom/', job_bom, name='job-bom'),
    path('jobs/<int:pk>/production-tasks/', job_production_tasks, name='job-production-tasks'),
    path('jobs/<int:pk>/install-tasks/', job_install_tasks, name='job-install-tasks'),
    path('jobs/<int:pk>/payments/', job_payments, name='job-payments'),
    # Payments
    path('payments/', payment_list_create, name='payment-list-create'),
    path('payments/<int:pk>/', payment_detail, name='payment-detail'),
    # Production tasks
    path('production-tasks/', production_task_list_create, name='production-task-list-create'),
    path('production-tasks/<int:pk>/', production_task_detail, name='production-task-detail'),
    path('production-tasks/<int:pk>/start/', production_task_start, name='production-task-start'),
    path('production-tasks/<int:pk>/complete/', production_task_complete, name='production-task-complete'),
    # Install tasks
    path('install-tasks/', install_task_list_create, name='install-task-list-create'),
    path('install-tasks/<int:pk>/', install_task_detail, name='install-task-detail'),
    path('install-tasks/<int:pk>/check-in/', install_task_check_in, name='install-task-check-in'),
    path('install-tasks/<int:pk>/complete/', install_task_complete, name='install-task-complete'),
    # Schedule
    path('schedule/', schedule_list_create, name='schedule-list-create'),
    path('schedule/<int:pk>/', schedule_detail, name='schedule-detail'),
]
