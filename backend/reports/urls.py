from django.urls import path
from . import views

urlpatterns = [
    path('reports/dashboard-stats/', views.dashboard_stats, name='dashboard-stats'),
    path('reports/production-progress/', views.production_progress_report, name='production-progress'),
]
