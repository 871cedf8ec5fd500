"""
URL configuration for the backend project.

Every app mounts its API under api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Fencing Operations Admin Panel"
admin.site.site_title = "Fencing Operations Admin Portal"
admin.site.index_title = "Workflow, Leads and Jobs Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.workflow.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.leads.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.jobs.urls')),
    path('api/v1/', include('backend.reports.urls')),
]
