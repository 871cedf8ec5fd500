from django.urls import path
from .views import client_list_create, client_detail, client_jobs, client_quotes, client_payments, client_export

urlpatterns = [
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),
    path('clients/<int:pk>/jobs/', client_jobs, name='client-jobs'),
    path('clients/<int:pk>/quotes/', client_quotes, name='client-quotes'),
    path('clients/<int:pk>/payments/', client_payments, name='client-payments'),
    path('export/clients/', client_export, name='client-export'),
]
