from django.urls import path
from .views import (
    lead_list_create, lead_detail, lead_board, lead_move, lead_convert_to_quote, lead_export,
)

urlpatterns = [
    path('leads/', lead_list_create, name='lead-list-create'),
    path('leads/board/', lead_board, name='lead-board'),
    path('leads/<int:pk>/', lead_detail, name='lead-detail'),
    path('leads/<int:pk>/move/', lead_move, name='lead-move'),
    path('leads/<int:pk>/convert-to-quote/', lead_convert_to_quote, name='lead-convert-to-quote'),
    path('export/leads/', lead_export, name='lead-export'),
]
