from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, user_me,
    user_list_create, user_detail,
    audit_log_list, audit_log_detail,
    notification_list, notification_read, notification_read_all,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    # Notification endpoints
    path('notifications/', notification_list, name='notification-list'),
    path('notifications/read-all/', notification_read_all, name='notification-read-all'),
    path('notifications/<int:pk>/read/', notification_read, name='notification-read'),
]
