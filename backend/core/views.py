from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.utils import timezone
from .models import AuditLog, Notification
from .permissions import get_group_names, has_application_group, is_admin_user, is_config_admin, admin_denied
from .serializers import UserSerializer, UserCreateSerializer, AuditLogSerializer, NotificationSerializer
from .utils import parse_bool

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['groups'] = list(user.groups.values_list('name', flat=True))
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List active users (assignee pickers) or create a new user (admin only)"""
    if request.method == 'GET':
        users = User.objects.prefetch_related('groups').order_by('username')
        if not is_admin_user(request.user):
            users = users.filter(is_active=True)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        denied = admin_denied(request)
        if denied:
            return denied
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    denied = admin_denied(request)
    if denied:
        return denied
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with groups and permissions"""
    user = request.user
    user_data = UserSerializer(user).data
    user_groups = get_group_names(user)

    if has_application_group(user_groups):
        is_admin_group = 'Admin' in user_groups
        is_sales = 'Sales' in user_groups
        is_scheduler = 'Scheduler' in user_groups
        is_production_manager = 'ProductionManager' in user_groups
        is_warehouse = 'Warehouse' in user_groups

        user_data['is_admin'] = is_admin_group
        user_data['can_access_dashboard'] = is_admin_group or is_sales or is_production_manager or is_scheduler
        user_data['can_access_leads'] = is_admin_group or is_sales
        user_data['can_access_quotes'] = is_admin_group or is_sales
        user_data['can_access_jobs'] = True
        user_data['can_access_inventory'] = is_admin_group or is_warehouse or is_production_manager
        user_data['can_configure_workflow'] = is_config_admin(user)
    else:
        # Not in any application group - fall back to superuser/staff
        is_superuser_or_staff = user.is_superuser or user.is_staff
        user_data['is_admin'] = is_superuser_or_staff
        user_data['can_access_dashboard'] = is_superuser_or_staff
        user_data['can_access_leads'] = is_superuser_or_staff
        user_data['can_access_quotes'] = is_superuser_or_staff
        user_data['can_access_jobs'] = is_superuser_or_staff
        user_data['can_access_inventory'] = is_superuser_or_staff
        user_data['can_configure_workflow'] = is_superuser_or_staff

    return Response(user_data)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    # Non-admins only see their own actions
    if not is_admin_user(request.user):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    reference_filter = request.query_params.get('reference', None)
    if reference_filter:
        queryset = queryset.filter(object_reference=reference_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')[:500]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_admin_user(request.user) and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


# Notification views (current user only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """List the current user's notifications (?unread=true for unread only)"""
    queryset = Notification.objects.filter(user=request.user)
    if parse_bool(request.query_params.get('unread')):
        queryset = queryset.filter(is_read=False)
    serializer = NotificationSerializer(queryset[:100], many=True)
    return Response(serializer.data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_read(request, pk):
    """Mark one of the current user's notifications as read"""
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_read_all(request):
    """Mark every unread notification of the current user as read"""
    updated = Notification.objects.filter(user=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return Response({'updated': updated})
