"""
Group based access rules shared by every app.

Application groups take priority over the Django staff/superuser flags: a user
who belongs to any application group is judged only by that membership, and
staff/superuser status is the fallback for accounts outside every group.
"""
from rest_framework import status
from rest_framework.response import Response

APPLICATION_GROUPS = ['Admin', 'Sales', 'Scheduler', 'ProductionManager', 'Warehouse', 'Installer']

# Groups allowed to change workflow configuration (statuses, columns, pipelines)
CONFIG_ADMIN_GROUPS = ['Admin', 'ProductionManager']


def get_group_names(user):
    if not user or not user.is_authenticated:
        return []
    return list(user.groups.values_list('name', flat=True))


def has_application_group(group_names):
    return any(group in group_names for group in APPLICATION_GROUPS)


def is_admin_user(user):
    """
    Check if user is an admin user.
    Returns True if:
    - User is in 'Admin' group, OR
    - User is superuser/staff and not in any application group (fallback)
    """
    group_names = get_group_names(user)
    if 'Admin' in group_names:
        return True
    if not has_application_group(group_names) and (user.is_superuser or user.is_staff):
        return True
    return False


def is_config_admin(user):
    """True when the user may edit statuses, dependencies, columns and pipelines."""
    group_names = get_group_names(user)
    if any(group in group_names for group in CONFIG_ADMIN_GROUPS):
        return True
    if not has_application_group(group_names) and (user.is_superuser or user.is_staff):
        return True
    return False


def config_admin_denied(request):
    """
    Return a 403 response when the requesting user cannot change workflow
    configuration, otherwise None.
    """
    if is_config_admin(request.user):
        return None
    return Response(
        {'error': 'Only administrators and production managers can change workflow configuration'},
        status=status.HTTP_403_FORBIDDEN,
    )


def admin_denied(request):
    if is_admin_user(request.user):
        return None
    return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
