"""Utility functions for audit logging and notifications"""
import logging

from .models import AuditLog, Notification

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def get_username(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user.username
    return 'anonymous'


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, reorder, status_change, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., status label, job number)
        object_reference: Reference identifier (e.g., status key, quote number)
    """
    if not action or not model_name or object_id in (None, ''):
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None:
        audit_user = getattr(request, 'user', None)

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit logging must not fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}", exc_info=True)
        return None


def parse_bool(value):
    """Interpret a query string flag such as ?active=true"""
    if value is None:
        return None
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def create_notification(user, title, message='', type='general', related=None):
    """
    Queue an in-app notification for user.

    related is the model instance the notification is about; its model name
    and id are stored so the client can link to it.
    """
    if user is None:
        return None
    try:
        return Notification.objects.create(
            user=user,
            type=type,
            title=title,
            message=message,
            related_entity_type=related._meta.model_name if related is not None else '',
            related_entity_id=str(related.pk) if related is not None else '',
        )
    except Exception as e:
        # A missed notification must not fail the main operation
        logger.error(f"Failed to create notification for {user}: {str(e)}", exc_info=True)
        return None
