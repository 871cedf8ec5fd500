from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('reorder', 'Reorder'),
        ('dependency_replace', 'Dependencies Replaced'),
        ('status_change', 'Job Status Changed'),
        ('stage_complete', 'Pipeline Stage Completed'),
        ('lead_move', 'Lead Moved'),
        ('lead_convert', 'Lead Converted to Quote'),
        ('quote_send', 'Quote Sent'),
        ('quote_accept', 'Quote Accepted'),
        ('stock_adjust', 'Stock Adjustment'),
        ('payment_add', 'Payment Added'),
        ('task_start', 'Production Task Started'),
        ('task_complete', 'Task Completed'),
        ('install_check_in', 'Installer Checked In'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., status label, job number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., status key, lead number, quote number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_1f3a2c_idx'),
            models.Index(fields=['action'], name='audit_logs_action_7b9d4e_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_5c8e1a_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__9d2f6b_idx'),
        ]


class Notification(models.Model):
    """In-app message for one user"""
    TYPE_CHOICES = [
        ('install_assigned', 'Install Assigned'),
        ('schedule_assigned', 'Schedule Event Assigned'),
        ('general', 'General'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=50, choices=TYPE_CHOICES, default='general')
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    related_entity_type = models.CharField(max_length=50, blank=True)
    related_entity_id = models.CharField(max_length=100, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} - {self.title}"

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notifications_unread_idx'),
        ]
