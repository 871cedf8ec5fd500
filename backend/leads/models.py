from django.conf import settings
from django.db import models

from .stages import LEAD_STAGES, map_stage_to_status


class Lead(models.Model):
    """An unconverted sales inquiry"""
    SOURCE_CHOICES = [
        ('website', 'Website'),
        ('phone', 'Phone'),
        ('referral', 'Referral'),
        ('trade', 'Trade'),
        ('walk_in', 'Walk In'),
        ('social_media', 'Social Media'),
        ('other', 'Other'),
    ]
    LEAD_TYPE_CHOICES = [
        ('public', 'Public'),
        ('trade', 'Trade'),
    ]
    FULFILLMENT_TYPE_CHOICES = [
        ('supply_only', 'Supply Only'),
        ('supply_install', 'Supply + Install'),
    ]

    lead_number = models.CharField(max_length=50, unique=True, editable=False)
    client = models.ForeignKey('parties.Client', on_delete=models.SET_NULL, null=True, blank=True, related_name='leads')
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='website')
    lead_type = models.CharField(max_length=20, choices=LEAD_TYPE_CHOICES, default='public')
    job_fulfillment_type = models.CharField(max_length=20, choices=FULFILLMENT_TYPE_CHOICES, default='supply_install')
    description = models.TextField(blank=True)
    site_address = models.TextField(blank=True)
    measurements_provided = models.BooleanField(default=False)
    fence_length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    fence_style = models.CharField(max_length=200, blank=True)
    stage = models.CharField(max_length=30, choices=LEAD_STAGES, default='new')
    assigned_to = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_leads')
    follow_up_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.lead_number or f"Lead-{self.pk}"

    @property
    def status(self):
        """Board bucket for the current stage"""
        return map_stage_to_status(self.stage)

    def save(self, *args, **kwargs):
        if not self.lead_number:
            from backend.core.numbering import next_document_number
            self.lead_number = next_document_number(Lead, 'lead_number', 'LEAD')
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'leads'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['stage'], name='leads_stage_idx'),
            models.Index(fields=['-created_at'], name='leads_created_idx'),
        ]
