from decimal import Decimal

from django.conf import settings
from django.db import models

from backend.core.numbering import next_document_number


class Quote(models.Model):
    """Priced proposal for a client"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('approved', 'Approved'),
        ('declined', 'Declined'),
        ('expired', 'Expired'),
    ]

    quote_number = models.CharField(max_length=50, unique=True, editable=False)
    client = models.ForeignKey('parties.Client', on_delete=models.PROTECT, related_name='quotes')
    lead = models.ForeignKey('leads.Lead', on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    site_address = models.TextField(blank=True)
    total_length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    fence_height = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    line_items = models.JSONField(default=list, blank=True)
    materials_subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    labour_estimate = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    deposit_required = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    deposit_percent = models.PositiveIntegerField(default=50)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    is_trade_quote = models.BooleanField(default=False)
    valid_until = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    sent_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.quote_number

    def save(self, *args, **kwargs):
        if not self.quote_number:
            self.quote_number = next_document_number(Quote, 'quote_number', 'Q')
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'quotes'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='quotes_status_idx'),
        ]


class Job(models.Model):
    """Confirmed work order created from an approved quote"""
    JOB_TYPE_CHOICES = [
        ('supply_only', 'Supply Only'),
        ('supply_install', 'Supply + Install'),
    ]

    job_number = models.CharField(max_length=50, unique=True, editable=False)
    client = models.ForeignKey('parties.Client', on_delete=models.PROTECT, related_name='jobs')
    lead = models.ForeignKey('leads.Lead', on_delete=models.SET_NULL, null=True, blank=True, related_name='jobs')
    quote = models.ForeignKey(Quote, on_delete=models.PROTECT, null=True, blank=True, related_name='jobs')
    job_type = models.CharField(max_length=20, choices=JOB_TYPE_CHOICES, default='supply_install')
    site_address = models.TextField(blank=True)
    # Key of a JobStatus; kept as plain text so jobs survive removal of a status
    status = models.CharField(max_length=100)
    fence_style = models.CharField(max_length=200, blank=True)
    total_length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    fence_height = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    deposit_paid = models.BooleanField(default=False)
    final_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    final_paid = models.BooleanField(default=False)
    assigned_installer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='installer_jobs')
    scheduled_start_date = models.DateTimeField(null=True, blank=True)
    scheduled_end_date = models.DateTimeField(null=True, blank=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    pipeline = models.ForeignKey('workflow.JobPipeline', on_delete=models.SET_NULL, null=True, blank=True, related_name='jobs')
    completed_stages = models.ManyToManyField('workflow.JobPipelineStage', blank=True, related_name='completed_jobs')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.job_number

    def save(self, *args, **kwargs):
        if not self.job_number:
            self.job_number = next_document_number(Job, 'job_number', 'JOB')
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'jobs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='jobs_status_idx'),
            models.Index(fields=['scheduled_start_date'], name='jobs_sched_start_idx'),
        ]


class JobStatusChange(models.Model):
    """History of the statuses a job has held"""
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='status_changes')
    from_status = models.CharField(max_length=100, blank=True)
    to_status = models.CharField(max_length=100)
    changed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='job_status_changes')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.job} {self.from_status or '-'} -> {self.to_status}"

    class Meta:
        db_table = 'job_status_changes'
        ordering = ['job', 'created_at', 'id']


class Payment(models.Model):
    """Deposit, final and adjustment payments against a job"""
    PAYMENT_TYPE_CHOICES = [
        ('deposit', 'Deposit'),
        ('final', 'Final'),
        ('refund', 'Refund'),
        ('credit_note', 'Credit Note'),
        ('adjustment', 'Adjustment'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('stripe', 'Stripe'),
        ('bank_transfer', 'Bank Transfer'),
        ('cash', 'Cash'),
        ('cheque', 'Cheque'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('cancelled', 'Cancelled'),
    ]

    client = models.ForeignKey('parties.Client', on_delete=models.PROTECT, related_name='payments')
    job = models.ForeignKey(Job, on_delete=models.CASCADE, null=True, blank=True, related_name='payments')
    quote = models.ForeignKey(Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    reference = models.CharField(max_length=200, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_payment_type_display()} {self.amount} ({self.status})"

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at', '-id']


class BillOfMaterials(models.Model):
    """Cut list of products for a job"""
    job = models.OneToOneField(Job, on_delete=models.CASCADE, related_name='bom')
    # [{product, product_name, sku, quantity, cut_length, notes}]
    items = models.JSONField(default=list, blank=True)
    wastage_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('5.00'))
    estimated_machine_time = models.PositiveIntegerField(null=True, blank=True, help_text='Minutes')
    estimated_labour_time = models.PositiveIntegerField(null=True, blank=True, help_text='Minutes')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"BOM for {self.job}"

    class Meta:
        db_table = 'job_boms'
        verbose_name = 'bill of materials'
        verbose_name_plural = 'bills of materials'


class ProductionTask(models.Model):
    """Workshop task (cutting, routing, assembly, QA) on a job"""
    TASK_TYPE_CHOICES = [
        ('cutting', 'Cutting'),
        ('routing', 'Routing'),
        ('assembly', 'Assembly'),
        ('qa', 'QA'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('on_hold', 'On Hold'),
    ]
    QA_RESULT_CHOICES = [
        ('passed', 'Passed'),
        ('failed', 'Failed'),
    ]

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='production_tasks')
    task_type = models.CharField(max_length=20, choices=TASK_TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    assigned_to = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='production_tasks')
    machine_used = models.CharField(max_length=100, blank=True)
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    time_spent_minutes = models.PositiveIntegerField(null=True, blank=True)
    qa_result = models.CharField(max_length=20, choices=QA_RESULT_CHOICES, blank=True)
    qa_passed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.job} {self.get_task_type_display()} ({self.status})"

    class Meta:
        db_table = 'production_tasks'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['status'], name='production_tasks_status_idx'),
        ]


class InstallTask(models.Model):
    """On-site installation visit for a job"""
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('on_site', 'On Site'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('rescheduled', 'Rescheduled'),
    ]

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='install_tasks')
    scheduled_date = models.DateTimeField()
    installer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='install_tasks')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    check_in_time = models.DateTimeField(null=True, blank=True)
    check_out_time = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    variations_found = models.TextField(blank=True)
    photos = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.job} install {self.scheduled_date:%Y-%m-%d} ({self.status})"

    class Meta:
        db_table = 'install_tasks'
        ordering = ['scheduled_date', 'id']
        indexes = [
            models.Index(fields=['scheduled_date'], name='install_tasks_sched_idx'),
        ]


class ScheduleEvent(models.Model):
    """Calendar entry: installs, site measures, pickups, deliveries, production slots"""
    EVENT_TYPE_CHOICES = [
        ('install', 'Install'),
        ('site_measure', 'Site Measure'),
        ('pickup', 'Pickup'),
        ('delivery', 'Delivery'),
        ('production', 'Production'),
    ]

    job = models.ForeignKey(Job, on_delete=models.CASCADE, null=True, blank=True, related_name='schedule_events')
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    assigned_to = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='schedule_events')
    is_confirmed = models.BooleanField(default=False)
    client_notified = models.BooleanField(default=False)
    installer_notified = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.title} ({self.start_date:%Y-%m-%d %H:%M})"

    class Meta:
        db_table = 'schedule_events'
        ordering = ['start_date', 'id']
        indexes = [
            models.Index(fields=['start_date'], name='schedule_events_start_idx'),
        ]
