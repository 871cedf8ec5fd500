from django.core.validators import RegexValidator
from django.db import models
from django.db.models import F, Q


status_key_validator = RegexValidator(
    regex=r'^[a-z0-9_]+$',
    message='Status keys may only contain lowercase letters, digits and underscores.',
)

KANBAN_COLORS = [
    ('gray', 'Gray'),
    ('blue', 'Blue'),
    ('purple', 'Purple'),
    ('amber', 'Amber'),
    ('green', 'Green'),
    ('emerald', 'Emerald'),
    ('red', 'Red'),
    ('orange', 'Orange'),
    ('cyan', 'Cyan'),
    ('pink', 'Pink'),
]

# Theme classes the board renders for each palette colour
KANBAN_COLOR_CLASSES = {
    'gray': 'bg-slate-100 dark:bg-slate-800',
    'blue': 'bg-blue-50 dark:bg-blue-950',
    'purple': 'bg-purple-50 dark:bg-purple-950',
    'amber': 'bg-amber-50 dark:bg-amber-950',
    'green': 'bg-green-50 dark:bg-green-950',
    'emerald': 'bg-emerald-50 dark:bg-emerald-950',
    'red': 'bg-red-50 dark:bg-red-950',
    'orange': 'bg-orange-50 dark:bg-orange-950',
    'cyan': 'bg-cyan-50 dark:bg-cyan-950',
    'pink': 'bg-pink-50 dark:bg-pink-950',
}

DEFAULT_KANBAN_COLOR = 'gray'


class JobStatus(models.Model):
    """A configurable status a job can occupy. The key is frozen once created."""
    key = models.CharField(max_length=100, unique=True, validators=[status_key_validator])
    label = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.label

    class Meta:
        db_table = 'job_statuses'
        ordering = ['sort_order', 'id']
        verbose_name_plural = 'job statuses'


class JobStatusDependency(models.Model):
    """Prerequisite edge: a job should have held `prerequisite` before entering `status`"""
    DEPENDENCY_TYPE_CHOICES = [
        ('mandatory', 'Mandatory'),
        ('advisory', 'Advisory'),
    ]

    status = models.ForeignKey(
        JobStatus, to_field='key', db_column='status_key', on_delete=models.CASCADE,
        related_name='dependencies',
    )
    prerequisite = models.ForeignKey(
        JobStatus, to_field='key', db_column='prerequisite_key', on_delete=models.CASCADE,
        related_name='dependents',
    )
    dependency_type = models.CharField(max_length=20, choices=DEPENDENCY_TYPE_CHOICES, default='mandatory')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.status_id} requires {self.prerequisite_id} ({self.dependency_type})"

    class Meta:
        db_table = 'job_status_dependencies'
        ordering = ['status', 'id']
        verbose_name_plural = 'job status dependencies'
        constraints = [
            models.UniqueConstraint(fields=['status', 'prerequisite'], name='unique_status_prerequisite'),
            models.CheckConstraint(condition=~Q(status=F('prerequisite')), name='no_self_dependency'),
        ]


class KanbanColumn(models.Model):
    """A board column grouping one or more job status keys"""
    title = models.CharField(max_length=200)
    statuses = models.JSONField(default=list, help_text="Ordered list of job status keys shown in this column")
    default_status = models.CharField(max_length=100, blank=True, help_text="Status given to a job dropped into this column")
    color = models.CharField(max_length=20, choices=KANBAN_COLORS, default=DEFAULT_KANBAN_COLOR)
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def color_classes(self):
        return KANBAN_COLOR_CLASSES.get(self.color, KANBAN_COLOR_CLASSES[DEFAULT_KANBAN_COLOR])

    class Meta:
        db_table = 'kanban_columns'
        ordering = ['sort_order', 'id']


class JobPipeline(models.Model):
    """A named sequence of production steps, e.g. "Supply + Install" """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'job_pipelines'
        ordering = ['name', 'id']


class JobPipelineStage(models.Model):
    COMPLETION_TYPE_CHOICES = [
        ('manual', 'Manual'),
        ('automatic', 'Automatic'),
    ]

    pipeline = models.ForeignKey(JobPipeline, on_delete=models.CASCADE, related_name='stages')
    name = models.CharField(max_length=200)
    icon = models.CharField(max_length=100, blank=True, null=True)
    completion_type = models.CharField(max_length=20, choices=COMPLETION_TYPE_CHOICES, default='manual')
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.pipeline.name}: {self.name}"

    class Meta:
        db_table = 'job_pipeline_stages'
        ordering = ['pipeline', 'sort_order', 'id']
