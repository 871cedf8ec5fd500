import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('jobs', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BillOfMaterials',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('items', models.JSONField(blank=True, default=list)),
                ('wastage_percent', models.DecimalField(decimal_places=2, default=Decimal('5.00'), max_digits=5)),
                ('estimated_machine_time', models.PositiveIntegerField(blank=True, help_text='Minutes', null=True)),
                ('estimated_labour_time', models.PositiveIntegerField(blank=True, help_text='Minutes', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('job', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='bom', to='jobs.job')),
            ],
            options={
                'verbose_name': 'bill of materials',
                'verbose_name_plural': 'bills of materials',
                'db_table': 'job_boms',
            },
        ),
        migrations.CreateModel(
            name='ProductionTask',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('task_type', models.CharField(choices=[('cutting', 'Cutting'), ('routing', 'Routing'), ('assembly', 'Assembly'), ('qa', 'QA')], max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('on_hold', 'On Hold')], default='pending', max_length=20)),
                ('machine_used', models.CharField(blank=True, max_length=100)),
                ('start_time', models.DateTimeField(blank=True, null=True)),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('time_spent_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('qa_result', models.CharField(blank=True, choices=[('passed', 'Passed'), ('failed', 'Failed')], max_length=20)),
                ('qa_passed_at', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_tasks', to=settings.AUTH_USER_MODEL)),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_tasks', to='jobs.job')),
            ],
            options={
                'db_table': 'production_tasks',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['status'], name='production_tasks_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='InstallTask',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scheduled_date', models.DateTimeField()),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('on_site', 'On Site'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('rescheduled', 'Rescheduled')], default='scheduled', max_length=20)),
                ('check_in_time', models.DateTimeField(blank=True, null=True)),
                ('check_out_time', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('variations_found', models.TextField(blank=True)),
                ('photos', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('installer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='install_tasks', to=settings.AUTH_USER_MODEL)),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='install_tasks', to='jobs.job')),
            ],
            options={
                'db_table': 'install_tasks',
                'ordering': ['scheduled_date', 'id'],
                'indexes': [models.Index(fields=['scheduled_date'], name='install_tasks_sched_idx')],
            },
        ),
        migrations.CreateModel(
            name='ScheduleEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('install', 'Install'), ('site_measure', 'Site Measure'), ('pickup', 'Pickup'), ('delivery', 'Delivery'), ('production', 'Production')], max_length=20)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField()),
                ('is_confirmed', models.BooleanField(default=False)),
                ('client_notified', models.BooleanField(default=False)),
                ('installer_notified', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='schedule_events', to=settings.AUTH_USER_MODEL)),
                ('job', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='schedule_events', to='jobs.job')),
            ],
            options={
                'db_table': 'schedule_events',
                'ordering': ['start_date', 'id'],
                'indexes': [models.Index(fields=['start_date'], name='schedule_events_start_idx')],
            },
        ),
    ]
