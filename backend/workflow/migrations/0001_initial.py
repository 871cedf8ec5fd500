import backend.workflow.models
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='JobStatus',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True, validators=[backend.workflow.models.status_key_validator])),
                ('label', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('sort_order', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'job_statuses',
                'ordering': ['sort_order', 'id'],
                'verbose_name_plural': 'job statuses',
            },
        ),
        migrations.CreateModel(
            name='JobPipeline',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'job_pipelines',
                'ordering': ['name', 'id'],
            },
        ),
        migrations.CreateModel(
            name='KanbanColumn',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('statuses', models.JSONField(default=list, help_text='Ordered list of job status keys shown in this column')),
                ('default_status', models.CharField(blank=True, help_text='Status given to a job dropped into this column', max_length=100)),
                ('color', models.CharField(choices=[('gray', 'Gray'), ('blue', 'Blue'), ('purple', 'Purple'), ('amber', 'Amber'), ('green', 'Green'), ('emerald', 'Emerald'), ('red', 'Red'), ('orange', 'Orange'), ('cyan', 'Cyan'), ('pink', 'Pink')], default='gray', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('sort_order', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'kanban_columns',
                'ordering': ['sort_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='JobPipelineStage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('icon', models.CharField(blank=True, max_length=100, null=True)),
                ('completion_type', models.CharField(choices=[('manual', 'Manual'), ('automatic', 'Automatic')], default='manual', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('sort_order', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('pipeline', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stages', to='workflow.jobpipeline')),
            ],
            options={
                'db_table': 'job_pipeline_stages',
                'ordering': ['pipeline', 'sort_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='JobStatusDependency',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('dependency_type', models.CharField(choices=[('mandatory', 'Mandatory'), ('advisory', 'Advisory')], default='mandatory', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('prerequisite', models.ForeignKey(db_column='prerequisite_key', on_delete=django.db.models.deletion.CASCADE, related_name='dependents', to='workflow.jobstatus', to_field='key')),
                ('status', models.ForeignKey(db_column='status_key', on_delete=django.db.models.deletion.CASCADE, related_name='dependencies', to='workflow.jobstatus', to_field='key')),
            ],
            options={
                'db_table': 'job_status_dependencies',
                'ordering': ['status', 'id'],
                'verbose_name_plural': 'job status dependencies',
                'constraints': [
                    models.UniqueConstraint(fields=('status', 'prerequisite'), name='unique_status_prerequisite'),
                    models.CheckConstraint(condition=models.Q(('status', models.F('prerequisite')), _negated=True), name='no_self_dependency'),
                ],
            },
        ),
    ]
