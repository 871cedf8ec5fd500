import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='auditlog',
            name='action',
            field=models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('reorder', 'Reorder'), ('dependency_replace', 'Dependencies Replaced'), ('status_change', 'Job Status Changed'), ('stage_complete', 'Pipeline Stage Completed'), ('lead_move', 'Lead Moved'), ('lead_convert', 'Lead Converted to Quote'), ('quote_send', 'Quote Sent'), ('quote_accept', 'Quote Accepted'), ('stock_adjust', 'Stock Adjustment'), ('payment_add', 'Payment Added'), ('task_start', 'Production Task Started'), ('task_complete', 'Task Completed'), ('install_check_in', 'Installer Checked In')], max_length=50),
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('install_assigned', 'Install Assigned'), ('schedule_assigned', 'Schedule Event Assigned'), ('general', 'General')], default='general', max_length=50)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField(blank=True)),
                ('related_entity_type', models.CharField(blank=True, max_length=50)),
                ('related_entity_id', models.CharField(blank=True, max_length=100)),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['user', 'is_read'], name='notifications_unread_idx')],
            },
        ),
    ]
