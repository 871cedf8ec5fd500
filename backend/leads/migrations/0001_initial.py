import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('parties', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Lead',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lead_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('source', models.CharField(choices=[('website', 'Website'), ('phone', 'Phone'), ('referral', 'Referral'), ('trade', 'Trade'), ('walk_in', 'Walk In'), ('social_media', 'Social Media'), ('other', 'Other')], default='website', max_length=20)),
                ('lead_type', models.CharField(choices=[('public', 'Public'), ('trade', 'Trade')], default='public', max_length=20)),
                ('job_fulfillment_type', models.CharField(choices=[('supply_only', 'Supply Only'), ('supply_install', 'Supply + Install')], default='supply_install', max_length=20)),
                ('description', models.TextField(blank=True)),
                ('site_address', models.TextField(blank=True)),
                ('measurements_provided', models.BooleanField(default=False)),
                ('fence_length', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('fence_style', models.CharField(blank=True, max_length=200)),
                ('stage', models.CharField(choices=[('new', 'New'), ('contacted', 'Contacted'), ('site_visit_scheduled', 'Site Visit Scheduled'), ('site_visit_complete', 'Site Visit Complete'), ('quote_sent', 'Quote Sent'), ('quote_revised', 'Quote Revised'), ('approved', 'Approved'), ('converted_to_job', 'Converted to Job'), ('declined', 'Declined'), ('lost', 'Lost')], default='new', max_length=30)),
                ('follow_up_date', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_leads', to=settings.AUTH_USER_MODEL)),
                ('client', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='leads', to='parties.client')),
            ],
            options={
                'db_table': 'leads',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['stage'], name='leads_stage_idx'),
                    models.Index(fields=['-created_at'], name='leads_created_idx'),
                ],
            },
        ),
    ]
