"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.workflow.models import JobStatus, JobStatusDependency, KanbanColumn, JobPipeline, JobPipelineStage
from backend.workflow.ordering import next_sort_order
from backend.parties.models import Client
from backend.leads.models import Lead
from backend.jobs.models import Quote, Job, Payment, ProductionTask, InstallTask, ScheduleEvent
from backend.inventory.models import Product
from datetime import timedelta
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False,
                    groups=None):
        """Create a test user, optionally in the named application groups"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        for name in groups or []:
            group, _ = Group.objects.get_or_create(name=name)
            user.groups.add(group)
        return user

    @staticmethod
    def create_admin(username=None):
        """Create a user in the Admin group"""
        return TestDataFactory.create_user(username=username, groups=['Admin'])

    @staticmethod
    def create_status(key=None, label=None, is_active=True):
        """Create a job status at the end of the registry"""
        if not key:
            key = f'status_{TestDataFactory.random_string(6).lower()}'
        return JobStatus.objects.create(
            key=key,
            label=label or key.replace('_', ' ').title(),
            is_active=is_active,
            sort_order=next_sort_order(JobStatus.objects.all()),
        )

    @staticmethod
    def create_dependency(status, prerequisite, dependency_type='mandatory'):
        return JobStatusDependency.objects.create(
            status=status, prerequisite=prerequisite, dependency_type=dependency_type
        )

    @staticmethod
    def create_column(title=None, statuses=None, default_status=None, color='gray', is_active=True):
        """Create a kanban column; the statuses must already exist"""
        statuses = list(statuses or [])
        return KanbanColumn.objects.create(
            title=title or f'Column {TestDataFactory.random_string(4)}',
            statuses=statuses,
            default_status=default_status if default_status is not None else (statuses[0] if statuses else ''),
            color=color,
            is_active=is_active,
            sort_order=next_sort_order(KanbanColumn.objects.all()),
        )

    @staticmethod
    def create_pipeline(name=None, description=''):
        return JobPipeline.objects.create(
            name=name or f'Pipeline {TestDataFactory.random_string(4)}',
            description=description,
        )

    @staticmethod
    def create_stage(pipeline, name=None, completion_type='manual', is_active=True, icon=None):
        """Create a pipeline stage at the end of its pipeline"""
        return JobPipelineStage.objects.create(
            pipeline=pipeline,
            name=name or f'Stage {TestDataFactory.random_string(4)}',
            completion_type=completion_type,
            is_active=is_active,
            icon=icon,
            sort_order=next_sort_order(pipeline.stages.all()),
        )

    @staticmethod
    def create_client(name=None, phone=None, email=None, client_type='public'):
        """Create a test client"""
        if not name:
            name = f'Client {TestDataFactory.random_string(6)}'
        return Client.objects.create(
            name=name,
            phone=phone or f'04{random.randint(10000000, 99999999)}',
            email=email or '',
            client_type=client_type,
        )

    @staticmethod
    def create_lead(client=None, stage='new', assigned_to=None, **kwargs):
        """Create a test lead"""
        return Lead.objects.create(
            client=client,
            stage=stage,
            assigned_to=assigned_to,
            site_address=kwargs.pop('site_address', '1 Test Street, Sydney NSW'),
            **kwargs
        )

    @staticmethod
    def create_quote(client=None, lead=None, status='draft', total_amount=None, deposit_required=None):
        """Create a test quote"""
        return Quote.objects.create(
            client=client or TestDataFactory.create_client(),
            lead=lead,
            status=status,
            total_amount=total_amount if total_amount is not None else Decimal('1000.00'),
            deposit_required=deposit_required,
        )

    @staticmethod
    def create_job(client=None, status='awaiting_deposit', total_amount=None, pipeline=None, quote=None):
        """Create a test job; the status key is not checked against the registry"""
        return Job.objects.create(
            client=client or TestDataFactory.create_client(),
            quote=quote,
            status=status,
            total_amount=total_amount if total_amount is not None else Decimal('1000.00'),
            pipeline=pipeline,
        )

    @staticmethod
    def create_product(sku=None, name=None, category='posts', stock_on_hand=50, reorder_point=10, is_active=True):
        """Create a test product"""
        if not sku:
            sku = f'SKU-{TestDataFactory.random_string(6).upper()}'
        return Product.objects.create(
            sku=sku,
            name=name or f'Product {sku}',
            category=category,
            cost_price=Decimal('10.00'),
            sell_price=Decimal('15.00'),
            stock_on_hand=stock_on_hand,
            reorder_point=reorder_point,
            is_active=is_active,
        )

    @staticmethod
    def create_payment(client=None, job=None, amount=None, payment_type='deposit', status='pending'):
        """Create a test payment"""
        if client is None:
            client = job.client if job else TestDataFactory.create_client()
        return Payment.objects.create(
            client=client,
            job=job,
            amount=amount if amount is not None else Decimal('500.00'),
            payment_type=payment_type,
            status=status,
        )

    @staticmethod
    def create_production_task(job=None, task_type='cutting', status='pending', assigned_to=None):
        """Create a test production task"""
        return ProductionTask.objects.create(
            job=job or TestDataFactory.create_job(),
            task_type=task_type,
            status=status,
            assigned_to=assigned_to,
        )

    @staticmethod
    def create_install_task(job=None, installer=None, scheduled_date=None, status='scheduled'):
        """Create a test install task, by default tomorrow"""
        return InstallTask.objects.create(
            job=job or TestDataFactory.create_job(),
            installer=installer or TestDataFactory.create_user(),
            scheduled_date=scheduled_date or timezone.now() + timedelta(days=1),
            status=status,
        )

    @staticmethod
    def create_schedule_event(title=None, event_type='install', start_date=None, hours=2, job=None,
                              assigned_to=None):
        """Create a test schedule event lasting hours"""
        start_date = start_date or timezone.now() + timedelta(days=1)
        return ScheduleEvent.objects.create(
            title=title or f"Event {TestDataFactory.random_string(5)}",
            event_type=event_type,
            start_date=start_date,
            end_date=start_date + timedelta(hours=hours),
            job=job,
            assigned_to=assigned_to,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
