"""
Test suite for the jobs module
Tests: quotes, quote acceptance, job status transitions, job board, pipeline progress, payments,
production and install tasks, schedule events, bills of materials
"""
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backend.core.models import AuditLog, Notification
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.jobs.models import Quote, Job, JobStatusChange, Payment, BillOfMaterials, ProductionTask, InstallTask
from backend.jobs.services import (
    accept_quote, calculate_deposit, change_job_status, complete_install_task, complete_production_task,
    initial_job_status,
)
from backend.workflow.exceptions import (
    QuoteStateError, TaskStateError, TransitionBlocked, UnknownStatusError, WorkflowError,
)


class QuoteAPITests(TestCase):
    """Test quote endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))
        self.customer = TestDataFactory.create_client(name='Ridge Builders')

    def test_calculate_deposit(self):
        self.assertEqual(calculate_deposit(Decimal('1234.55'), 50), Decimal('617.28'))
        self.assertEqual(calculate_deposit(Decimal('1000'), Decimal('30')), Decimal('300.00'))
        self.assertIsNone(calculate_deposit(None, 50))
        self.assertIsNone(calculate_deposit(Decimal('1000'), 0))

    def test_create_quote_calculates_deposit(self):
        response = self.client.post('/api/v1/quotes/', {
            'client': self.customer.id,
            'site_address': '3 Picket Way',
            'total_amount': '4800.00',
            'deposit_percent': '25',
            'line_items': [{'description': 'Colorbond panel', 'quantity': 12, 'unit_price': '320.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['quote_number'].startswith('Q-'))
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(Decimal(response.data['deposit_required']), Decimal('1200.00'))
        self.assertEqual(response.data['client_name'], 'Ridge Builders')

    def test_explicit_deposit_is_kept(self):
        response = self.client.post('/api/v1/quotes/', {
            'client': self.customer.id, 'total_amount': '1000.00', 'deposit_required': '100.00',
        }, format='json')
        self.assertEqual(Decimal(response.data['deposit_required']), Decimal('100.00'))

    def test_quote_validation(self):
        response = self.client.post('/api/v1/quotes/', {
            'client': self.customer.id, 'total_amount': '-5.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('total_amount', response.data)
        response = self.client.post('/api/v1/quotes/', {
            'client': self.customer.id, 'line_items': ['not an object'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('line_items', response.data)

    def test_status_is_read_only(self):
        quote = TestDataFactory.create_quote(client=self.customer)
        response = self.client.patch(f'/api/v1/quotes/{quote.id}/', {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'draft')

    def test_send_quote(self):
        quote = TestDataFactory.create_quote(client=self.customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/send/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'sent')
        self.assertIsNotNone(response.data['sent_at'])
        self.assertTrue(AuditLog.objects.filter(action='quote_send').exists())

    def test_send_declined_quote_rejected(self):
        quote = TestDataFactory.create_quote(client=self.customer, status='declined')
        response = self.client.post(f'/api/v1/quotes/{quote.id}/send/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['field'], 'status')

    def test_approved_quote_cannot_be_edited(self):
        quote = TestDataFactory.create_quote(client=self.customer, status='approved')
        response = self.client.patch(f'/api/v1/quotes/{quote.id}/', {'notes': 'late change'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_quote_with_job_cannot_be_deleted(self):
        quote = TestDataFactory.create_quote(client=self.customer)
        TestDataFactory.create_job(client=self.customer, quote=quote)
        response = self.client.delete(f'/api/v1/quotes/{quote.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Quote.objects.filter(id=quote.id).exists())

    def test_filter_by_status(self):
        TestDataFactory.create_quote(client=self.customer, status='sent')
        TestDataFactory.create_quote(client=self.customer)
        response = self.client.get('/api/v1/quotes/?status=sent')
        self.assertEqual(len(response.data), 1)


class QuoteAcceptanceTests(TestCase):
    """Test accepting quotes into jobs"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(groups=['Sales'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        TestDataFactory.create_status(key='accepted')
        TestDataFactory.create_status(key='awaiting_deposit')

    def test_accept_creates_job_payment_and_converts_lead(self):
        """Test acceptance creates the job, its pending deposit and converts the lead"""
        customer = TestDataFactory.create_client()
        lead = TestDataFactory.create_lead(client=customer, stage='quote_sent', job_fulfillment_type='supply_only')
        quote = TestDataFactory.create_quote(client=customer, lead=lead, status='sent',
                                             total_amount=Decimal('2000.00'), deposit_required=Decimal('1000.00'))
        response = self.client.post(f'/api/v1/quotes/{quote.id}/accept/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['job_number'].startswith('JOB-'))
        self.assertEqual(response.data['status'], 'awaiting_deposit')
        self.assertEqual(response.data['job_type'], 'supply_only')

        quote.refresh_from_db()
        self.assertEqual(quote.status, 'approved')
        self.assertIsNotNone(quote.approved_at)
        job = Job.objects.get(quote=quote)
        payment = Payment.objects.get(job=job)
        self.assertEqual(payment.status, 'pending')
        self.assertEqual(payment.payment_type, 'deposit')
        self.assertEqual(payment.amount, Decimal('1000.00'))
        lead.refresh_from_db()
        self.assertEqual(lead.stage, 'converted_to_job')
        history = JobStatusChange.objects.get(job=job)
        self.assertEqual((history.from_status, history.to_status), ('', 'awaiting_deposit'))

    def test_accept_without_deposit_creates_no_payment(self):
        quote = TestDataFactory.create_quote(deposit_required=None)
        job = accept_quote(quote, user=self.user)
        self.assertFalse(Payment.objects.filter(job=job).exists())
        self.assertEqual(job.job_type, 'supply_install')

    def test_accept_twice_rejected(self):
        quote = TestDataFactory.create_quote()
        accept_quote(quote)
        with self.assertRaises(QuoteStateError):
            accept_quote(quote)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/accept/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Job.objects.count(), 1)

    def test_accept_with_pipeline(self):
        pipeline = TestDataFactory.create_pipeline()
        quote = TestDataFactory.create_quote()
        response = self.client.post(f'/api/v1/quotes/{quote.id}/accept/', {'pipeline': pipeline.id}, format='json')
        self.assertEqual(response.data['pipeline'], pipeline.id)

    def test_accept_invalid_job_type(self):
        quote = TestDataFactory.create_quote()
        response = self.client.post(f'/api/v1/quotes/{quote.id}/accept/', {'job_type': 'demolition'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        quote.refresh_from_db()
        self.assertEqual(quote.status, 'draft')

    @override_settings(INITIAL_JOB_STATUS='deposit_pending')
    def test_initial_status_falls_back_to_first_active(self):
        self.assertEqual(initial_job_status(), 'accepted')

    def test_initial_status_requires_active_statuses(self):
        from backend.workflow.models import JobStatus
        JobStatus.objects.update(is_active=False)
        with self.assertRaises(WorkflowError):
            initial_job_status()


class JobStatusTransitionTests(TestCase):
    """Test job status changes against the dependency graph"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(groups=['Scheduler'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.posts = TestDataFactory.create_status(key='manufacturing_posts', label='Manufacturing Posts')
        self.qa = TestDataFactory.create_status(key='qa_check', label='QA Check')
        self.scheduled = TestDataFactory.create_status(key='scheduled', label='Scheduled')
        self.complete = TestDataFactory.create_status(key='install_complete', label='Install Complete')
        TestDataFactory.create_dependency(self.scheduled, self.qa, 'mandatory')
        TestDataFactory.create_dependency(self.qa, self.posts, 'advisory')
        self.job = TestDataFactory.create_job(status='manufacturing_posts')

    def test_status_change_records_history(self):
        response = self.client.patch(f'/api/v1/jobs/{self.job.id}/status/', {'status': 'qa_check', 'notes': 'ok'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'qa_check')
        self.assertEqual(response.data['status_label'], 'QA Check')
        self.assertEqual(response.data['warnings'], [])
        change = JobStatusChange.objects.get(job=self.job)
        self.assertEqual((change.from_status, change.to_status, change.notes),
                         ('manufacturing_posts', 'qa_check', 'ok'))
        self.assertTrue(AuditLog.objects.filter(action='status_change').exists())

    def test_mandatory_prerequisite_blocks(self):
        """Test a job that never held a mandatory prerequisite cannot move"""
        response = self.client.patch(f'/api/v1/jobs/{self.job.id}/status/', {'status': 'scheduled'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('qa_check', response.data['error'])
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, 'manufacturing_posts')

    def test_held_prerequisite_unblocks(self):
        change_job_status(self.job, 'qa_check')
        change_job_status(self.job, 'manufacturing_posts')
        check = change_job_status(self.job, 'scheduled')
        self.assertTrue(check.allowed)
        self.assertEqual(self.job.status, 'scheduled')

    def test_advisory_prerequisite_warns(self):
        job = TestDataFactory.create_job(status='install_complete')
        response = self.client.post(f'/api/v1/jobs/{job.id}/status/', {'status': 'qa_check'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['warnings']), 1)
        self.assertIn('manufacturing_posts', response.data['warnings'][0])

    def test_unknown_status_rejected(self):
        with self.assertRaises(UnknownStatusError):
            change_job_status(self.job, 'ghost')
        response = self.client.patch(f'/api/v1/jobs/{self.job.id}/status/', {'status': 'ghost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['field'], 'status')

    def test_inactive_status_rejected(self):
        self.qa.is_active = False
        self.qa.save()
        with self.assertRaises(UnknownStatusError):
            change_job_status(self.job, 'qa_check')

    def test_blocked_raises(self):
        with self.assertRaises(TransitionBlocked) as ctx:
            change_job_status(self.job, 'scheduled')
        self.assertEqual(ctx.exception.missing, ['qa_check'])

    def test_same_status_writes_nothing(self):
        change_job_status(self.job, 'manufacturing_posts')
        self.assertFalse(JobStatusChange.objects.exists())

    def test_completion_date_set(self):
        change_job_status(self.job, 'install_complete')
        self.job.refresh_from_db()
        self.assertIsNotNone(self.job.completion_date)

    def test_status_not_editable_through_detail(self):
        response = self.client.patch(f'/api/v1/jobs/{self.job.id}/', {'status': 'scheduled', 'notes': 'gate'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'manufacturing_posts')
        self.assertEqual(response.data['notes'], 'gate')

    def test_job_number_read_only(self):
        original = self.job.job_number
        response = self.client.patch(f'/api/v1/jobs/{self.job.id}/', {'job_number': 'JOB-1999-0001'},
                                     format='json')
        self.assertEqual(response.data['job_number'], original)

    def test_detail_includes_history(self):
        change_job_status(self.job, 'qa_check', user=self.user)
        response = self.client.get(f'/api/v1/jobs/{self.job.id}/')
        self.assertEqual(len(response.data['status_history']), 1)
        self.assertEqual(response.data['status_history'][0]['to_status'], 'qa_check')

    def test_removed_status_label(self):
        job = TestDataFactory.create_job(status='retired_status')
        response = self.client.get(f'/api/v1/jobs/{job.id}/')
        self.assertEqual(response.data['status_label'], 'Unknown')


class JobAPITests(TestCase):
    """Test job creation, listing and the job board"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['ProductionManager']))
        TestDataFactory.create_status(key='awaiting_deposit')
        TestDataFactory.create_status(key='manufacturing_posts')
        TestDataFactory.create_status(key='completed')
        self.customer = TestDataFactory.create_client()

    def test_create_job_uses_initial_status(self):
        response = self.client.post('/api/v1/jobs/', {'client': self.customer.id, 'total_amount': '900.00'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'awaiting_deposit')
        self.assertEqual(JobStatusChange.objects.get(job_id=response.data['id']).to_status, 'awaiting_deposit')

    def test_create_job_with_unknown_status(self):
        response = self.client.post('/api/v1/jobs/', {'client': self.customer.id, 'status': 'ghost'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('status', response.data)

    def test_inactive_pipeline_rejected(self):
        pipeline = TestDataFactory.create_pipeline()
        pipeline.is_active = False
        pipeline.save()
        response = self.client.post('/api/v1/jobs/', {'client': self.customer.id, 'pipeline': pipeline.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('pipeline', response.data)

    def test_filters(self):
        TestDataFactory.create_job(client=self.customer, status='manufacturing_posts')
        TestDataFactory.create_job(status='completed')
        TestDataFactory.create_job(status='awaiting_deposit')
        response = self.client.get('/api/v1/jobs/?status=manufacturing_posts,awaiting_deposit')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/jobs/?active=true')
        self.assertEqual(len(response.data), 2)
        response = self.client.get(f'/api/v1/jobs/?client={self.customer.id}')
        self.assertEqual(len(response.data), 1)

    def test_board_groups_jobs_by_column(self):
        TestDataFactory.create_column(title='New', statuses=['awaiting_deposit'])
        TestDataFactory.create_column(title='Production', statuses=['manufacturing_posts'], color='purple')
        TestDataFactory.create_job(status='manufacturing_posts', total_amount=Decimal('1500.00'))
        TestDataFactory.create_job(status='manufacturing_posts', total_amount=Decimal('500.00'))
        TestDataFactory.create_job(status='completed')
        response = self.client.get('/api/v1/jobs/board/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        columns = response.data['columns']
        self.assertEqual([column['title'] for column in columns], ['New', 'Production'])
        self.assertEqual(columns[0]['count'], 0)
        self.assertEqual(columns[1]['count'], 2)
        self.assertEqual(Decimal(columns[1]['total_value']), Decimal('2000.00'))
        self.assertEqual(len(response.data['unassigned']), 1)

    def test_board_refreshes_after_job_change(self):
        TestDataFactory.create_column(title='New', statuses=['awaiting_deposit'])
        self.client.get('/api/v1/jobs/board/')
        TestDataFactory.create_job(status='awaiting_deposit')
        response = self.client.get('/api/v1/jobs/board/')
        self.assertEqual(response.data['columns'][0]['count'], 1)


class PipelineProgressTests(TestCase):
    """Test pipeline progress and stage completion"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['ProductionManager']))
        self.pipeline = TestDataFactory.create_pipeline(name='Supply Only')
        self.first = TestDataFactory.create_stage(self.pipeline, name='Manufacturing of Posts')
        self.second = TestDataFactory.create_stage(self.pipeline, name='Client Picked Up Posts')
        self.automatic = TestDataFactory.create_stage(self.pipeline, name='Invoice Sent', completion_type='automatic')
        TestDataFactory.create_stage(self.pipeline, name='Retired', is_active=False)
        self.job = TestDataFactory.create_job(pipeline=self.pipeline)

    def test_progress_counts_active_stages(self):
        response = self.client.get(f'/api/v1/jobs/{self.job.id}/pipeline-progress/')
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['completed'], 0)
        self.assertEqual(response.data['percent'], 0)

    def test_complete_manual_stage(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/pipeline-stages/{self.first.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['completed'], 1)
        self.assertEqual(response.data['percent'], 33)
        self.assertTrue(response.data['stages'][0]['completed'])
        self.assertTrue(AuditLog.objects.filter(action='stage_complete').exists())

    def test_automatic_stage_cannot_be_completed_by_hand(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/pipeline-stages/{self.automatic.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stage_from_other_pipeline_rejected(self):
        other_stage = TestDataFactory.create_stage(TestDataFactory.create_pipeline())
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/pipeline-stages/{other_stage.id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_job_without_pipeline(self):
        job = TestDataFactory.create_job()
        response = self.client.get(f'/api/v1/jobs/{job.id}/pipeline-progress/')
        self.assertEqual(response.data, {'pipeline': None, 'completed': 0, 'total': 0, 'percent': 0, 'stages': []})


class PaymentAPITests(TestCase):
    """Test payment endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Admin']))
        self.job = TestDataFactory.create_job()

    def test_record_paid_deposit(self):
        response = self.client.post('/api/v1/payments/', {
            'client': self.job.client_id, 'job': self.job.id, 'amount': '500.00',
            'payment_type': 'deposit', 'payment_method': 'bank_transfer', 'status': 'paid',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNotNone(response.data['paid_at'])
        self.assertEqual(response.data['job_number'], self.job.job_number)
        self.job.refresh_from_db()
        self.assertTrue(self.job.deposit_paid)
        self.assertTrue(AuditLog.objects.filter(action='payment_add').exists())

    def test_amount_must_be_positive(self):
        response = self.client.post('/api/v1/payments/', {
            'client': self.job.client_id, 'amount': '0.00', 'payment_type': 'deposit',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)

    def test_job_must_belong_to_client(self):
        response = self.client.post('/api/v1/payments/', {
            'client': TestDataFactory.create_client().id, 'job': self.job.id, 'amount': '10.00',
            'payment_type': 'final',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('job', response.data)

    def test_pending_filter(self):
        TestDataFactory.create_payment(job=self.job, status='pending')
        TestDataFactory.create_payment(job=self.job, status='paid', payment_type='final')
        response = self.client.get('/api/v1/payments/?pending=true')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['status'], 'pending')

    def test_marking_final_paid_updates_job(self):
        payment = TestDataFactory.create_payment(job=self.job, payment_type='final')
        response = self.client.patch(f'/api/v1/payments/{payment.id}/', {'status': 'paid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['paid_at'])
        self.job.refresh_from_db()
        self.assertTrue(self.job.final_paid)

        self.client.patch(f'/api/v1/payments/{payment.id}/', {'status': 'cancelled'}, format='json')
        self.job.refresh_from_db()
        self.assertFalse(self.job.final_paid)


class QuoteNumberTests(TestCase):
    """Test the next quote number preview"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))

    def test_next_number_follows_existing_quotes(self):
        response = self.client.get('/api/v1/quotes/next-number/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        year = timezone.localdate().year
        self.assertEqual(response.data['quote_number'], f'Q-{year}-0001')

        quote = TestDataFactory.create_quote()
        response = self.client.get('/api/v1/quotes/next-number/')
        self.assertEqual(quote.quote_number, f'Q-{year}-0001')
        self.assertEqual(response.data['quote_number'], f'Q-{year}-0002')


class BillOfMaterialsAPITests(TestCase):
    """Test the per-job bill of materials"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['ProductionManager']))
        self.job = TestDataFactory.create_job()
        self.url = f'/api/v1/jobs/{self.job.id}/bom/'

    def test_missing_bom_is_404(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_post_creates_then_updates(self):
        items = [{'product': 1, 'product_name': 'Steel post', 'sku': 'POST-65', 'quantity': 14, 'cut_length': 2400}]
        response = self.client.post(self.url, {'items': items, 'estimated_machine_time': 45}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['wastage_percent']), Decimal('5.00'))
        self.assertEqual(response.data['job_number'], self.job.job_number)

        response = self.client.post(self.url, {'wastage_percent': '7.5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        bom = BillOfMaterials.objects.get(job=self.job)
        self.assertEqual(bom.wastage_percent, Decimal('7.50'))
        self.assertEqual(bom.items, items)
        self.assertEqual(bom.estimated_machine_time, 45)

        response = self.client.get(self.url)
        self.assertEqual(response.data['items'][0]['sku'], 'POST-65')

    def test_bom_validation(self):
        response = self.client.post(self.url, {'items': [{'quantity': -2}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)
        response = self.client.post(self.url, {'wastage_percent': '120'}, format='json')
        self.assertIn('wastage_percent', response.data)
        self.assertFalse(BillOfMaterials.objects.exists())

    def test_job_payments(self):
        TestDataFactory.create_payment(job=self.job)
        TestDataFactory.create_payment(job=TestDataFactory.create_job())
        response = self.client.get(f'/api/v1/jobs/{self.job.id}/payments/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['job_number'], self.job.job_number)


class ProductionTaskAPITests(TestCase):
    """Test production task endpoints"""

    def setUp(self):
        self.worker = TestDataFactory.create_user(groups=['ProductionManager'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.worker)
        self.job = TestDataFactory.create_job(status='manufacturing_posts')

    def test_add_task_to_job(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/production-tasks/',
                                    {'task_type': 'cutting', 'machine_used': 'Drop saw'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['job'], self.job.id)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['assigned_to_name'], 'Unassigned')
        response = self.client.get(f'/api/v1/jobs/{self.job.id}/production-tasks/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(ProductionTask.objects.get(job=self.job).machine_used, 'Drop saw')

    def test_list_filters(self):
        TestDataFactory.create_production_task(job=self.job, task_type='qa', status='in_progress')
        TestDataFactory.create_production_task(job=self.job, task_type='cutting')
        TestDataFactory.create_production_task(task_type='assembly')
        response = self.client.get(f'/api/v1/production-tasks/?job={self.job.id}')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/production-tasks/?status=in_progress')
        self.assertEqual([task['task_type'] for task in response.data], ['qa'])

    def test_start_assigns_and_stamps(self):
        task = TestDataFactory.create_production_task(job=self.job)
        response = self.client.post(f'/api/v1/production-tasks/{task.id}/start/',
                                    {'assigned_to': self.worker.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'in_progress')
        self.assertIsNotNone(response.data['start_time'])
        self.assertEqual(response.data['assigned_to'], self.worker.id)
        self.assertTrue(AuditLog.objects.filter(action='task_start', object_reference=self.job.job_number).exists())

    def test_complete_records_time_and_qa(self):
        task = TestDataFactory.create_production_task(job=self.job, task_type='qa', status='in_progress')
        task.start_time = timezone.now() - timedelta(minutes=90)
        task.save()
        response = self.client.post(f'/api/v1/production-tasks/{task.id}/complete/', {'qa_result': 'passed'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['time_spent_minutes'], 90)
        self.assertEqual(response.data['qa_result'], 'passed')
        self.assertIsNotNone(response.data['qa_passed_at'])

    def test_complete_without_start_spends_no_time(self):
        task = TestDataFactory.create_production_task(job=self.job)
        complete_production_task(task, qa_result='failed')
        task.refresh_from_db()
        self.assertEqual(task.time_spent_minutes, 0)
        self.assertEqual(task.qa_result, 'failed')
        self.assertIsNone(task.qa_passed_at)

    def test_completed_task_cannot_restart(self):
        task = TestDataFactory.create_production_task(job=self.job, status='completed')
        response = self.client.post(f'/api/v1/production-tasks/{task.id}/start/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['field'], 'status')
        with self.assertRaises(TaskStateError):
            complete_production_task(task)

    def test_timing_fields_read_only(self):
        task = TestDataFactory.create_production_task(job=self.job)
        response = self.client.patch(f'/api/v1/production-tasks/{task.id}/',
                                     {'time_spent_minutes': 500, 'notes': 'offcut reused'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        task.refresh_from_db()
        self.assertIsNone(task.time_spent_minutes)
        self.assertEqual(task.notes, 'offcut reused')


class InstallTaskAPITests(TestCase):
    """Test install task endpoints and the job move on completion"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Scheduler']))
        self.installer = TestDataFactory.create_user(username='installer_dan')
        self.scheduled = TestDataFactory.create_status(key='scheduled')
        self.complete = TestDataFactory.create_status(key='install_complete', label='Install Complete')
        self.job = TestDataFactory.create_job(status='scheduled')

    def _local(self, days=0, hour=10):
        day = timezone.localdate() + timedelta(days=days)
        return timezone.make_aware(datetime.combine(day, time(hour, 0)))

    def test_booking_notifies_installer(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/install-tasks/', {
            'installer': self.installer.id, 'scheduled_date': self._local(days=2).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'scheduled')
        notification = Notification.objects.get(user=self.installer)
        self.assertEqual(notification.type, 'install_assigned')
        self.assertIn(self.job.job_number, notification.title)
        self.assertEqual(notification.related_entity_id, str(response.data['id']))

    def test_installer_required(self):
        response = self.client.post('/api/v1/install-tasks/', {
            'job': self.job.id, 'scheduled_date': self._local().isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('installer', response.data)

    def test_reassignment_notifies_new_installer(self):
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer)
        other = TestDataFactory.create_user()
        self.client.patch(f'/api/v1/install-tasks/{task.id}/', {'installer': other.id}, format='json')
        self.assertEqual(Notification.objects.filter(user=other).count(), 1)
        self.client.patch(f'/api/v1/install-tasks/{task.id}/', {'notes': 'bring auger'}, format='json')
        self.assertEqual(Notification.objects.filter(user=other).count(), 1)

    def test_date_filter_covers_whole_day(self):
        TestDataFactory.create_install_task(job=self.job, installer=self.installer, scheduled_date=self._local(hour=7))
        TestDataFactory.create_install_task(job=self.job, installer=self.installer, scheduled_date=self._local(hour=22))
        TestDataFactory.create_install_task(job=self.job, installer=self.installer, scheduled_date=self._local(days=1))
        today = timezone.localdate().isoformat()
        response = self.client.get(f'/api/v1/install-tasks/?date={today}&installer={self.installer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_check_in(self):
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer)
        response = self.client.post(f'/api/v1/install-tasks/{task.id}/check-in/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'on_site')
        self.assertIsNotNone(response.data['check_in_time'])

    def test_complete_moves_job(self):
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer, status='on_site')
        response = self.client.post(f'/api/v1/install-tasks/{task.id}/complete/', {
            'notes': 'All panels level', 'variations_found': 'Extra gate post', 'photos': ['https://img/1.jpg'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['job_status'], 'install_complete')
        self.assertEqual(response.data['photos'], ['https://img/1.jpg'])
        self.assertIsNotNone(response.data['check_out_time'])
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, 'install_complete')
        self.assertIsNotNone(self.job.completion_date)
        self.assertTrue(JobStatusChange.objects.filter(job=self.job, to_status='install_complete').exists())

    def test_blocked_job_move_keeps_task_open(self):
        qa = TestDataFactory.create_status(key='qa_check')
        TestDataFactory.create_dependency(self.complete, qa, 'mandatory')
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer, status='on_site')
        response = self.client.post(f'/api/v1/install-tasks/{task.id}/complete/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('qa_check', response.data['error'])
        task.refresh_from_db()
        self.assertEqual(task.status, 'on_site')
        self.assertIsNone(task.check_out_time)

    def test_complete_without_install_status_leaves_job(self):
        self.complete.is_active = False
        self.complete.save()
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer)
        warnings = complete_install_task(task)
        self.assertEqual(warnings, [])
        self.assertEqual(InstallTask.objects.get(pk=task.pk).status, 'completed')
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, 'scheduled')

    def test_completed_task_cannot_check_in(self):
        task = TestDataFactory.create_install_task(job=self.job, installer=self.installer, status='completed')
        response = self.client.post(f'/api/v1/install-tasks/{task.id}/check-in/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ScheduleAPITests(TestCase):
    """Test schedule event endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Scheduler']))
        self.now = timezone.now().replace(microsecond=0)

    def test_create_event_notifies_assignee(self):
        assignee = TestDataFactory.create_user()
        job = TestDataFactory.create_job()
        response = self.client.post('/api/v1/schedule/', {
            'event_type': 'site_measure', 'title': '  Measure side fence ', 'job': job.id,
            'start_date': (self.now + timedelta(days=1)).isoformat(),
            'end_date': (self.now + timedelta(days=1, hours=1)).isoformat(),
            'assigned_to': assignee.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'Measure side fence')
        self.assertEqual(response.data['job_number'], job.job_number)
        self.assertEqual(Notification.objects.get(user=assignee).type, 'schedule_assigned')

    def test_end_before_start_rejected(self):
        response = self.client.post('/api/v1/schedule/', {
            'event_type': 'delivery', 'title': 'Drop materials',
            'start_date': self.now.isoformat(), 'end_date': (self.now - timedelta(hours=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_window_filter_orders_by_start(self):
        later = TestDataFactory.create_schedule_event(title='Later', start_date=self.now + timedelta(days=2))
        sooner = TestDataFactory.create_schedule_event(title='Sooner', start_date=self.now + timedelta(days=1))
        TestDataFactory.create_schedule_event(title='Next week', start_date=self.now + timedelta(days=7))
        response = self.client.get('/api/v1/schedule/', {
            'start': self.now.isoformat(), 'end': (self.now + timedelta(days=3)).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([event['id'] for event in response.data], [sooner.id, later.id])

    def test_assignee_filter(self):
        assignee = TestDataFactory.create_user()
        TestDataFactory.create_schedule_event(assigned_to=assignee)
        TestDataFactory.create_schedule_event()
        response = self.client.get(f'/api/v1/schedule/?assigned_to={assignee.id}')
        self.assertEqual(len(response.data), 1)

    def test_update_and_delete(self):
        event = TestDataFactory.create_schedule_event()
        response = self.client.patch(f'/api/v1/schedule/{event.id}/', {'is_confirmed': True}, format='json')
        self.assertTrue(response.data['is_confirmed'])
        response = self.client.delete(f'/api/v1/schedule/{event.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
