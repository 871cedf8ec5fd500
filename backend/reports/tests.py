"""
Test suite for the reports module
Tests: dashboard statistics (server and record paths), merging, production progress, drift check
"""
from datetime import datetime, time, timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.leads.models import Lead
from backend.reports.stats import (
    STATS_BY_NAME, compute_dashboard_stats, compute_record_stats, fetch_records, merge_stats, production_progress,
)


class StatDefinitionTests(TestCase):
    """Test statistics evaluated over records"""

    def test_jobs_in_progress_excludes_completed(self):
        """Test jobs in progress counts only jobs outside the completed statuses"""
        definition = STATS_BY_NAME['jobs_in_progress']
        records = [{'status': 'manufacturing_posts'}, {'status': 'completed'}]
        self.assertEqual(definition.record_value(records), 1)

    def test_jobs_in_production(self):
        definition = STATS_BY_NAME['jobs_in_production']
        records = [{'status': 'qa_check'}, {'status': 'manufacturing_gates'}, {'status': 'scheduled'}]
        self.assertEqual(definition.record_value(records), 2)

    def test_low_stock_compares_fields(self):
        definition = STATS_BY_NAME['low_stock_products']
        records = [
            {'is_active': True, 'stock_on_hand': 4, 'reorder_point': 10},
            {'is_active': True, 'stock_on_hand': 10, 'reorder_point': 10},
            {'is_active': True, 'stock_on_hand': 11, 'reorder_point': 10},
            {'is_active': False, 'stock_on_hand': 0, 'reorder_point': 10},
        ]
        self.assertEqual(definition.record_value(records), 2)

    def test_pending_payments_total(self):
        definition = STATS_BY_NAME['pending_payments_total']
        records = [
            {'status': 'pending', 'amount': Decimal('250.00')},
            {'status': 'pending', 'amount': '100.50'},
            {'status': 'paid', 'amount': Decimal('999.00')},
        ]
        self.assertEqual(definition.record_value(records), Decimal('350.50'))

    def test_compute_record_stats_missing_models_count_zero(self):
        stats = compute_record_stats({'leads.Lead': [{'stage': 'new'}, {'stage': 'contacted'}]})
        self.assertEqual(stats['new_leads'], 1)
        self.assertEqual(stats['jobs_in_progress'], 0)
        self.assertEqual(stats['pending_payments_total'], Decimal('0.00'))

    @override_settings(COMPLETED_JOB_STATUSES=['archived'])
    def test_definitions_follow_settings(self):
        definition = STATS_BY_NAME['jobs_in_progress']
        self.assertEqual(definition.record_value([{'status': 'completed'}, {'status': 'archived'}]), 1)

    def test_merge_falls_back_on_empty_server_values(self):
        """Test a server value of zero or None falls back to the computed value"""
        server = {'new_leads': 0, 'jobs_in_progress': None, 'jobs_in_production': 4, 'today_installs': 0}
        computed = {'new_leads': 5, 'jobs_in_progress': 3, 'jobs_in_production': 1, 'low_stock_products': 2}
        merged = merge_stats(server, computed)
        self.assertEqual(merged['new_leads'], 5)
        self.assertEqual(merged['jobs_in_progress'], 3)
        self.assertEqual(merged['jobs_in_production'], 4)
        self.assertEqual(merged['low_stock_products'], 2)
        self.assertEqual(merged['today_installs'], 0)
        self.assertEqual(merge_stats(None, computed)['new_leads'], 5)


class DashboardStatsTests(TestCase):
    """Test the dashboard statistics endpoint"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        customer = TestDataFactory.create_client()
        TestDataFactory.create_lead(stage='new')
        TestDataFactory.create_lead(stage='contacted')
        TestDataFactory.create_quote(client=customer, status='sent')
        TestDataFactory.create_quote(client=customer, status='draft')
        TestDataFactory.create_job(client=customer, status='manufacturing_posts')
        TestDataFactory.create_job(client=customer, status='scheduled')
        job = TestDataFactory.create_job(client=customer, status='completed')
        TestDataFactory.create_product(stock_on_hand=2, reorder_point=10)
        TestDataFactory.create_product(stock_on_hand=50, reorder_point=10)
        TestDataFactory.create_payment(job=job, amount=Decimal('400.00'), status='pending')
        TestDataFactory.create_payment(job=job, amount=Decimal('100.00'), status='paid')
        morning = timezone.make_aware(datetime.combine(timezone.localdate(), time(9, 0)))
        TestDataFactory.create_install_task(job=job, scheduled_date=morning)
        TestDataFactory.create_install_task(job=job, scheduled_date=morning + timedelta(days=1))

    def test_server_stats(self):
        response = self.client.get('/api/v1/reports/dashboard-stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['stats']
        self.assertEqual(stats['new_leads'], 1)
        self.assertEqual(stats['quotes_awaiting_follow_up'], 1)
        self.assertEqual(stats['jobs_in_production'], 1)
        self.assertEqual(stats['jobs_in_progress'], 2)
        self.assertEqual(stats['jobs_ready_for_install'], 1)
        self.assertEqual(stats['low_stock_products'], 1)
        self.assertEqual(Decimal(stats['pending_payments_total']), Decimal('400.00'))
        self.assertEqual(stats['today_installs'], 1)
        self.assertTrue(all(source == 'server' for source in response.data['sources'].values()))

    def test_failed_aggregate_falls_back_to_records(self):
        definition = STATS_BY_NAME['jobs_in_progress']
        with mock.patch.object(definition, 'server_value', side_effect=DatabaseError('aggregate failed')):
            result = compute_dashboard_stats()
        self.assertEqual(result['stats']['jobs_in_progress'], 2)
        self.assertEqual(result['sources']['jobs_in_progress'], 'computed')
        self.assertEqual(result['sources']['new_leads'], 'server')

    def test_zero_aggregate_falls_back_to_records(self):
        """Test an aggregate that comes back 0 is replaced by the record count"""
        definition = STATS_BY_NAME['new_leads']
        with mock.patch.object(definition, 'server_value', return_value=0):
            response = self.client.get('/api/v1/reports/dashboard-stats/')
        self.assertEqual(response.data['stats']['new_leads'], 1)
        self.assertEqual(response.data['sources']['new_leads'], 'computed')
        self.assertEqual(response.data['sources']['jobs_in_progress'], 'server')

    def test_real_zero_stays_from_server(self):
        Lead.objects.filter(stage='new').update(stage='contacted')
        result = compute_dashboard_stats()
        self.assertEqual(result['stats']['new_leads'], 0)
        self.assertEqual(result['sources']['new_leads'], 'server')

    def test_server_and_record_paths_agree(self):
        server = compute_dashboard_stats()['stats']
        for name, definition in STATS_BY_NAME.items():
            computed = definition.record_value(fetch_records(definition))
            self.assertEqual(str(computed) if isinstance(computed, Decimal) else computed, server[name], name)

    def test_stats_refresh_after_change(self):
        self.client.get('/api/v1/reports/dashboard-stats/')
        TestDataFactory.create_lead(stage='new')
        response = self.client.get('/api/v1/reports/dashboard-stats/')
        self.assertEqual(response.data['stats']['new_leads'], 2)

    def test_check_dashboard_stats_command(self):
        out = StringIO()
        call_command('check_dashboard_stats', '--fail-on-drift', stdout=out)
        self.assertIn('All dashboard statistics agree', out.getvalue())

    def test_check_dashboard_stats_reports_drift(self):
        definition = STATS_BY_NAME['new_leads']
        with mock.patch.object(definition, 'server_value', return_value=99):
            out = StringIO()
            call_command('check_dashboard_stats', stdout=out)
            self.assertIn('new_leads: server=99 computed=1', out.getvalue())
            with self.assertRaises(CommandError):
                call_command('check_dashboard_stats', '--fail-on-drift', stdout=StringIO())


class ProductionProgressTests(TestCase):
    """Test the production progress report"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        for key in ('cutting', 'welding', 'powder_coating'):
            TestDataFactory.create_status(key=key)

    def test_uses_production_column(self):
        TestDataFactory.create_column(title='In Production', statuses=['cutting', 'welding', 'powder_coating'])
        TestDataFactory.create_job(status='cutting')
        TestDataFactory.create_job(status='cutting')
        TestDataFactory.create_job(status='welding')
        TestDataFactory.create_job(status='scheduled')
        response = self.client.get('/api/v1/reports/production-progress/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['column'], 'In Production')
        self.assertEqual(response.data['total'], 3)
        stages = {stage['status_key']: stage for stage in response.data['stages']}
        self.assertEqual(stages['cutting']['job_count'], 2)
        self.assertEqual(stages['cutting']['progress'], 67)
        self.assertEqual(stages['welding']['progress'], 33)
        self.assertEqual(stages['powder_coating']['progress'], 0)
        self.assertEqual(stages['cutting']['label'], 'Cutting')

    def test_inactive_production_column_ignored(self):
        TestDataFactory.create_column(title='Production', statuses=['cutting'], is_active=False)
        result = production_progress()
        self.assertIsNone(result['column'])

    @override_settings(PRODUCTION_JOB_STATUSES=['welding', 'qa_check'])
    def test_falls_back_to_configured_statuses(self):
        TestDataFactory.create_job(status='qa_check')
        result = production_progress()
        self.assertIsNone(result['column'])
        self.assertEqual([stage['status_key'] for stage in result['stages']], ['welding', 'qa_check'])
        self.assertEqual(result['stages'][1]['label'], 'Unknown')
        self.assertEqual(result['stages'][1]['progress'], 100)

    def test_no_jobs_gives_zero_progress(self):
        TestDataFactory.create_column(title='Production', statuses=['cutting'])
        result = production_progress()
        self.assertEqual(result['total'], 0)
        self.assertEqual(result['stages'][0]['progress'], 0)
