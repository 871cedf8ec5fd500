"""
Test suite for the leads module
Tests: stage/status mapping, lead CRUD, board, moves, quote conversion, export
"""
import csv
import io
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.model_cache import LEAD_BOARD_KEY
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.jobs.models import Quote
from backend.leads.board import board_with_move, build_board
from backend.leads.models import Lead
from backend.leads.stages import (
    LEAD_STAGES, STAGE_TO_STATUS, STATUS_KEYS, map_stage_to_status, map_status_to_stage, stage_for_move,
)


class StageMappingTests(TestCase):
    """Test the stage to board status mapping"""

    def test_every_stage_maps_to_a_status(self):
        for stage, _ in LEAD_STAGES:
            self.assertIn(map_stage_to_status(stage), STATUS_KEYS)
            self.assertEqual(map_stage_to_status(stage), STAGE_TO_STATUS[stage])

    def test_fine_grained_stages(self):
        self.assertEqual(map_stage_to_status('site_visit_scheduled'), 'contacted')
        self.assertEqual(map_stage_to_status('site_visit_complete'), 'contacted')
        self.assertEqual(map_stage_to_status('quote_revised'), 'quoted')
        self.assertEqual(map_stage_to_status('converted_to_job'), 'approved')
        self.assertEqual(map_stage_to_status('lost'), 'declined')

    def test_unknown_stage_maps_to_new(self):
        self.assertEqual(map_stage_to_status('on_hold'), 'new')
        self.assertEqual(map_stage_to_status(''), 'new')
        self.assertEqual(map_stage_to_status(None), 'new')

    def test_round_trip_is_lossy(self):
        """Test the inverse mapping collapses fine-grained stages"""
        self.assertEqual(map_status_to_stage(map_stage_to_status('site_visit_scheduled')), 'contacted')
        self.assertNotEqual(map_status_to_stage(map_stage_to_status('site_visit_scheduled')),
                            'site_visit_scheduled')
        self.assertEqual(map_status_to_stage('quoted'), 'quote_sent')

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValueError):
            map_status_to_stage('archived')

    def test_stage_for_move(self):
        self.assertEqual(stage_for_move('new', 'contacted'), 'contacted')
        self.assertEqual(stage_for_move('site_visit_complete', 'contacted'), 'site_visit_complete')
        self.assertEqual(stage_for_move('site_visit_complete', 'quoted'), 'quote_sent')
        self.assertEqual(stage_for_move('lost', 'new'), 'new')


class LeadAPITests(TestCase):
    """Test lead CRUD endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(groups=['Sales'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_client(name='Harbour Homes')

    def test_create_lead(self):
        """Test creating a lead assigns a lead number"""
        response = self.client.post('/api/v1/leads/', {
            'client': self.customer.id,
            'source': 'phone',
            'site_address': '12 Rail Road, Newcastle NSW',
            'fence_length': '24.50',
            'fence_style': 'Colorbond',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        year = timezone.localdate().year
        self.assertEqual(response.data['lead_number'], f'LEAD-{year}-0001')
        self.assertEqual(response.data['stage'], 'new')
        self.assertEqual(response.data['status'], 'new')
        self.assertEqual(response.data['client_name'], 'Harbour Homes')
        self.assertEqual(response.data['assigned_to_name'], 'Unassigned')

    def test_lead_numbers_increment(self):
        first = TestDataFactory.create_lead()
        second = TestDataFactory.create_lead()
        self.assertEqual(int(second.lead_number[-4:]), int(first.lead_number[-4:]) + 1)

    def test_lead_number_is_read_only(self):
        lead = TestDataFactory.create_lead()
        response = self.client.patch(f'/api/v1/leads/{lead.id}/', {'lead_number': 'LEAD-1999-9999'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['lead_number'], lead.lead_number)

    def test_negative_fence_length_rejected(self):
        response = self.client.post('/api/v1/leads/', {'fence_length': '-3'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('fence_length', response.data)

    def test_invalid_stage_rejected(self):
        response = self.client.post('/api/v1/leads/', {'stage': 'on_hold'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_stage_is_audited(self):
        lead = TestDataFactory.create_lead(client=self.customer)
        response = self.client.patch(f'/api/v1/leads/{lead.id}/', {'stage': 'site_visit_scheduled'}, format='json')
        self.assertEqual(response.data['status'], 'contacted')
        audit = AuditLog.objects.get(action='update', model_name='Lead')
        self.assertEqual(audit.changes['previous_stage'], 'new')

    def test_delete_lead(self):
        lead = TestDataFactory.create_lead()
        response = self.client.delete(f'/api/v1/leads/{lead.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Lead.objects.filter(id=lead.id).exists())

    def test_filter_by_status_bucket(self):
        TestDataFactory.create_lead(stage='site_visit_scheduled')
        TestDataFactory.create_lead(stage='contacted')
        TestDataFactory.create_lead(stage='quote_sent')
        response = self.client.get('/api/v1/leads/?status=contacted')
        self.assertEqual(len(response.data), 2)
        self.assertTrue(all(item['status'] == 'contacted' for item in response.data))

    def test_filter_by_stage_and_assignment(self):
        TestDataFactory.create_lead(stage='lost', assigned_to=self.user)
        TestDataFactory.create_lead(stage='declined')
        response = self.client.get('/api/v1/leads/?stage=lost')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/leads/?assigned_to={self.user.id}')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/leads/?unassigned=true')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['stage'], 'declined')

    def test_search(self):
        TestDataFactory.create_lead(client=self.customer)
        TestDataFactory.create_lead(site_address='4 Gate Street')
        response = self.client.get('/api/v1/leads/?search=harbour')
        self.assertEqual(len(response.data), 1)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/leads/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class LeadBoardTests(TestCase):
    """Test the lead board and card moves"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(groups=['Sales'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _column(self, board, status_key):
        return next(column for column in board['columns'] if column['status'] == status_key)

    def test_board_groups_by_status(self):
        TestDataFactory.create_lead(stage='site_visit_complete')
        TestDataFactory.create_lead(stage='quote_revised')
        TestDataFactory.create_lead(stage='converted_to_job')
        response = self.client.get('/api/v1/leads/board/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([column['status'] for column in response.data['columns']],
                         ['new', 'contacted', 'quoted', 'approved', 'declined'])
        self.assertEqual(self._column(response.data, 'contacted')['count'], 1)
        self.assertEqual(self._column(response.data, 'quoted')['count'], 1)
        self.assertEqual(self._column(response.data, 'approved')['count'], 1)
        self.assertEqual(self._column(response.data, 'new')['count'], 0)

    def test_board_placeholders(self):
        TestDataFactory.create_lead()
        card = self._column(build_board(), 'new')['leads'][0]
        self.assertEqual(card['client_name'], 'Unknown')
        self.assertEqual(card['assigned_to_name'], 'Unassigned')

    def test_board_with_move_does_not_mutate_original(self):
        lead = TestDataFactory.create_lead()
        board = build_board()
        moved = board_with_move(board, lead.id, 'quote_sent')
        self.assertEqual(self._column(board, 'new')['count'], 1)
        self.assertEqual(self._column(moved, 'new')['count'], 0)
        self.assertEqual(self._column(moved, 'quoted')['leads'][0]['id'], lead.id)
        self.assertEqual(board_with_move(board, 99999, 'new'), board)

    def test_move_lead(self):
        """Test moving a lead updates its stage and writes an audit row"""
        lead = TestDataFactory.create_lead()
        response = self.client.post(f'/api/v1/leads/{lead.id}/move/', {'status': 'quoted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stage'], 'quote_sent')
        lead.refresh_from_db()
        self.assertEqual(lead.stage, 'quote_sent')
        audit = AuditLog.objects.get(action='lead_move')
        self.assertEqual(audit.changes['from_stage'], 'new')
        self.assertEqual(audit.changes['to_stage'], 'quote_sent')

        board = self.client.get('/api/v1/leads/board/').data
        self.assertEqual(self._column(board, 'quoted')['leads'][0]['id'], lead.id)

    def test_move_within_bucket_keeps_stage(self):
        lead = TestDataFactory.create_lead(stage='site_visit_scheduled')
        response = self.client.post(f'/api/v1/leads/{lead.id}/move/', {'status': 'contacted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stage'], 'site_visit_scheduled')
        self.assertFalse(AuditLog.objects.filter(action='lead_move').exists())

    def test_move_to_unknown_status(self):
        lead = TestDataFactory.create_lead()
        response = self.client.post(f'/api/v1/leads/{lead.id}/move/', {'status': 'archived'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_failed_move_restores_board(self):
        """Test a move that fails to persist leaves the lead and cached board unchanged"""
        lead = TestDataFactory.create_lead()
        snapshot = self.client.get('/api/v1/leads/board/').data
        with mock.patch('backend.leads.views.create_audit_log', side_effect=RuntimeError('audit store down')):
            response = self.client.post(f'/api/v1/leads/{lead.id}/move/', {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'An unexpected error occurred'})
        lead.refresh_from_db()
        self.assertEqual(lead.stage, 'new')
        cached = cache.get(LEAD_BOARD_KEY)
        self.assertEqual(self._column(cached, 'new')['count'], self._column(snapshot, 'new')['count'])
        self.assertEqual(self._column(cached, 'approved')['count'], 0)


class LeadConversionTests(TestCase):
    """Test converting leads to quotes and exporting leads"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))

    def test_convert_to_quote(self):
        customer = TestDataFactory.create_client(client_type='trade')
        lead = TestDataFactory.create_lead(client=customer, lead_type='trade', fence_length=Decimal('30.00'),
                                           site_address='9 Panel Parade')
        response = self.client.post(f'/api/v1/leads/{lead.id}/convert-to-quote/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['quote_number'].startswith('Q-'))
        self.assertEqual(response.data['status'], 'draft')
        quote = Quote.objects.get(lead=lead)
        self.assertTrue(quote.is_trade_quote)
        self.assertEqual(quote.site_address, '9 Panel Parade')
        self.assertEqual(quote.total_length, Decimal('30.00'))
        lead.refresh_from_db()
        self.assertEqual(lead.stage, 'quote_sent')
        self.assertTrue(AuditLog.objects.filter(action='lead_convert').exists())

    def test_convert_requires_client(self):
        lead = TestDataFactory.create_lead()
        response = self.client.post(f'/api/v1/leads/{lead.id}/convert-to-quote/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['field'], 'client')
        self.assertFalse(Quote.objects.exists())

    def test_export(self):
        TestDataFactory.create_lead(client=TestDataFactory.create_client(name='Export Co'), stage='quote_revised')
        response = self.client.get('/api/v1/export/leads/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][:4], ['lead_number', 'client', 'stage', 'status'])
        self.assertEqual(rows[1][1:4], ['Export Co', 'quote_revised', 'quoted'])
