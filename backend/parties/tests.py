"""
Test suite for the parties module
Tests: client CRUD, trade discount rules, deletion protection, client history, export, CSV import
"""
import csv
import io
import os
import tempfile

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.models import Client


class ClientAPITests(TestCase):
    """Test client endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))

    def test_create_trade_client(self):
        response = self.client.post('/api/v1/clients/', {
            'name': '  Coastal Fencing Pty Ltd ',
            'phone': '0299990000',
            'client_type': 'trade',
            'trade_discount_level': 'gold',
            'abn': '51 824 753 556',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Coastal Fencing Pty Ltd')
        self.assertEqual(response.data['trade_discount_level'], 'gold')

    def test_public_client_has_no_discount_level(self):
        """Test discount levels are cleared for non-trade clients"""
        response = self.client.post('/api/v1/clients/', {
            'name': 'Jo Citizen', 'client_type': 'public', 'trade_discount_level': 'gold',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['trade_discount_level'])

    def test_switching_to_public_clears_discount_level(self):
        customer = TestDataFactory.create_client(client_type='trade')
        customer.trade_discount_level = 'silver'
        customer.save()
        response = self.client.patch(f'/api/v1/clients/{customer.id}/', {'client_type': 'public'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['trade_discount_level'])

    def test_name_required(self):
        response = self.client.post('/api/v1/clients/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_detail_includes_job_counts(self):
        customer = TestDataFactory.create_client()
        TestDataFactory.create_job(client=customer, status='manufacturing_posts')
        TestDataFactory.create_job(client=customer, status='completed')
        response = self.client.get(f'/api/v1/clients/{customer.id}/')
        self.assertEqual(response.data['job_count'], 2)
        self.assertEqual(response.data['active_job_count'], 1)

    def test_search_and_type_filters(self):
        TestDataFactory.create_client(name='Northside Builders', client_type='trade')
        TestDataFactory.create_client(name='Sam Northcott')
        TestDataFactory.create_client(name='Unrelated')
        response = self.client.get('/api/v1/clients/?search=north')
        self.assertEqual(len(response.data), 2)
        response = self.client.get('/api/v1/clients/?client_type=trade')
        self.assertEqual([item['name'] for item in response.data], ['Northside Builders'])

    def test_delete_client(self):
        customer = TestDataFactory.create_client()
        response = self.client.delete(f'/api/v1/clients/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Client.objects.filter(id=customer.id).exists())

    def test_client_with_jobs_cannot_be_deleted(self):
        customer = TestDataFactory.create_client()
        TestDataFactory.create_job(client=customer)
        response = self.client.delete(f'/api/v1/clients/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Client.objects.filter(id=customer.id).exists())

    def test_deleting_client_keeps_leads(self):
        customer = TestDataFactory.create_client()
        lead = TestDataFactory.create_lead(client=customer)
        self.client.delete(f'/api/v1/clients/{customer.id}/')
        lead.refresh_from_db()
        self.assertIsNone(lead.client)

    def test_export(self):
        TestDataFactory.create_client(name='Export Client', email='export@example.com')
        response = self.client.get('/api/v1/export/clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment; filename="clients-', response['Content-Disposition'])
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][1], 'name')
        self.assertEqual(rows[1][1], 'Export Client')
        self.assertEqual(rows[1][3], 'export@example.com')


class ClientHistoryTests(TestCase):
    """Test a client's jobs, quotes and payments"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['Sales']))
        self.customer = TestDataFactory.create_client(name='Harbour Homes')
        other = TestDataFactory.create_client()
        quote = TestDataFactory.create_quote(client=self.customer)
        self.job = TestDataFactory.create_job(client=self.customer, quote=quote)
        TestDataFactory.create_payment(job=self.job)
        TestDataFactory.create_job(client=other)
        TestDataFactory.create_quote(client=other)

    def test_client_jobs(self):
        response = self.client.get(f'/api/v1/clients/{self.customer.id}/jobs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([job['id'] for job in response.data], [self.job.id])
        self.assertEqual(response.data[0]['client_name'], 'Harbour Homes')

    def test_client_quotes_and_payments(self):
        response = self.client.get(f'/api/v1/clients/{self.customer.id}/quotes/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/clients/{self.customer.id}/payments/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['job_number'], self.job.job_number)

    def test_unknown_client_is_404(self):
        response = self.client.get('/api/v1/clients/999999/jobs/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ImportClientsCommandTests(TestCase):
    """Test the import_clients management command"""

    def _write_csv(self, rows):
        handle = tempfile.NamedTemporaryFile('w', suffix='.csv', delete=False, newline='', encoding='utf-8')
        with handle:
            writer = csv.writer(handle)
            for row in rows:
                writer.writerow(row)
        self.addCleanup(os.remove, handle.name)
        return handle.name

    def test_import(self):
        path = self._write_csv([
            ['name', 'phone', 'email', 'client_type', 'trade_discount_level'],
            ['Harbour  Homes', '0400111222', 'hh@example.com', 'TRADE', 'Gold'],
            ['Jo Citizen', '0400333444', '', 'public', 'gold'],
            ['harbour homes', '0400111222', '', 'trade', ''],
            ['', '0400000000', '', '', ''],
        ])
        out = io.StringIO()
        call_command('import_clients', path, stdout=out)
        self.assertEqual(Client.objects.count(), 2)
        trade = Client.objects.get(name='Harbour Homes')
        self.assertEqual(trade.client_type, 'trade')
        self.assertEqual(trade.trade_discount_level, 'gold')
        self.assertIsNone(Client.objects.get(name='Jo Citizen').trade_discount_level)
        self.assertIn('Created 2 clients; skipped 1 duplicates and 1 empty rows', out.getvalue())

    def test_existing_clients_skipped(self):
        TestDataFactory.create_client(name='Jo Citizen', phone='0400333444')
        path = self._write_csv([['name', 'phone'], ['Jo Citizen', '0400333444']])
        call_command('import_clients', path, stdout=io.StringIO())
        self.assertEqual(Client.objects.count(), 1)

    def test_dry_run_writes_nothing(self):
        path = self._write_csv([['name'], ['Dry Run Client']])
        out = io.StringIO()
        call_command('import_clients', path, '--dry-run', stdout=out)
        self.assertFalse(Client.objects.exists())
        self.assertIn('Would create 1 clients', out.getvalue())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_clients', '/nonexistent/clients.csv', stdout=io.StringIO())

    def test_missing_name_column(self):
        path = self._write_csv([['phone'], ['0400']])
        with self.assertRaises(CommandError):
            call_command('import_clients', path, stdout=io.StringIO())
