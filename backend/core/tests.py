"""
Test suite for the core module
Tests: JWT auth, current user flags, users, audit logs, notifications, permissions, caching helpers,
document numbers
"""
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from backend.core.cache_signals import cache_keys_for, suspend_cache_signals
from backend.core.cache_utils import get_or_build, optimistic_cache_write
from backend.core.model_cache import (
    JOB_STATUS_LIST_KEY, JOB_BOARD_KEY, LEAD_BOARD_KEY, DASHBOARD_STATS_KEY, KANBAN_COLUMN_LIST_KEY,
    get_dependency_cache_key,
)
from backend.core.models import AuditLog, Notification
from backend.core.numbering import next_document_number
from backend.core.permissions import is_admin_user, is_config_admin
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, create_notification, parse_bool
from backend.jobs.models import Quote


class AuthTests(TestCase):
    """Test login, refresh and the current user endpoint"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user(username='sam', password='testpass123')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        """Test login returns access and refresh tokens"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'sam', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        """Test login with a wrong password is rejected"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'sam', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        """Test a refresh token yields a new access token"""
        login = self.client.post('/api/v1/auth/login/', {'username': 'sam', 'password': 'testpass123'},
                                 format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_endpoints_require_authentication(self):
        """Test API endpoints reject anonymous requests"""
        response = self.client.get('/api/v1/job-statuses/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_for_sales_user(self):
        """Test access flags for a Sales user"""
        user = TestDataFactory.create_user(groups=['Sales'])
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_admin'])
        self.assertTrue(response.data['can_access_leads'])
        self.assertFalse(response.data['can_access_inventory'])
        self.assertFalse(response.data['can_configure_workflow'])

    def test_me_for_production_manager(self):
        """Test production managers can configure the workflow"""
        user = TestDataFactory.create_user(groups=['ProductionManager'])
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['can_configure_workflow'])
        self.assertTrue(response.data['can_access_inventory'])

    def test_me_for_staff_without_groups(self):
        """Test staff outside every application group fall back to full access"""
        user = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_admin'])
        self.assertTrue(response.data['can_configure_workflow'])


class PermissionTests(TestCase):
    """Test group based permission helpers"""

    def test_admin_group(self):
        user = TestDataFactory.create_user(groups=['Admin'])
        self.assertTrue(is_admin_user(user))
        self.assertTrue(is_config_admin(user))

    def test_group_membership_overrides_staff_flag(self):
        """Test a staff user in an application group is judged by the group"""
        user = TestDataFactory.create_user(is_staff=True, groups=['Installer'])
        self.assertFalse(is_admin_user(user))
        self.assertFalse(is_config_admin(user))

    def test_production_manager_is_config_admin_only(self):
        user = TestDataFactory.create_user(groups=['ProductionManager'])
        self.assertFalse(is_admin_user(user))
        self.assertTrue(is_config_admin(user))

    def test_plain_user(self):
        user = TestDataFactory.create_user()
        self.assertFalse(is_admin_user(user))
        self.assertFalse(is_config_admin(user))


class UserEndpointTests(TestCase):
    """Test user management endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    def test_list_users_as_regular_user(self):
        """Test any user can list active users (for assignee pickers)"""
        inactive = TestDataFactory.create_user()
        inactive.is_active = False
        inactive.save()
        user = TestDataFactory.create_user(groups=['Sales'])
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        usernames = [item['username'] for item in response.data]
        self.assertIn(user.username, usernames)
        self.assertNotIn(inactive.username, usernames)

    def test_create_user_requires_admin(self):
        """Test non-admins cannot create users"""
        user = TestDataFactory.create_user(groups=['Sales'])
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/users/', {
            'username': 'newbie', 'password': 'Picket-Rail-4821', 'password_confirm': 'Picket-Rail-4821',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_user(self):
        """Test admins can create users"""
        Group.objects.get_or_create(name='Sales')
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/users/', {
            'username': 'newbie', 'password': 'Picket-Rail-4821', 'password_confirm': 'Picket-Rail-4821',
            'groups': ['Sales'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['groups'], ['Sales'])

    def test_user_detail_requires_admin(self):
        user = TestDataFactory.create_user(groups=['Installer'])
        self.client.authenticate_user(user)
        response = self.client.get(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_audit_log_skips_missing_fields(self):
        """Test an entry without an object id is not written"""
        self.assertIsNone(create_audit_log(user=self.admin, action='create', model_name='Lead'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_create_audit_log(self):
        entry = create_audit_log(user=self.admin, action='reorder', model_name='JobStatus', object_id='all',
                                 changes={'order': [3, 1, 2]})
        self.assertEqual(entry.object_id, 'all')
        self.assertEqual(entry.changes, {'order': [3, 1, 2]})

    def test_list_filters_by_action(self):
        create_audit_log(user=self.admin, action='create', model_name='Lead', object_id=1)
        create_audit_log(user=self.admin, action='lead_move', model_name='Lead', object_id=1)
        response = self.client.get('/api/v1/audit-logs/?action=lead_move')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'lead_move')

    def test_non_admin_sees_only_own_entries(self):
        other = TestDataFactory.create_user(groups=['Sales'])
        create_audit_log(user=self.admin, action='create', model_name='Lead', object_id=1)
        own = create_audit_log(user=other, action='create', model_name='Lead', object_id=2)
        self.client.authenticate_user(other)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual([item['id'] for item in response.data], [own.id])

    def test_system_entries_show_system_user(self):
        entry = create_audit_log(action='create', model_name='Lead', object_id=1)
        response = self.client.get(f'/api/v1/audit-logs/{entry.id}/')
        self.assertEqual(response.data['username'], 'System')


class NotificationTests(TestCase):
    """Test the current user's notifications"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        job = TestDataFactory.create_job()
        self.first = create_notification(self.user, 'Install booked', related=job)
        self.second = create_notification(self.user, 'Measure booked')
        create_notification(TestDataFactory.create_user(), 'Someone else')

    def test_list_only_own(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({n['title'] for n in response.data}, {'Install booked', 'Measure booked'})
        self.assertEqual(self.first.related_entity_type, 'job')

    def test_mark_read_and_unread_filter(self):
        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        self.assertIsNotNone(response.data['read_at'])
        response = self.client.get('/api/v1/notifications/?unread=true')
        self.assertEqual([n['id'] for n in response.data], [self.second.id])

    def test_read_all(self):
        response = self.client.post('/api/v1/notifications/read-all/')
        self.assertEqual(response.data['updated'], 2)
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.assertTrue(Notification.objects.filter(is_read=False).exists())

    def test_cannot_read_other_users_notification(self):
        other = Notification.objects.exclude(user=self.user).get()
        response = self.client.post(f'/api/v1/notifications/{other.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_no_user_creates_nothing(self):
        self.assertIsNone(create_notification(None, 'Nobody'))


class CacheHelperTests(TestCase):
    """Test cache helpers and the invalidation table"""

    def setUp(self):
        cache.clear()

    def test_get_or_build_caches_value(self):
        calls = []

        def builder():
            calls.append(1)
            return ['a']

        self.assertEqual(get_or_build('test:key', builder, 60), ['a'])
        self.assertEqual(get_or_build('test:key', builder, 60), ['a'])
        self.assertEqual(len(calls), 1)

    def test_optimistic_write_kept_on_success(self):
        cache.set('test:key', 'old', 60)
        with optimistic_cache_write('test:key', 'new', 60):
            pass
        self.assertEqual(cache.get('test:key'), 'new')

    def test_optimistic_write_rolled_back_on_error(self):
        """Test a failed write restores the cached snapshot"""
        cache.set('test:key', 'old', 60)
        with self.assertRaises(RuntimeError):
            with optimistic_cache_write('test:key', 'new', 60):
                self.assertEqual(cache.get('test:key'), 'new')
                raise RuntimeError('write failed')
        self.assertEqual(cache.get('test:key'), 'old')

    def test_optimistic_write_rollback_without_snapshot(self):
        """Test rollback clears a key that was not cached before"""
        with self.assertRaises(RuntimeError):
            with optimistic_cache_write('test:key', 'new', 60):
                raise RuntimeError('write failed')
        self.assertIsNone(cache.get('test:key'))

    def test_status_save_invalidates_registry_and_board(self):
        cache.set(JOB_STATUS_LIST_KEY, ['stale'], 60)
        cache.set(JOB_BOARD_KEY, {'stale': True}, 60)
        TestDataFactory.create_status(key='deposit_paid')
        self.assertIsNone(cache.get(JOB_STATUS_LIST_KEY))
        self.assertIsNone(cache.get(JOB_BOARD_KEY))

    def test_status_delete_also_invalidates_dependencies_and_columns(self):
        job_status = TestDataFactory.create_status(key='qa_check')
        keys = cache_keys_for(job_status, deleted=True)
        self.assertIn(get_dependency_cache_key('qa_check'), keys)
        self.assertIn(KANBAN_COLUMN_LIST_KEY, keys)
        self.assertNotIn(KANBAN_COLUMN_LIST_KEY, cache_keys_for(job_status))

    def test_lead_save_invalidates_lead_board_and_dashboard(self):
        cache.set(LEAD_BOARD_KEY, {'stale': True}, 60)
        cache.set(DASHBOARD_STATS_KEY, {'stale': True}, 60)
        TestDataFactory.create_lead()
        self.assertIsNone(cache.get(LEAD_BOARD_KEY))
        self.assertIsNone(cache.get(DASHBOARD_STATS_KEY))

    def test_suspended_signals_leave_cache_alone(self):
        cache.set(JOB_STATUS_LIST_KEY, ['stale'], 60)
        with suspend_cache_signals():
            TestDataFactory.create_status(key='scheduled')
        self.assertEqual(cache.get(JOB_STATUS_LIST_KEY), ['stale'])


class UtilityTests(TestCase):
    """Test small shared helpers"""

    def test_parse_bool(self):
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('false'))
        self.assertIsNone(parse_bool(None))

    def test_document_numbers_increment(self):
        client = TestDataFactory.create_client()
        first = Quote.objects.create(client=client)
        second = Quote.objects.create(client=client)
        self.assertRegex(first.quote_number, r'^Q-\d{4}-0001$')
        self.assertRegex(second.quote_number, r'^Q-\d{4}-0002$')
        self.assertTrue(next_document_number(Quote, 'quote_number', 'Q').endswith('-0003'))
