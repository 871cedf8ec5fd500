"""
Test suite for the workflow module
Tests: status registry, dependency graph, kanban columns, pipelines and stages, ordering, editors
"""
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.db import connection
from django.test import TestCase
from rest_framework import status
from backend.core.model_cache import JOB_STATUS_LIST_KEY, get_pipeline_stages_cache_key
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.workflow.dependencies import build_graph, evaluate_transition, find_cycle, replace_dependencies
from backend.workflow.editors import (
    add_dependency, available_prerequisites, new_column_form, normalize_status_key, toggle_column_status,
    validate_column_form, validate_status_form,
)
from backend.workflow.exceptions import InvalidOrderError
from backend.workflow.models import JobStatus, JobStatusDependency, KanbanColumn, JobPipeline, JobPipelineStage
from backend.workflow.ordering import DOWN, UP, parse_order_payload, swap_adjacent


class EditorTests(TestCase):
    """Test the pure form staging rules"""

    def test_normalize_status_key(self):
        self.assertEqual(normalize_status_key('  QA   Recheck '), 'qa_recheck')
        self.assertEqual(normalize_status_key(None), '')

    def test_removing_default_falls_back_to_first_remaining(self):
        """Test removing the default status resets it to the first remaining status"""
        form = {'title': 'Build', 'statuses': ['a', 'b', 'c'], 'default_status': 'b'}
        updated = toggle_column_status(form, 'b')
        self.assertEqual(updated['statuses'], ['a', 'c'])
        self.assertEqual(updated['default_status'], 'a')

    def test_removing_last_status_clears_default(self):
        updated = toggle_column_status({'statuses': ['a'], 'default_status': 'a'}, 'a')
        self.assertEqual(updated['statuses'], [])
        self.assertEqual(updated['default_status'], '')

    def test_toggle_keeps_default_when_other_status_removed(self):
        updated = toggle_column_status({'statuses': ['a', 'b'], 'default_status': 'b'}, 'a')
        self.assertEqual(updated['default_status'], 'b')

    def test_toggle_adds_missing_status(self):
        updated = toggle_column_status(new_column_form(), 'a')
        self.assertEqual(updated['statuses'], ['a'])
        self.assertEqual(updated['default_status'], 'a')

    def test_toggle_scenario_new_jobs_cutting(self):
        """Test toggling off the default 'cutting' leaves 'new_jobs' as the default"""
        form = {'title': 'Production', 'statuses': ['new_jobs', 'cutting'], 'default_status': 'cutting',
                'color': 'purple'}
        updated = toggle_column_status(form, 'cutting')
        self.assertEqual(updated['statuses'], ['new_jobs'])
        self.assertEqual(updated['default_status'], 'new_jobs')

    def test_validate_column_form(self):
        errors = validate_column_form({'title': ' ', 'statuses': [], 'default_status': '', 'color': 'teal'})
        self.assertEqual(set(errors), {'title', 'statuses', 'default_status', 'color'})
        self.assertEqual(validate_column_form({'title': 'A', 'statuses': ['x'], 'default_status': 'x'}), {})

    def test_validate_column_form_default_not_member(self):
        errors = validate_column_form({'title': 'A', 'statuses': ['x'], 'default_status': 'y'})
        self.assertIn('default_status', errors)

    def test_validate_status_form(self):
        self.assertEqual(set(validate_status_form({'key': ' ', 'label': ''})), {'key', 'label'})
        self.assertEqual(validate_status_form({'key': 'QA Check', 'label': 'QA'}), {})

    def test_available_prerequisites_excludes_target_and_selected(self):
        keys = ['a', 'b', 'c', 'd']
        self.assertEqual(available_prerequisites(keys, 'a', ['c']), ['b', 'd'])

    def test_add_dependency_uses_first_available(self):
        staged = add_dependency([], ['a', 'b', 'c'], 'a')
        self.assertEqual(staged, [{'prerequisite_key': 'b', 'dependency_type': 'mandatory'}])
        staged = add_dependency(staged, ['a', 'b', 'c'], 'a')
        self.assertEqual([dep['prerequisite_key'] for dep in staged], ['b', 'c'])

    def test_add_dependency_when_nothing_available(self):
        staged = [{'prerequisite_key': 'b', 'dependency_type': 'mandatory'}]
        self.assertEqual(add_dependency(staged, ['a', 'b'], 'a'), staged)


class OrderingTests(TestCase):
    """Test the ordering helpers"""

    def test_swap_adjacent_swaps_exactly_two_neighbours(self):
        """Test a move swaps two adjacent elements and keeps the rest in order"""
        items = ['a', 'b', 'c', 'd', 'e']
        for index in range(len(items)):
            for direction in (UP, DOWN):
                result = swap_adjacent(items, index, direction)
                target = index - 1 if direction == UP else index + 1
                if 0 <= target < len(items):
                    changed = [i for i in range(len(items)) if result[i] != items[i]]
                    self.assertEqual(sorted(changed), sorted([index, target]))
                    self.assertEqual(result[index], items[target])
                    self.assertEqual(result[target], items[index])
                else:
                    self.assertEqual(result, items)
        self.assertEqual(items, ['a', 'b', 'c', 'd', 'e'])

    def test_swap_adjacent_rejects_bad_direction(self):
        with self.assertRaises(InvalidOrderError):
            swap_adjacent(['a', 'b'], 0, 'sideways')

    def test_parse_order_payload(self):
        self.assertEqual(parse_order_payload([3, '1', 2]), [3, 1, 2])
        self.assertEqual(parse_order_payload({'stageIds': [2, 1]}, field='stageIds'), [2, 1])
        self.assertEqual(parse_order_payload({'ids': [2, 1]}, field='stageIds'), [2, 1])
        with self.assertRaises(InvalidOrderError):
            parse_order_payload({'order': [1]})
        with self.assertRaises(InvalidOrderError):
            parse_order_payload([1, 'x'])


class DependencyGraphTests(TestCase):
    """Test cycle detection and transition evaluation"""

    def test_find_cycle(self):
        self.assertIsNone(find_cycle(build_graph([('b', 'a'), ('c', 'b')])))
        cycle = find_cycle(build_graph([('b', 'a'), ('c', 'b'), ('a', 'c')]))
        self.assertIsNotNone(cycle)
        self.assertEqual(cycle[0], cycle[-1])

    def test_evaluate_transition(self):
        qa = TestDataFactory.create_status(key='qa_check')
        posts = TestDataFactory.create_status(key='manufacturing_posts')
        scheduled = TestDataFactory.create_status(key='scheduled')
        TestDataFactory.create_dependency(scheduled, qa, 'mandatory')
        TestDataFactory.create_dependency(scheduled, posts, 'advisory')

        blocked = evaluate_transition('scheduled', ['manufacturing_posts'])
        self.assertFalse(blocked.allowed)
        self.assertEqual(blocked.missing_mandatory, ['qa_check'])

        warned = evaluate_transition('scheduled', ['qa_check'])
        self.assertTrue(warned.allowed)
        self.assertEqual(warned.missing_advisory, ['manufacturing_posts'])
        self.assertEqual(len(warned.warnings), 1)


class JobStatusAPITests(TestCase):
    """Test the job status registry endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_status_normalises_key_and_appends(self):
        TestDataFactory.create_status(key='accepted')
        response = self.client.post('/api/v1/job-statuses/', {'key': 'QA Recheck', 'label': 'QA Recheck'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['key'], 'qa_recheck')
        self.assertEqual(response.data['sort_order'], 1)

    def test_create_status_requires_key_and_label(self):
        response = self.client.post('/api/v1/job-statuses/', {'key': '', 'label': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('key', response.data)
        self.assertIn('label', response.data)

    def test_create_status_rejects_invalid_characters(self):
        response = self.client.post('/api/v1/job-statuses/', {'key': 'qa-check!', 'label': 'QA'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_duplicate_key(self):
        TestDataFactory.create_status(key='qa_check')
        response = self.client.post('/api/v1/job-statuses/', {'key': 'qa_check', 'label': 'QA'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_key_cannot_change(self):
        job_status = TestDataFactory.create_status(key='qa_check')
        response = self.client.patch(f'/api/v1/job-statuses/{job_status.id}/', {'key': 'qa_done'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(f'/api/v1/job-statuses/{job_status.id}/', {'label': 'Quality Check'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['label'], 'Quality Check')

    def test_list_is_cached_and_invalidated(self):
        TestDataFactory.create_status(key='accepted')
        self.client.get('/api/v1/job-statuses/')
        self.assertIsNotNone(cache.get(JOB_STATUS_LIST_KEY))
        TestDataFactory.create_status(key='scheduled')
        response = self.client.get('/api/v1/job-statuses/')
        self.assertEqual([item['key'] for item in response.data], ['accepted', 'scheduled'])

    def test_active_filter(self):
        TestDataFactory.create_status(key='accepted')
        TestDataFactory.create_status(key='archived', is_active=False)
        response = self.client.get('/api/v1/job-statuses/?active=true')
        self.assertEqual([item['key'] for item in response.data], ['accepted'])

    def test_delete_reports_referencing_jobs(self):
        job_status = TestDataFactory.create_status(key='qa_check')
        other = TestDataFactory.create_status(key='scheduled')
        TestDataFactory.create_dependency(other, job_status)
        TestDataFactory.create_job(status='qa_check')
        response = self.client.delete(f'/api/v1/job-statuses/{job_status.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['jobs_referencing'], 1)
        self.assertIn('warning', response.data)
        self.assertFalse(JobStatusDependency.objects.exists())

    def test_label_change_refreshes_column_and_dependency_lists(self):
        """Test renaming a status refreshes every cached read that shows its label"""
        cutting = TestDataFactory.create_status(key='cutting')
        TestDataFactory.create_status(key='new_jobs')
        qa = TestDataFactory.create_status(key='qa_check')
        TestDataFactory.create_column(title='Production', statuses=['new_jobs', 'cutting'])
        TestDataFactory.create_dependency(qa, cutting)
        self.client.get('/api/v1/kanban-columns/')
        self.client.get('/api/v1/job-status-dependencies/')
        self.client.get('/api/v1/job-status-dependencies/qa_check/')

        response = self.client.patch(f'/api/v1/job-statuses/{cutting.id}/', {'label': 'Cutting Rails'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        columns = self.client.get('/api/v1/kanban-columns/').data
        self.assertEqual(columns[0]['status_labels']['cutting'], 'Cutting Rails')
        edges = self.client.get('/api/v1/job-status-dependencies/').data
        self.assertEqual(edges[0]['prerequisite_label'], 'Cutting Rails')
        edges = self.client.get('/api/v1/job-status-dependencies/qa_check/').data
        self.assertEqual(edges[0]['prerequisite_label'], 'Cutting Rails')

    def test_deleted_status_does_not_block_column_edits(self):
        """Test a column still naming a deleted status can be edited"""
        cutting = TestDataFactory.create_status(key='cutting')
        TestDataFactory.create_status(key='new_jobs')
        column = TestDataFactory.create_column(statuses=['new_jobs', 'cutting'], default_status='cutting')
        self.client.delete(f'/api/v1/job-statuses/{cutting.id}/')

        response = self.client.patch(f'/api/v1/kanban-columns/{column.id}/', {'title': 'Production'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Production')
        self.assertEqual(response.data['status_labels']['cutting'], 'Unknown')
        response = self.client.patch(f'/api/v1/kanban-columns/{column.id}/', {'statuses': ['new_jobs', 'ghost']},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('ghost', str(response.data['statuses']))

    def test_reorder(self):
        a = TestDataFactory.create_status(key='a')
        b = TestDataFactory.create_status(key='b')
        c = TestDataFactory.create_status(key='c')
        response = self.client.post('/api/v1/job-statuses/reorder/', [c.id, a.id, b.id], format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['key'] for item in response.data], ['c', 'a', 'b'])
        self.assertEqual(list(JobStatus.objects.values_list('key', flat=True)), ['c', 'a', 'b'])
        self.assertTrue(AuditLog.objects.filter(action='reorder', model_name='JobStatus').exists())

    def test_reorder_rejects_partial_duplicate_and_unknown(self):
        a = TestDataFactory.create_status(key='a')
        b = TestDataFactory.create_status(key='b')
        for payload in ([a.id], [a.id, a.id], [a.id, b.id, 999]):
            response = self.client.post('/api/v1/job-statuses/reorder/', {'statusIds': payload}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(list(JobStatus.objects.values_list('key', flat=True)), ['a', 'b'])

    def test_failed_reorder_restores_cached_list(self):
        """Test the optimistic cache write is rolled back when persisting fails"""
        a = TestDataFactory.create_status(key='a')
        b = TestDataFactory.create_status(key='b')
        before = self.client.get('/api/v1/job-statuses/').data
        with mock.patch('backend.workflow.views.persist_order', side_effect=RuntimeError('db down')):
            response = self.client.post('/api/v1/job-statuses/reorder/', [b.id, a.id], format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual([item['key'] for item in cache.get(JOB_STATUS_LIST_KEY)],
                         [item['key'] for item in before])

    def test_move(self):
        a = TestDataFactory.create_status(key='a')
        TestDataFactory.create_status(key='b')
        response = self.client.post(f'/api/v1/job-statuses/{a.id}/move/', {'direction': 'down'}, format='json')
        self.assertEqual([item['key'] for item in response.data], ['b', 'a'])

    def test_move_past_end_is_noop(self):
        a = TestDataFactory.create_status(key='a')
        TestDataFactory.create_status(key='b')
        response = self.client.post(f'/api/v1/job-statuses/{a.id}/move/', {'direction': 'up'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['key'] for item in response.data], ['a', 'b'])

    def test_non_config_admin_cannot_write(self):
        """Test configuration writes are forbidden for other groups"""
        sales = TestDataFactory.create_user(groups=['Sales'])
        self.client.authenticate_user(sales)
        response = self.client.post('/api/v1/job-statuses/', {'key': 'x', 'label': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)
        response = self.client.get('/api/v1/job-statuses/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class DependencyAPITests(TestCase):
    """Test dependency endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(groups=['ProductionManager']))
        self.qa = TestDataFactory.create_status(key='qa_check')
        self.posts = TestDataFactory.create_status(key='manufacturing_posts')

    def test_create_status_then_dependency(self):
        """Test a new status with one mandatory prerequisite reads back exactly that entry"""
        response = self.client.post('/api/v1/job-statuses/', {'key': 'qa_recheck', 'label': 'QA Recheck'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.put('/api/v1/job-status-dependencies/qa_recheck/', {
            'dependencies': [{'prerequisiteKey': 'qa_check', 'dependencyType': 'mandatory'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/job-status-dependencies/qa_recheck/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['prerequisite_key'], 'qa_check')
        self.assertEqual(response.data[0]['dependency_type'], 'mandatory')

    def test_empty_list_clears_dependencies(self):
        """Test saving an empty set removes every prior dependency"""
        TestDataFactory.create_dependency(self.qa, self.posts)
        self.client.get('/api/v1/job-status-dependencies/qa_check/')
        response = self.client.put('/api/v1/job-status-dependencies/qa_check/', {'dependencies': []},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])
        self.assertFalse(JobStatusDependency.objects.filter(status=self.qa).exists())
        self.assertEqual(self.client.get('/api/v1/job-status-dependencies/qa_check/').data, [])

    def test_replace_is_full_not_delta(self):
        scheduled = TestDataFactory.create_status(key='scheduled')
        TestDataFactory.create_dependency(scheduled, self.posts)
        self.client.put('/api/v1/job-status-dependencies/scheduled/', {
            'dependencies': [{'prerequisite_key': 'qa_check', 'dependency_type': 'advisory'}],
        }, format='json')
        keys = list(scheduled.dependencies.values_list('prerequisite_id', flat=True))
        self.assertEqual(keys, ['qa_check'])

    def test_rejects_self_duplicate_and_unknown(self):
        payloads = [
            [{'prerequisite_key': 'qa_check'}],
            [{'prerequisite_key': 'manufacturing_posts'}, {'prerequisite_key': 'manufacturing_posts'}],
            [{'prerequisite_key': 'nope'}],
            [{'prerequisite_key': 'manufacturing_posts', 'dependency_type': 'optional'}],
        ]
        for dependencies in payloads:
            response = self.client.put('/api/v1/job-status-dependencies/qa_check/',
                                       {'dependencies': dependencies}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(JobStatusDependency.objects.exists())

    def test_rejects_cycle(self):
        """Test a dependency set that closes a cycle is rejected"""
        TestDataFactory.create_dependency(self.qa, self.posts)
        response = self.client.put('/api/v1/job-status-dependencies/manufacturing_posts/', {
            'dependencies': [{'prerequisite_key': 'qa_check'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('cycle', response.data['error'])
        self.assertEqual(JobStatusDependency.objects.count(), 1)

    def test_cycle_check_runs_inside_replacement_transaction(self):
        """Test the graph is validated in the same transaction that replaces the edges"""
        baseline = len(connection.savepoint_ids)
        depths = []

        def checking(graph):
            depths.append(len(connection.savepoint_ids))
            return find_cycle(graph)

        with mock.patch('backend.workflow.dependencies.find_cycle', side_effect=checking):
            replace_dependencies(self.qa, [{'prerequisite_key': 'manufacturing_posts'}])
        self.assertEqual(depths, [baseline + 1])
        self.assertEqual(JobStatusDependency.objects.count(), 1)

    def test_available(self):
        TestDataFactory.create_status(key='scheduled')
        TestDataFactory.create_dependency(self.qa, self.posts)
        response = self.client.get('/api/v1/job-status-dependencies/qa_check/available/')
        self.assertEqual([item['key'] for item in response.data], ['scheduled'])
        response = self.client.get('/api/v1/job-status-dependencies/qa_check/available/?selected=scheduled')
        self.assertEqual([item['key'] for item in response.data], ['manufacturing_posts'])

    def test_list(self):
        TestDataFactory.create_dependency(self.qa, self.posts)
        response = self.client.get('/api/v1/job-status-dependencies/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['status_key'], 'qa_check')


class KanbanColumnAPITests(TestCase):
    """Test kanban column endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        for key in ('new_jobs', 'cutting', 'welding'):
            TestDataFactory.create_status(key=key)

    def test_create_column(self):
        response = self.client.post('/api/v1/kanban-columns/', {
            'title': 'Production', 'statuses': ['new_jobs', 'cutting'], 'default_status': 'cutting',
            'color': 'purple',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status_labels'], {'new_jobs': 'New Jobs', 'cutting': 'Cutting'})
        self.assertIn('purple', response.data['color_classes'])

    def test_create_column_validation(self):
        response = self.client.post('/api/v1/kanban-columns/', {
            'title': 'Fence', 'statuses': [], 'default_status': '', 'color': 'teal',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        for field in ('statuses', 'default_status', 'color'):
            self.assertIn(field, response.data)

    def test_create_column_rejects_unknown_status(self):
        response = self.client.post('/api/v1/kanban-columns/', {
            'title': 'X', 'statuses': ['ghost'], 'default_status': 'ghost',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_off_default(self):
        """Test toggling off the default status via the endpoint"""
        column = TestDataFactory.create_column(title='Production', statuses=['new_jobs', 'cutting'],
                                               default_status='cutting')
        response = self.client.post(f'/api/v1/kanban-columns/{column.id}/toggle-status/', {'status': 'cutting'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['statuses'], ['new_jobs'])
        self.assertEqual(response.data['default_status'], 'new_jobs')

    def test_toggle_off_last_status_rejected(self):
        column = TestDataFactory.create_column(statuses=['cutting'])
        response = self.client.post(f'/api/v1/kanban-columns/{column.id}/toggle-status/', {'status': 'cutting'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['form']['default_status'], '')
        column.refresh_from_db()
        self.assertEqual(column.statuses, ['cutting'])

    def test_partial_update_repairs_default(self):
        column = TestDataFactory.create_column(statuses=['new_jobs', 'cutting'], default_status='cutting')
        response = self.client.patch(f'/api/v1/kanban-columns/{column.id}/', {'statuses': ['welding']},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['default_status'], 'welding')

    def test_unknown_status_label_placeholder(self):
        column = TestDataFactory.create_column(statuses=['cutting'])
        column.statuses = ['cutting', 'removed']
        column.save()
        response = self.client.get(f'/api/v1/kanban-columns/{column.id}/')
        self.assertEqual(response.data['status_labels']['removed'], 'Unknown')

    def test_reorder_columns(self):
        first = TestDataFactory.create_column(statuses=['new_jobs'])
        second = TestDataFactory.create_column(statuses=['cutting'])
        response = self.client.post('/api/v1/kanban-columns/reorder/', {'columnIds': [second.id, first.id]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(KanbanColumn.objects.values_list('id', flat=True)), [second.id, first.id])


class PipelineAPITests(TestCase):
    """Test pipeline and stage endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.pipeline = TestDataFactory.create_pipeline(name='Supply + Install')

    def test_pipeline_list_has_stage_count(self):
        TestDataFactory.create_stage(self.pipeline)
        TestDataFactory.create_stage(self.pipeline)
        response = self.client.get('/api/v1/job-pipelines/')
        self.assertEqual(response.data[0]['stage_count'], 2)
        self.assertNotIn('stages', response.data[0])

    def test_pipeline_name_required(self):
        response = self.client.post('/api/v1/job-pipelines/', {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stage_create_appends(self):
        TestDataFactory.create_stage(self.pipeline, name='Posts')
        response = self.client.post(f'/api/v1/job-pipelines/{self.pipeline.id}/stages/',
                                    {'name': 'Panels', 'icon': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sort_order'], 1)
        self.assertIsNone(response.data['icon'])

    def test_stage_create_invalidates_stage_list(self):
        self.client.get(f'/api/v1/job-pipelines/{self.pipeline.id}/stages/')
        self.assertIsNotNone(cache.get(get_pipeline_stages_cache_key(self.pipeline.id)))
        TestDataFactory.create_stage(self.pipeline, name='Posts')
        response = self.client.get(f'/api/v1/job-pipelines/{self.pipeline.id}/stages/')
        self.assertEqual([item['name'] for item in response.data], ['Posts'])

    def test_stage_move_swaps_adjacent(self):
        """Test moving a stage swaps it with exactly one neighbour"""
        stages = [TestDataFactory.create_stage(self.pipeline, name=name) for name in ('A', 'B', 'C', 'D')]
        response = self.client.post(f'/api/v1/job-pipelines/{self.pipeline.id}/stages/{stages[1].id}/move/',
                                    {'direction': 'down'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['name'] for item in response.data], ['A', 'C', 'B', 'D'])

    def test_stage_reorder_scoped_to_pipeline(self):
        other = TestDataFactory.create_pipeline()
        foreign = TestDataFactory.create_stage(other)
        own = TestDataFactory.create_stage(self.pipeline)
        response = self.client.post(f'/api/v1/job-pipelines/{self.pipeline.id}/stages/reorder/',
                                    {'stageIds': [own.id, foreign.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_pipeline_removes_stages(self):
        TestDataFactory.create_stage(self.pipeline)
        response = self.client.delete(f'/api/v1/job-pipelines/{self.pipeline.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(JobPipelineStage.objects.exists())


class SeedWorkflowCommandTests(TestCase):
    """Test the seed_workflow management command"""

    def test_seed_is_idempotent(self):
        call_command('seed_workflow', stdout=StringIO())
        counts = (JobStatus.objects.count(), KanbanColumn.objects.count(), JobPipeline.objects.count(),
                  JobPipelineStage.objects.count())
        call_command('seed_workflow', stdout=StringIO())
        self.assertEqual(counts, (JobStatus.objects.count(), KanbanColumn.objects.count(),
                                  JobPipeline.objects.count(), JobPipelineStage.objects.count()))
        self.assertTrue(JobStatus.objects.filter(key='awaiting_deposit').exists())
        self.assertEqual(JobPipeline.objects.count(), 3)

    def test_seed_columns_reference_registered_statuses(self):
        call_command('seed_workflow', stdout=StringIO())
        keys = set(JobStatus.objects.values_list('key', flat=True))
        for column in KanbanColumn.objects.all():
            self.assertTrue(set(column.statuses) <= keys)
            self.assertIn(column.default_status, column.statuses)
