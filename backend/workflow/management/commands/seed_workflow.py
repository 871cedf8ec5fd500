"""
Management command to create the default job statuses, kanban columns and pipelines.

Safe to run repeatedly: existing statuses, columns, pipelines and stages are
left untouched and only missing ones are created.
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from backend.workflow.models import JobStatus, KanbanColumn, JobPipeline, JobPipelineStage
from backend.workflow.ordering import next_sort_order


DEFAULT_STATUSES = [
    ('accepted', 'Accepted'),
    ('awaiting_deposit', 'Awaiting Deposit'),
    ('deposit_paid', 'Deposit Paid'),
    ('ready_for_production', 'Ready for Production'),
    ('manufacturing_posts', 'Manufacturing Posts'),
    ('manufacturing_panels', 'Manufacturing Panels'),
    ('manufacturing_gates', 'Manufacturing Gates'),
    ('qa_check', 'QA Check'),
    ('ready_for_scheduling', 'Ready for Scheduling'),
    ('scheduled', 'Scheduled'),
    ('install_posts', 'Installing Posts'),
    ('install_panels', 'Installing Panels'),
    ('install_gates', 'Installing Gates'),
    ('install_complete', 'Install Complete'),
    ('awaiting_final_payment', 'Awaiting Final Payment'),
    ('paid_in_full', 'Paid in Full'),
    ('archived', 'Archived'),
]

DEFAULT_COLUMNS = [
    ('New Jobs', ['accepted', 'awaiting_deposit'], 'gray'),
    ('Pipeline', ['deposit_paid', 'ready_for_production'], 'blue'),
    ('Production', ['manufacturing_posts', 'manufacturing_panels', 'manufacturing_gates', 'qa_check'], 'purple'),
    ('Ready to Schedule', ['ready_for_scheduling'], 'amber'),
    ('Scheduled', ['scheduled', 'install_posts', 'install_panels', 'install_gates'], 'green'),
    ('Completing', ['install_complete', 'awaiting_final_payment', 'paid_in_full'], 'emerald'),
]

DEFAULT_PIPELINES = [
    ('Supply + Install', 'Posts and panels manufactured and installed on site', [
        ('Manufacturing of Posts', 'hammer'),
        ('Installation of Posts', 'wrench'),
        ('Manufacturing of Panels', 'hammer'),
        ('Installation of Panels', 'wrench'),
        ('Complete', 'check-circle'),
    ]),
    ('Supply + Install + Gate', 'Supply and install including a gate', [
        ('Order PO', 'clipboard-list'),
        ('Manufacturing of Posts', 'hammer'),
        ('Installation of Posts', 'wrench'),
        ('Manufacturing of Panels', 'hammer'),
        ('Installation of Panels', 'wrench'),
        ('Manufacturing of Gate', 'door-open'),
        ('Installation of Gate', 'door-open'),
        ('Complete', 'check-circle'),
    ]),
    ('Supply Only', 'Client collects the materials', [
        ('Manufacturing of Posts', 'hammer'),
        ('Client Picked Up Posts', 'package'),
        ('Manufacturing of Panels', 'hammer'),
        ('Client Picks Up Panels', 'truck'),
    ]),
]


class Command(BaseCommand):
    help = "Creates the default job statuses, kanban columns and job pipelines"

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-columns',
            action='store_true',
            help='Do not create the default kanban columns',
        )
        parser.add_argument(
            '--skip-pipelines',
            action='store_true',
            help='Do not create the default job pipelines',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        statuses_created = self.seed_statuses()
        columns_created = 0 if options['skip_columns'] else self.seed_columns()
        pipelines_created, stages_created = (0, 0) if options['skip_pipelines'] else self.seed_pipelines()

        self.stdout.write(self.style.SUCCESS(
            f"Seeded workflow: {statuses_created} statuses, {columns_created} columns, "
            f"{pipelines_created} pipelines, {stages_created} stages created"
        ))

    def seed_statuses(self):
        created_count = 0
        for key, label in DEFAULT_STATUSES:
            if JobStatus.objects.filter(key=key).exists():
                continue
            JobStatus.objects.create(
                key=key,
                label=label,
                sort_order=next_sort_order(JobStatus.objects.all()),
            )
            created_count += 1
            self.stdout.write(f"  Created status: {key}")
        return created_count

    def seed_columns(self):
        created_count = 0
        for title, statuses, color in DEFAULT_COLUMNS:
            if KanbanColumn.objects.filter(title=title).exists():
                continue
            KanbanColumn.objects.create(
                title=title,
                statuses=statuses,
                default_status=statuses[0],
                color=color,
                sort_order=next_sort_order(KanbanColumn.objects.all()),
            )
            created_count += 1
            self.stdout.write(f"  Created column: {title}")
        return created_count

    def seed_pipelines(self):
        pipelines_created = 0
        stages_created = 0
        for name, description, stages in DEFAULT_PIPELINES:
            pipeline, created = JobPipeline.objects.get_or_create(
                name=name, defaults={'description': description}
            )
            if created:
                pipelines_created += 1
                self.stdout.write(f"  Created pipeline: {name}")
            existing = set(pipeline.stages.values_list('name', flat=True))
            for stage_name, icon in stages:
                if stage_name in existing:
                    continue
                JobPipelineStage.objects.create(
                    pipeline=pipeline,
                    name=stage_name,
                    icon=icon,
                    sort_order=next_sort_order(pipeline.stages.all()),
                )
                existing.add(stage_name)
                stages_created += 1
        return pipelines_created, stages_created
