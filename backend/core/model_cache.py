"""
Cache keys and TTLs for the cached read endpoints.

Every cached read lives under a literal key built from the endpoint it serves
(plus its parameters). Mutations invalidate keys through the table in
backend.core.cache_signals, so any new cached read must be added there too.
"""

# Workflow configuration (changes rarely)
JOB_STATUS_LIST_KEY = 'workflow:job-statuses'
JOB_STATUS_DEPENDENCY_LIST_KEY = 'workflow:job-status-dependencies'
JOB_STATUS_DEPENDENCY_KEY_PREFIX = 'workflow:job-status-dependencies:'
KANBAN_COLUMN_LIST_KEY = 'workflow:kanban-columns'
JOB_PIPELINE_LIST_KEY = 'workflow:job-pipelines'
JOB_PIPELINE_STAGES_KEY_PREFIX = 'workflow:job-pipelines:stages:'

# Boards and reports (change with every lead/job edit)
LEAD_BOARD_KEY = 'leads:board'
JOB_BOARD_KEY = 'jobs:board'
DASHBOARD_STATS_KEY = 'reports:dashboard-stats'
PRODUCTION_PROGRESS_KEY = 'reports:production-progress'

# Cache TTL (Time To Live) in seconds
WORKFLOW_CACHE_TTL = 900  # 15 minutes
BOARD_CACHE_TTL = 120  # 2 minutes
REPORTS_CACHE_TTL = 300  # 5 minutes


def get_dependency_cache_key(status_key: str) -> str:
    """Get cache key for the dependency set of one status"""
    return f"{JOB_STATUS_DEPENDENCY_KEY_PREFIX}{status_key}"


def get_pipeline_stages_cache_key(pipeline_id) -> str:
    """Get cache key for the stage list of one pipeline"""
    return f"{JOB_PIPELINE_STAGES_KEY_PREFIX}{pipeline_id}"
