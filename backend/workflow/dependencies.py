"""
Job status dependency graph: validation, full replacement and transition checks.
"""
import logging

from django.db import transaction

from .editors import DEPENDENCY_TYPES, normalize_status_key
from .exceptions import DependencyError, DependencyCycleError
from .models import JobStatus, JobStatusDependency

logger = logging.getLogger('backend.workflow')


def build_graph(edges):
    """Map status key -> set of prerequisite keys from (status, prerequisite) pairs"""
    graph = {}
    for status_key, prerequisite_key in edges:
        graph.setdefault(status_key, set()).add(prerequisite_key)
    return graph


def find_cycle(graph):
    """
    Return one cycle as a list of keys (first key repeated at the end), or
    None when the graph is acyclic.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    colour = {}

    for start in sorted(graph):
        if colour.get(start, WHITE) != WHITE:
            continue
        path = [start]
        colour[start] = GREY
        stack = [iter(sorted(graph.get(start, ())))]
        while stack:
            node = next(stack[-1], None)
            if node is None:
                stack.pop()
                colour[path.pop()] = BLACK
                continue
            state = colour.get(node, WHITE)
            if state == GREY:
                return path[path.index(node):] + [node]
            if state == WHITE:
                colour[node] = GREY
                path.append(node)
                stack.append(iter(sorted(graph.get(node, ()))))
    return None


def clean_dependencies(status_key, dependencies, known_keys):
    """
    Validate a complete dependency set for status_key.

    Returns a list of (prerequisite_key, dependency_type) tuples.
    """
    if dependencies is None:
        raise DependencyError('A complete dependency list is required', field='dependencies')
    if not isinstance(dependencies, (list, tuple)):
        raise DependencyError('Dependencies must be a list', field='dependencies')

    cleaned = []
    seen = set()
    for entry in dependencies:
        if not isinstance(entry, dict):
            raise DependencyError('Each dependency must be an object', field='dependencies')
        prerequisite_key = normalize_status_key(
            entry.get('prerequisite_key', entry.get('prerequisiteKey'))
        )
        dependency_type = entry.get('dependency_type', entry.get('dependencyType')) or 'mandatory'

        if not prerequisite_key:
            raise DependencyError('Each dependency needs a prerequisite key', field='dependencies')
        if prerequisite_key == status_key:
            raise DependencyError(f"'{status_key}' cannot depend on itself", field='dependencies')
        if prerequisite_key in seen:
            raise DependencyError(f"Duplicate prerequisite '{prerequisite_key}'", field='dependencies')
        if prerequisite_key not in known_keys:
            raise DependencyError(f"Unknown status key '{prerequisite_key}'", field='dependencies')
        if dependency_type not in DEPENDENCY_TYPES:
            raise DependencyError(
                f"Dependency type must be one of: {', '.join(DEPENDENCY_TYPES)}", field='dependencies'
            )
        seen.add(prerequisite_key)
        cleaned.append((prerequisite_key, dependency_type))
    return cleaned


def replace_dependencies(status, dependencies):
    """
    Replace the whole dependency set of status with dependencies.

    An empty list clears every prior dependency. The set is rejected if it
    would make the graph cyclic.
    """
    with transaction.atomic():
        # Validation reads the same snapshot the replacement writes into
        known_keys = set(JobStatus.objects.values_list('key', flat=True))
        cleaned = clean_dependencies(status.key, dependencies, known_keys)

        other_edges = (
            JobStatusDependency.objects
            .exclude(status_id=status.key)
            .values_list('status_id', 'prerequisite_id')
        )
        graph = build_graph(list(other_edges) + [(status.key, key) for key, _ in cleaned])
        cycle = find_cycle(graph)
        if cycle:
            raise DependencyCycleError(cycle)

        JobStatusDependency.objects.filter(status_id=status.key).delete()
        created = [
            JobStatusDependency.objects.create(
                status=status, prerequisite_id=prerequisite_key, dependency_type=dependency_type
            )
            for prerequisite_key, dependency_type in cleaned
        ]
    logger.info(f"Replaced dependencies for '{status.key}' with {len(created)} entries")
    return created


class TransitionCheck:
    """Outcome of checking a job's move into a status"""

    def __init__(self, target_key, missing_mandatory, missing_advisory):
        self.target_key = target_key
        self.missing_mandatory = missing_mandatory
        self.missing_advisory = missing_advisory

    @property
    def allowed(self):
        return not self.missing_mandatory

    @property
    def warnings(self):
        return [
            f"Advisory prerequisite '{key}' has not been completed"
            for key in self.missing_advisory
        ]


def evaluate_transition(target_key, held_keys):
    """
    Check the prerequisites of target_key against the statuses a job has held.

    Unmet mandatory prerequisites block the move; unmet advisory ones only warn.
    """
    held = set(held_keys)
    missing_mandatory = []
    missing_advisory = []
    for dependency in JobStatusDependency.objects.filter(status_id=target_key).order_by('id'):
        if dependency.prerequisite_id in held:
            continue
        if dependency.dependency_type == 'mandatory':
            missing_mandatory.append(dependency.prerequisite_id)
        else:
            missing_advisory.append(dependency.prerequisite_id)
    return TransitionCheck(target_key, missing_mandatory, missing_advisory)
