"""Errors raised by the workflow services and translated to 400 responses by the views."""


class WorkflowError(Exception):
    """Base class for workflow rule violations"""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_response_data(self):
        if self.field:
            return {'error': self.message, 'field': self.field}
        return {'error': self.message}


class InvalidOrderError(WorkflowError):
    """A reorder request did not name every item exactly once"""


class DependencyError(WorkflowError):
    """A dependency set is self-referencing, duplicated, unknown or cyclic"""


class DependencyCycleError(DependencyError):
    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(
            f"Dependencies would create a cycle: {' -> '.join(self.cycle)}",
            field='dependencies',
        )


class TransitionBlocked(WorkflowError):
    """A job cannot enter a status because mandatory prerequisites are unmet"""

    def __init__(self, target_key, missing):
        self.target_key = target_key
        self.missing = list(missing)
        super().__init__(
            f"Cannot move job to '{target_key}': mandatory prerequisites not met ({', '.join(self.missing)})",
            field='status',
        )


class StageCompletionError(WorkflowError):
    """A pipeline stage cannot be completed by hand"""


class UnknownStatusError(WorkflowError):
    """A job was given a key that is not an active registered status"""


class QuoteStateError(WorkflowError):
    """A quote action does not apply to the quote's current status"""


class TaskStateError(WorkflowError):
    """A production or install task action does not apply to the task's current status"""
