"""
Mockzilla Workflow Errors

Exception hierarchy for the workflow engine and its management layer.
"""

from typing import Any


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class RoutingMiss(WorkflowError):
    """No transition matches the request path and method."""

    def __init__(self, path: str, method: str):
        super().__init__(f"No matching transition found for {method} {path}")
        self.path = path
        self.method = method

    def to_dict(self):
        return {
            'error': 'No matching transition found for this path and method',
            'path': self.path,
            'method': self.method
        }


class ConditionFailure(WorkflowError):
    """A transition was found but its conditions were not met."""

    def __init__(self, conditions: Any):
        super().__init__("Transition conditions not met")
        self.conditions = conditions

    def to_dict(self):
        return {'error': 'Transition conditions not met', 'details': self.conditions}


class EffectError(WorkflowError):
    """An effect cannot be applied to the current tables."""


class WorkflowProcessingError(WorkflowError):
    """Unexpected failure while applying effects or rendering a response."""


class ValidationError(WorkflowError):
    """Management input is invalid."""


class NotFoundError(WorkflowError):
    """A scenario or transition does not exist."""


class ConflictError(WorkflowError):
    """A scenario with the same id already exists."""
