"""
Mockzilla Workflow Engine

Stateful mock scenarios: requests are routed to declarative transitions
whose conditions guard, effects mutate per-scenario state and mini-DB
tables, and response templates render the result.

This module provides:
- Condition evaluation (object-map and operator-list forms)
- Effects engine (state.set, db.push, db.update, db.remove)
- Response templating with type-preserving placeholders
- Routing with ":param" path patterns
- Scenario state persistence (in-memory and JSON files)
"""

from .models import (
    Scenario,
    Transition,
    Condition,
    MatchContext,
    RequestInput,
    ScenarioStateDocument,
    WorkflowRequest,
    WorkflowResponse
)
from .conditions import matches, evaluate_condition
from .effects import apply_effects, interpolate
from .templater import render, render_response
from .router import TransitionRouter, RouteMatch, match_route
from .repository import WorkflowRepository
from .state_store import ScenarioStateStore, InMemoryStateStore, JsonFileStateStore
from .processor import WorkflowProcessor
from .errors import (
    WorkflowError,
    RoutingMiss,
    ConditionFailure,
    EffectError,
    WorkflowProcessingError,
    ValidationError,
    NotFoundError,
    ConflictError
)

__all__ = [
    # Models
    'Scenario',
    'Transition',
    'Condition',
    'MatchContext',
    'RequestInput',
    'ScenarioStateDocument',
    'WorkflowRequest',
    'WorkflowResponse',

    # Engine
    'matches',
    'evaluate_condition',
    'apply_effects',
    'interpolate',
    'render',
    'render_response',
    'TransitionRouter',
    'RouteMatch',
    'match_route',
    'WorkflowProcessor',

    # Storage
    'WorkflowRepository',
    'ScenarioStateStore',
    'InMemoryStateStore',
    'JsonFileStateStore',

    # Errors
    'WorkflowError',
    'RoutingMiss',
    'ConditionFailure',
    'EffectError',
    'WorkflowProcessingError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
]
