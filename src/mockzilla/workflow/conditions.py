"""
Mockzilla Condition Evaluator

Decides whether a transition's guard passes against the current context.

Two authored forms are supported:
- Object map: {"state.isLoggedIn": true} (every field loosely equals)
- Operator list: [{"type": "gt", "field": "input.body.amount", "value": 10}]

Fields resolve against the whole context first ("state.x", "input.body.x",
"db.table[0].x"); when that yields nothing they fall back to the request
body, so "amount" works as shorthand for "input.body.amount".
"""

from typing import Any

from ..common.coercion import loose_equals, strict_equals, to_boolean, to_number, to_js_string
from ..common.path_resolver import MISSING, resolve_path, resolve_context_path
from .models import (
    Condition,
    ConditionList,
    ConditionSet,
    FieldMatchConditions,
    MatchContext,
    parse_conditions
)


def resolve_operand(field: str, context: MatchContext) -> Any:
    """
    Resolve a condition field against the context.

    Args:
        field: Field path (e.g. "state.status", "db.users[0].id", "amount")
        context: Current match context

    Returns:
        Resolved value, or MISSING
    """
    direct = resolve_context_path(field, context.view())
    if direct is not MISSING:
        return direct

    body = context.input.body
    if to_boolean(body):
        return resolve_path(field, body)

    return MISSING


def evaluate_condition(condition: Condition, context: MatchContext) -> bool:
    """Evaluate a single operator condition."""
    actual = resolve_operand(condition.field, context)
    expected = condition.value

    if condition.type == 'eq':
        return loose_equals(actual, expected)
    if condition.type == 'neq':
        return not loose_equals(actual, expected)
    if condition.type == 'exists':
        return actual is not MISSING and actual is not None
    if condition.type == 'gt':
        return to_number(actual) > to_number(expected)
    if condition.type == 'lt':
        return to_number(actual) < to_number(expected)
    if condition.type == 'contains':
        if isinstance(actual, list):
            return any(strict_equals(item, expected) for item in actual)
        return to_js_string(expected) in to_js_string(actual)

    return False


def matches(conditions: Any, context: MatchContext) -> bool:
    """
    Check whether conditions pass for the given context.

    Args:
        conditions: A ConditionSet, or conditions in either authored form
        context: Current match context

    Returns:
        True if every condition passes (empty conditions always pass)
    """
    condition_set: ConditionSet = conditions
    if not isinstance(conditions, (FieldMatchConditions, ConditionList)):
        condition_set = parse_conditions(conditions)

    if isinstance(condition_set, ConditionList):
        for condition in condition_set.conditions:
            if not evaluate_condition(condition, context):
                return False
        return True

    for field, expected in condition_set.expected.items():
        if not loose_equals(resolve_operand(field, context), expected):
            return False

    return True
