"""
Tests for the condition evaluator.

Tests both authored forms (object map and operator list), operand
resolution with the request-body fallback, and every operator.
"""

import pytest

from mockzilla.workflow.conditions import matches, evaluate_condition, resolve_operand
from mockzilla.workflow.models import Condition, MatchContext, RequestInput
from mockzilla.common.path_resolver import MISSING


@pytest.fixture
def context():
    """Context with request input, state and tables."""
    return MatchContext(
        input=RequestInput(
            body={'amount': 50, 'tags': ['vip', 'new'], 'note': 'hello world'},
            query={'page': '2'},
            params={'id': '42'},
            headers={'x-user': 'ann'}
        ),
        state={'isLoggedIn': True, 'status': 'active', 'roles': ['admin']},
        tables={'users': [{'id': 1}], 'orders': []}
    )


class TestResolveOperand:
    """Test field resolution."""

    def test_context_paths(self, context):
        assert resolve_operand('state.status', context) == 'active'
        assert resolve_operand('input.params.id', context) == '42'
        assert resolve_operand('db.users[0].id', context) == 1

    def test_body_fallback(self, context):
        assert resolve_operand('amount', context) == 50
        assert resolve_operand('tags[1]', context) == 'new'

    def test_no_fallback_for_empty_body(self):
        empty = MatchContext(input=RequestInput(body={}))
        assert resolve_operand('amount', empty) is MISSING


class TestOperators:
    """Test each operator."""

    def test_eq_is_loose(self, context):
        assert evaluate_condition(Condition('eq', 'input.params.id', 42), context)
        assert not evaluate_condition(Condition('eq', 'state.status', 'inactive'), context)

    def test_neq(self, context):
        assert evaluate_condition(Condition('neq', 'state.status', 'inactive'), context)
        assert evaluate_condition(Condition('neq', 'state.unknown', 'x'), context)

    def test_exists(self, context):
        assert evaluate_condition(Condition('exists', 'state.isLoggedIn'), context)
        assert not evaluate_condition(Condition('exists', 'state.unknown'), context)

    def test_exists_rejects_null(self):
        ctx = MatchContext(state={'token': None})
        assert not evaluate_condition(Condition('exists', 'state.token'), ctx)

    def test_gt_lt_coerce_numbers(self, context):
        assert evaluate_condition(Condition('gt', 'amount', 10), context)
        assert evaluate_condition(Condition('lt', 'input.query.page', '10'), context)
        assert not evaluate_condition(Condition('gt', 'state.unknown', 0), context)

    def test_contains_list_membership(self, context):
        assert evaluate_condition(Condition('contains', 'state.roles', 'admin'), context)
        assert not evaluate_condition(Condition('contains', 'state.roles', 'guest'), context)

    def test_contains_substring(self, context):
        assert evaluate_condition(Condition('contains', 'note', 'world'), context)
        assert not evaluate_condition(Condition('contains', 'note', 'mars'), context)

    def test_contains_list_uses_strict_equality(self):
        ctx = MatchContext(state={'ids': [1, 2]})
        assert not evaluate_condition(Condition('contains', 'state.ids', '1'), ctx)

    def test_unknown_operator_fails(self, context):
        assert not evaluate_condition(Condition('regex', 'state.status', '.*'), context)


class TestMatches:
    """Test whole condition sets."""

    def test_empty_conditions_pass(self, context):
        assert matches({}, context)
        assert matches([], context)
        assert matches(None, context)

    def test_object_map(self, context):
        assert matches({'state.isLoggedIn': True, 'state.status': 'active'}, context)
        assert not matches({'state.isLoggedIn': False}, context)

    def test_object_map_loose_equality(self, context):
        assert matches({'input.params.id': 42}, context)

    def test_operator_list_is_and(self, context):
        conditions = [
            {'type': 'eq', 'field': 'state.isLoggedIn', 'value': True},
            {'type': 'gt', 'field': 'input.body.amount', 'value': 100}
        ]
        assert not matches(conditions, context)
        conditions[1]['value'] = 10
        assert matches(conditions, context)

    def test_db_length_condition(self, context):
        assert matches([{'type': 'eq', 'field': 'db.orders.length', 'value': 0}], context)
