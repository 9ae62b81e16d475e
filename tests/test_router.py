"""
Tests for the transition router.

Tests exact-over-pattern precedence, parameter binding, scenario scoping
and condition-aware selection.
"""

import pytest

from mockzilla.workflow.models import RequestInput, ScenarioStateDocument
from mockzilla.workflow.repository import WorkflowRepository
from mockzilla.workflow.router import TransitionRouter, match_route


def add(repo, scenario, method, path, name='', conditions=None):
    return repo.create_transition({
        'scenarioId': scenario,
        'name': name,
        'method': method,
        'path': path,
        'conditions': conditions,
        'response': {'status': 200, 'body': {'name': name}}
    })


@pytest.fixture
def repo():
    return WorkflowRepository()


class TestMatchRoute:
    """Test path pattern matching."""

    def test_binds_params(self):
        assert match_route('/orders/:id', '/orders/42') == {'id': '42'}
        assert match_route('/users/:user/posts/:post', '/users/ann/posts/7') == {'user': 'ann', 'post': '7'}

    def test_literal_match(self):
        assert match_route('/health', '/health') == {}

    def test_segment_count_must_match(self):
        assert match_route('/orders/:id', '/orders/42/items') is None
        assert match_route('/orders/:id', '/orders') is None

    def test_literal_mismatch(self):
        assert match_route('/orders/:id', '/users/42') is None


class TestFindTransition:
    """Test condition-blind routing."""

    def test_exact_path_beats_pattern(self, repo):
        add(repo, 'shop', 'POST', '/cart/:action', name='pattern')
        add(repo, 'shop', 'POST', '/cart/add', name='literal')

        match = TransitionRouter(repo).find_transition('/cart/add', 'POST', scenario_id='shop')

        assert match.transition.name == 'literal'
        assert match.params == {}

    def test_pattern_binds_params(self, repo):
        add(repo, 'shop', 'GET', '/orders/:id')

        match = TransitionRouter(repo).find_transition('/orders/42', 'get', scenario_id='shop')

        assert match.params == {'id': '42'}

    def test_patterns_in_creation_order(self, repo):
        add(repo, 'shop', 'GET', '/items/:id', name='first')
        add(repo, 'shop', 'GET', '/:kind/:id', name='second')

        match = TransitionRouter(repo).find_transition('/items/9', 'GET', scenario_id='shop')

        assert match.transition.name == 'first'

    def test_method_must_match(self, repo):
        add(repo, 'shop', 'GET', '/orders/:id')
        assert TransitionRouter(repo).find_transition('/orders/42', 'DELETE', scenario_id='shop') is None

    def test_scenario_scoping(self, repo):
        add(repo, 'a', 'GET', '/status', name='from-a')
        add(repo, 'b', 'GET', '/status', name='from-b')
        router = TransitionRouter(repo)

        assert router.find_transition('/status', 'GET', scenario_id='b').transition.name == 'from-b'
        assert router.find_transition('/status', 'GET', scenario_id='c') is None

    def test_global_routing_uses_creation_order(self, repo):
        add(repo, 'a', 'GET', '/status', name='from-a')
        add(repo, 'b', 'GET', '/status', name='from-b')

        match = TransitionRouter(repo).find_transition('/status', 'GET')

        assert match.transition.name == 'from-a'

    def test_ignores_conditions(self, repo):
        add(repo, 'shop', 'GET', '/dashboard', name='guarded', conditions={'state.isLoggedIn': True})

        match = TransitionRouter(repo).find_transition('/dashboard', 'GET', scenario_id='shop')

        assert match.transition.name == 'guarded'


class TestFindTransitionWithConditions:
    """Test condition-aware routing used by simulation."""

    def test_skips_failing_candidates(self, repo):
        add(repo, 'auth', 'GET', '/dashboard', name='guest', conditions={'state.isLoggedIn': False})
        add(repo, 'auth', 'GET', '/dashboard', name='member', conditions={'state.isLoggedIn': True})
        router = TransitionRouter(repo)

        match = router.find_transition_with_conditions(
            'auth', '/dashboard', 'GET',
            ScenarioStateDocument(state={'isLoggedIn': True}),
            RequestInput()
        )

        assert match.transition.name == 'member'

    def test_falls_back_to_patterns(self, repo):
        add(repo, 'shop', 'GET', '/orders/mine', name='exact', conditions={'state.isLoggedIn': True})
        add(repo, 'shop', 'GET', '/orders/:id', name='pattern', conditions=[
            {'type': 'eq', 'field': 'input.params.id', 'value': 'mine'}
        ])

        match = TransitionRouter(repo).find_transition_with_conditions(
            'shop', '/orders/mine', 'GET', ScenarioStateDocument(), RequestInput()
        )

        assert match.transition.name == 'pattern'
        assert match.params == {'id': 'mine'}

    def test_no_candidate_passes(self, repo):
        add(repo, 'auth', 'GET', '/dashboard', conditions={'state.isLoggedIn': True})

        match = TransitionRouter(repo).find_transition_with_conditions(
            'auth', '/dashboard', 'GET', ScenarioStateDocument(), RequestInput()
        )

        assert match is None
