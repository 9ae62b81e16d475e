"""
Tests for the workflow repository.

Tests scenario and transition management, pagination, export/import and
workflow file loading.
"""

import json

import pytest
import yaml

from mockzilla.workflow.errors import ConflictError, NotFoundError, ValidationError
from mockzilla.workflow.repository import WorkflowRepository


def transition_data(scenario='auth-flow', method='POST', path='/login', **extra):
    data = {
        'scenarioId': scenario,
        'method': method,
        'path': path,
        'response': {'status': 200, 'body': {'ok': True}}
    }
    data.update(extra)
    return data


@pytest.fixture
def repo():
    return WorkflowRepository()


@pytest.fixture
def workflow_document():
    return {
        'version': 1,
        'scenarios': [{'id': 'auth-flow', 'name': 'Auth Flow'}],
        'transitions': [
            {
                'scenarioId': 'auth-flow',
                'name': 'Login',
                'method': 'post',
                'path': '/login',
                'effects': [{'type': 'state.set', 'raw': {'isLoggedIn': True}}],
                'response': {'status': 200, 'body': {'ok': True}}
            },
            {
                'scenarioId': 'auth-flow',
                'name': 'Dashboard',
                'method': 'GET',
                'path': '/dashboard',
                'conditions': [{'type': 'eq', 'field': 'state.isLoggedIn', 'value': True}],
                'response': {'status': 200, 'body': {'ok': True}}
            }
        ]
    }


class TestScenarios:
    """Test scenario management."""

    def test_create_uses_slug(self, repo):
        scenario = repo.create_scenario('  Auth Flow! ', 'Login then dashboard')

        assert scenario.id == 'auth-flow'
        assert scenario.name == 'Auth Flow!'
        assert scenario.description == 'Login then dashboard'

    def test_duplicate_slug_conflicts(self, repo):
        repo.create_scenario('Auth Flow')
        with pytest.raises(ConflictError):
            repo.create_scenario('auth flow')

    def test_invalid_names(self, repo):
        with pytest.raises(ValidationError):
            repo.create_scenario('')
        with pytest.raises(ValidationError):
            repo.create_scenario('!!!')

    def test_update_keeps_id(self, repo):
        repo.create_scenario('Auth Flow')
        updated = repo.update_scenario('auth-flow', 'Renamed', None)

        assert updated.id == 'auth-flow'
        assert updated.name == 'Renamed'
        assert updated.updated_at is not None

    def test_get_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.get_scenario('nope')

    def test_delete_cascades(self, repo):
        repo.create_scenario('Auth Flow')
        repo.create_transition(transition_data())
        repo.create_transition(transition_data(scenario='other'))

        repo.delete_scenario('auth-flow')

        assert 'auth-flow' not in repo.scenarios
        assert [t.scenario_id for t in repo.transitions] == ['other']

    def test_list_with_counts(self, repo):
        repo.create_scenario('Auth Flow')
        repo.create_transition(transition_data())
        repo.create_transition(transition_data(path='/logout'))

        listed = repo.list_scenarios()

        assert listed[0]['id'] == 'auth-flow'
        assert listed[0]['count'] == 2

    def test_pagination(self, repo):
        for i in range(5):
            repo.create_scenario(f'Scenario {i}')

        page = repo.list_scenarios_page(page=2, limit=2)

        assert [s['id'] for s in page['data']] == ['scenario-2', 'scenario-3']
        assert page['meta'] == {'total': 5, 'page': 2, 'limit': 2, 'totalPages': 3}

    def test_pagination_rejects_bad_values(self, repo):
        with pytest.raises(ValidationError):
            repo.list_scenarios_page(page=0, limit=10)


class TestTransitions:
    """Test transition management."""

    def test_create_auto_creates_scenario(self, repo):
        transition = repo.create_transition(transition_data(method='post'))

        assert transition.id == 1
        assert transition.method == 'POST'
        assert repo.scenarios['auth-flow'].name == 'auth-flow'

    def test_create_requires_fields(self, repo):
        with pytest.raises(ValidationError):
            repo.create_transition({'scenarioId': 'a', 'path': '/x', 'method': 'GET'})

    def test_create_rejects_malformed_rules(self, repo):
        with pytest.raises(ValidationError):
            repo.create_transition(transition_data(conditions='state.isLoggedIn'))
        with pytest.raises(ValidationError):
            repo.create_transition(transition_data(effects='nope'))

    def test_ids_are_unique(self, repo):
        first = repo.create_transition(transition_data())
        second = repo.create_transition(transition_data(path='/logout'))
        assert first.id != second.id

    def test_partial_update_keeps_order(self, repo):
        first = repo.create_transition(transition_data(name='first'))
        repo.create_transition(transition_data(name='second', path='/logout'))

        updated = repo.update_transition(first.id, {'method': 'put', 'conditions': {'state.ok': True}})

        assert repo.transitions[0] is updated
        assert updated.method == 'PUT'
        assert updated.name == 'first'
        assert updated.condition_set.expected == {'state.ok': True}

    def test_update_rejects_empty_path(self, repo):
        transition = repo.create_transition(transition_data())
        with pytest.raises(ValidationError):
            repo.update_transition(transition.id, {'path': ''})

    def test_delete(self, repo):
        transition = repo.create_transition(transition_data())
        repo.delete_transition(transition.id)

        with pytest.raises(NotFoundError):
            repo.get_transition(transition.id)

    def test_list_by_scenario(self, repo):
        repo.create_transition(transition_data())
        repo.create_transition(transition_data(scenario='other'))

        assert len(repo.list_transitions('auth-flow')) == 1


class TestExportImport:
    """Test export and import."""

    def test_export_shape(self, repo, workflow_document):
        repo.import_workflows(workflow_document)

        exported = repo.export_workflows()

        assert exported['version'] == 1
        assert 'exportedAt' in exported
        assert [s['id'] for s in exported['scenarios']] == ['auth-flow']
        assert [t['name'] for t in exported['transitions']] == ['Login', 'Dashboard']

    def test_export_single_scenario(self, repo, workflow_document):
        repo.import_workflows(workflow_document)
        repo.create_transition(transition_data(scenario='other'))

        exported = repo.export_workflows('auth-flow')

        assert len(exported['transitions']) == 2

    def test_import_replaces_transitions(self, repo, workflow_document):
        repo.create_transition(transition_data(path='/old'))

        result = repo.import_workflows(workflow_document)

        assert result == {'success': True, 'importedScenarios': 1, 'importedTransitions': 2}
        assert [t.path for t in repo.list_transitions('auth-flow')] == ['/login', '/dashboard']
        assert repo.scenarios['auth-flow'].name == 'Auth Flow'

    def test_import_round_trip(self, repo, workflow_document):
        repo.import_workflows(workflow_document)
        other = WorkflowRepository()

        other.import_workflows(repo.export_workflows())

        assert [t.to_dict()['conditions'] for t in other.transitions] == \
            [t.to_dict()['conditions'] for t in repo.transitions]

    def test_invalid_import_changes_nothing(self, repo, workflow_document):
        repo.create_transition(transition_data(path='/old'))
        workflow_document['transitions'].append({'scenarioId': 'auth-flow', 'path': '/x'})

        with pytest.raises(ValidationError):
            repo.import_workflows(workflow_document)

        assert [t.path for t in repo.transitions] == ['/old']

    def test_import_requires_arrays(self, repo):
        with pytest.raises(ValidationError):
            repo.import_workflows({'scenarios': []})


class TestWorkflowFile:
    """Test loading from and saving to workflow files."""

    def test_loads_yaml(self, tmp_path, workflow_document):
        path = tmp_path / 'workflows.yaml'
        path.write_text(yaml.safe_dump(workflow_document))

        repo = WorkflowRepository(workflow_file=str(path))

        assert len(repo.transitions) == 2
        assert repo.transitions[0].method == 'POST'

    def test_missing_file_starts_empty(self, tmp_path):
        repo = WorkflowRepository(workflow_file=str(tmp_path / 'none.json'))
        assert repo.transitions == []

    def test_autosave(self, tmp_path):
        path = tmp_path / 'workflows.json'
        repo = WorkflowRepository(workflow_file=str(path), autosave=True)

        repo.create_transition(transition_data())

        saved = json.loads(path.read_text())
        assert saved['transitions'][0]['path'] == '/login'
