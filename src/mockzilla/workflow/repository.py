"""
Mockzilla Workflow Repository

In-memory store for scenarios and transitions, plus the management
operations used by the admin API and CLI (create, update, delete,
export and import).

Transitions are kept in creation order; routing depends on it.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Dict, Any, Optional

from ..common.utils import generate_slug, WorkflowLoader
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Scenario, Transition, parse_conditions, normalize_effects

EXPORT_VERSION = 1

TRANSITION_FIELDS = ('name', 'description', 'path', 'method', 'conditions', 'effects', 'response', 'meta')


class WorkflowRepository:
    """
    Scenario and transition storage.

    Optionally backed by a workflow file: definitions are loaded from it at
    startup and written back after every change.

    Example:
        repo = WorkflowRepository()
        scenario = repo.create_scenario('Auth Flow')
        repo.create_transition({
            'scenarioId': scenario.id,
            'path': '/login',
            'method': 'POST',
            'effects': [{'type': 'state.set', 'raw': {'isLoggedIn': True}}],
            'response': {'status': 200, 'body': {'ok': True}}
        })
    """

    def __init__(self, workflow_file: Optional[str] = None, autosave: bool = False):
        """
        Initialize repository.

        Args:
            workflow_file: Optional JSON/YAML workflow file to load
            autosave: Write changes back to workflow_file
        """
        self.logger = logging.getLogger("mockzilla.workflow")
        self.scenarios: Dict[str, Scenario] = {}
        self.transitions: List[Transition] = []
        self._next_id = 1
        self.loader = WorkflowLoader(workflow_file) if workflow_file else None
        self.autosave = autosave and self.loader is not None

        if self.loader and self.loader.file_path.exists():
            data = self.loader.load()
            self._import(data)
            self.logger.info(
                f"Loaded {len(self.scenarios)} scenarios and {len(self.transitions)} transitions "
                f"from {self.loader.file_path}"
            )

    def _save(self):
        if self.autosave:
            self.loader.save(self.export_workflows())

    def _allocate_id(self) -> int:
        transition_id = self._next_id
        self._next_id += 1
        return transition_id

    # --- Routing collaborator interface ---

    def find_by_exact_path_method(self, scenario_id: str, path: str, method: str) -> List[Transition]:
        method = method.upper()
        return [
            t for t in self.transitions
            if t.scenario_id == scenario_id and t.path == path and t.method == method
        ]

    def find_by_scenario_and_method(self, scenario_id: str, method: str) -> List[Transition]:
        method = method.upper()
        return [t for t in self.transitions if t.scenario_id == scenario_id and t.method == method]

    def find_all_by_exact_path_method(self, path: str, method: str) -> List[Transition]:
        method = method.upper()
        return [t for t in self.transitions if t.path == path and t.method == method]

    def find_all_by_method(self, method: str) -> List[Transition]:
        method = method.upper()
        return [t for t in self.transitions if t.method == method]

    # --- Scenarios ---

    def create_scenario(self, name: str, description: Optional[str] = None) -> Scenario:
        """
        Create a scenario whose id is the slug of its name.

        Raises:
            ValidationError: If the name is empty or yields an empty slug
            ConflictError: If a scenario with the same slug exists
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")

        slug = generate_slug(name)
        if not slug:
            raise ValidationError("Invalid name - cannot generate valid slug")

        if slug in self.scenarios:
            raise ConflictError("A scenario with this name already exists")

        scenario = Scenario(
            id=slug,
            name=name.strip(),
            description=(description or '').strip() or None
        )
        self.scenarios[slug] = scenario
        self._save()
        return scenario

    def get_scenario(self, scenario_id: str) -> Scenario:
        scenario = self.scenarios.get(scenario_id)
        if scenario is None:
            raise NotFoundError("Scenario not found")
        return scenario

    def update_scenario(self, scenario_id: str, name: str, description: Optional[str] = None) -> Scenario:
        """Rename a scenario; its id never changes."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")

        scenario = replace(
            self.get_scenario(scenario_id),
            name=name.strip(),
            description=(description or '').strip() or None,
            updated_at=datetime.now().isoformat()
        )
        self.scenarios[scenario_id] = scenario
        self._save()
        return scenario

    def delete_scenario(self, scenario_id: str):
        """Delete a scenario and all of its transitions."""
        self.get_scenario(scenario_id)
        self.transitions = [t for t in self.transitions if t.scenario_id != scenario_id]
        del self.scenarios[scenario_id]
        self._save()

    def list_scenarios(self) -> List[Dict[str, Any]]:
        """List scenarios with their transition counts."""
        counts: Dict[str, int] = {}
        for t in self.transitions:
            counts[t.scenario_id] = counts.get(t.scenario_id, 0) + 1

        return [
            {
                'id': s.id,
                'name': s.name,
                'description': s.description,
                'count': counts.get(s.id, 0),
                'createdAt': s.created_at
            }
            for s in self.scenarios.values()
        ]

    def list_scenarios_page(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """List scenarios one page at a time."""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        scenarios = self.list_scenarios()
        total = len(scenarios)
        offset = (page - 1) * limit
        return {
            'data': scenarios[offset:offset + limit],
            'meta': {
                'total': total,
                'page': page,
                'limit': limit,
                'totalPages': (total + limit - 1) // limit
            }
        }

    def ensure_scenario(self, scenario_id: str) -> Scenario:
        """Return a scenario, creating a placeholder one if missing."""
        scenario = self.scenarios.get(scenario_id)
        if scenario is None:
            scenario = Scenario(
                id=scenario_id,
                name=scenario_id,
                description=f"Auto-created scenario for {scenario_id}"
            )
            self.scenarios[scenario_id] = scenario
        return scenario

    # --- Transitions ---

    def _validate_rules(self, data: Dict[str, Any]):
        try:
            parse_conditions(data.get('conditions'))
            normalize_effects(data.get('effects'))
        except ValueError as e:
            raise ValidationError(str(e)) from e

        response = data.get('response')
        if response is not None and not isinstance(response, dict):
            raise ValidationError("response must be an object")

    def create_transition(self, data: Dict[str, Any]) -> Transition:
        """
        Create a transition from a wire (camelCase) dictionary.

        Raises:
            ValidationError: If scenarioId, path, method or response is missing
        """
        missing = [f for f in ('scenarioId', 'path', 'method', 'response') if not data.get(f)]
        if missing:
            raise ValidationError("Missing required fields: scenarioId, path, method, response")
        self._validate_rules(data)

        self.ensure_scenario(data['scenarioId'])
        transition = Transition(
            id=self._allocate_id(),
            scenario_id=data['scenarioId'],
            name=data.get('name') or '',
            description=data.get('description'),
            path=data['path'],
            method=data['method'],
            conditions=data.get('conditions') or {},
            effects=data.get('effects') or [],
            response=data['response'],
            meta=data.get('meta') or {}
        )
        self.transitions.append(transition)
        self.logger.debug(f"Created transition {transition.id}: {transition.method} {transition.path}")
        self._save()
        return transition

    def get_transition(self, transition_id: int) -> Transition:
        for t in self.transitions:
            if t.id == transition_id:
                return t
        raise NotFoundError("Transition not found")

    def update_transition(self, transition_id: int, changes: Dict[str, Any]) -> Transition:
        """
        Partially update a transition. Only keys present in `changes` are
        applied; the creation order is preserved.
        """
        current = self.get_transition(transition_id)
        self._validate_rules({
            'conditions': changes.get('conditions', current.conditions),
            'effects': changes.get('effects', current.effects),
            'response': changes.get('response', current.response)
        })

        updates = {key: changes[key] for key in TRANSITION_FIELDS if key in changes}
        for key in ('path', 'method', 'response'):
            if key in updates and not updates[key]:
                raise ValidationError(f"{key} cannot be empty")

        updated = replace(current, updated_at=datetime.now().isoformat(), **updates)
        index = self.transitions.index(current)
        self.transitions[index] = updated
        self._save()
        return updated

    def delete_transition(self, transition_id: int):
        transition = self.get_transition(transition_id)
        self.transitions.remove(transition)
        self._save()

    def list_transitions(self, scenario_id: str) -> List[Transition]:
        return [t for t in self.transitions if t.scenario_id == scenario_id]

    # --- Export / import ---

    def export_workflows(self, scenario_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Export scenarios and transitions.

        Args:
            scenario_id: Export only this scenario (None exports all)

        Returns:
            {"version", "exportedAt", "scenarios", "transitions"}
        """
        if scenario_id is not None:
            scenarios = [self.get_scenario(scenario_id)]
            transitions = self.list_transitions(scenario_id)
        else:
            scenarios = list(self.scenarios.values())
            transitions = list(self.transitions)

        return {
            'version': EXPORT_VERSION,
            'exportedAt': datetime.now().isoformat(),
            'scenarios': [s.to_dict() for s in scenarios],
            'transitions': [t.to_dict() for t in transitions]
        }

    def _import(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data.get('scenarios'), list):
            raise ValidationError("Invalid format: scenarios array missing")
        if not isinstance(data.get('transitions'), list):
            raise ValidationError("Invalid format: transitions array missing")

        for item in data['scenarios']:
            if not isinstance(item, dict) or not item.get('id'):
                raise ValidationError("Invalid format: every scenario needs an id")
        for item in data['transitions']:
            if not isinstance(item, dict) or not all(item.get(f) for f in ('scenarioId', 'path', 'method')):
                raise ValidationError("Invalid format: every transition needs scenarioId, path and method")
            self._validate_rules(item)

        for item in data['scenarios']:
            existing = self.scenarios.get(item['id'])
            if existing:
                self.scenarios[item['id']] = replace(
                    existing,
                    name=item.get('name') or existing.name,
                    description=item.get('description'),
                    updated_at=datetime.now().isoformat()
                )
            else:
                self.scenarios[item['id']] = Scenario.from_dict(item)

        # Imported scenarios get their transitions replaced wholesale
        imported_ids = {item['id'] for item in data['scenarios']}
        self.transitions = [t for t in self.transitions if t.scenario_id not in imported_ids]

        for item in data['transitions']:
            self.ensure_scenario(item['scenarioId'])
            self.transitions.append(Transition.from_dict(item, transition_id=self._allocate_id()))

        return {
            'success': True,
            'importedScenarios': len(data['scenarios']),
            'importedTransitions': len(data['transitions'])
        }

    def import_workflows(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Import an export document.

        Scenarios are upserted; every transition of an imported scenario is
        replaced by the imported ones (ids are reassigned).

        Raises:
            ValidationError: If the scenarios or transitions array is missing
        """
        result = self._import(data)
        self._save()
        return result
