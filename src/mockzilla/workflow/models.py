"""
Mockzilla Workflow Models

Records read by the workflow engine: scenarios, transitions, their
condition and effect rules, and the per-request match context.

Conditions and effects arrive in two surface syntaxes each. They are
normalized into one canonical in-memory form when a Transition is built;
the authored form is kept so it round-trips through export and update.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional, Union

from ..common.path_resolver import MISSING


def _now() -> str:
    return datetime.now().isoformat()


# --- Conditions ---

@dataclass
class Condition:
    """Explicit operator condition: {type, field, value?}."""

    type: str
    field: str
    value: Any = MISSING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Condition':
        """Create Condition from dictionary."""
        return cls(
            type=str(data.get('type', '')),
            field=str(data.get('field', '')),
            value=data.get('value', MISSING)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': self.type, 'field': self.field}
        if self.value is not MISSING:
            data['value'] = self.value
        return data


@dataclass
class FieldMatchConditions:
    """Object-map form: every field loosely equals its expected value."""

    expected: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ConditionList:
    """Array form: AND of explicit conditions, evaluated in order."""

    conditions: List[Condition] = field(default_factory=list)


ConditionSet = Union[FieldMatchConditions, ConditionList]


def parse_conditions(raw: Any) -> ConditionSet:
    """
    Normalize authored conditions into a ConditionSet.

    Args:
        raw: Object map, list of {type, field, value} records, or None

    Returns:
        FieldMatchConditions or ConditionList
    """
    if raw is None:
        return FieldMatchConditions()
    if isinstance(raw, list):
        return ConditionList([
            Condition.from_dict(item) if isinstance(item, dict) else Condition(type='', field='')
            for item in raw
        ])
    if isinstance(raw, dict):
        return FieldMatchConditions(dict(raw))
    raise ValueError(f"Conditions must be an object or an array, got {type(raw).__name__}")


# --- Effects ---

@dataclass
class StateSetEffect:
    """state.set: assign interpolated values into the state map."""

    raw: Optional[Dict[str, Any]] = None
    key: Optional[str] = None
    value: Any = None


@dataclass
class DbPushEffect:
    """db.push: append an interpolated row to a table."""

    table: str
    value: Any = None


@dataclass
class DbUpdateEffect:
    """db.update: set columns on rows matching ALL match pairs."""

    table: str
    match: Dict[str, Any] = field(default_factory=dict)
    set: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DbRemoveEffect:
    """db.remove: drop rows matching ANY match pair."""

    table: str
    match: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UnknownEffect:
    """Unrecognized effect shape; ignored during execution."""

    raw: Any = None


Effect = Union[StateSetEffect, DbPushEffect, DbUpdateEffect, DbRemoveEffect, UnknownEffect]


def _as_map(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_effect_record(data: Any) -> Effect:
    """Parse one canonical {type: ...} effect record."""
    if not isinstance(data, dict):
        return UnknownEffect(raw=data)

    effect_type = data.get('type')
    if effect_type == 'state.set':
        if isinstance(data.get('raw'), dict):
            return StateSetEffect(raw=data['raw'])
        if data.get('key'):
            return StateSetEffect(key=str(data['key']), value=data.get('value'))
        return StateSetEffect()

    table = data.get('table')
    if not isinstance(table, str) or not table:
        return UnknownEffect(raw=data)

    if effect_type == 'db.push':
        return DbPushEffect(table=table, value=data.get('value'))
    if effect_type == 'db.update':
        return DbUpdateEffect(table=table, match=_as_map(data.get('match')), set=_as_map(data.get('set')))
    if effect_type == 'db.remove':
        return DbRemoveEffect(table=table, match=_as_map(data.get('match')))

    return UnknownEffect(raw=data)


def _parse_legacy_effect(key: str, value: Any) -> Effect:
    """
    Parse one legacy map entry.

    Keys look like "$state.set", "$db.<table>.push", "$db.<table>.update"
    and "$db.<table>.remove".
    """
    if key.startswith('$'):
        parts = key[1:].split('.')
        if parts[0] == 'state' and len(parts) > 1 and parts[1] == 'set':
            return StateSetEffect(raw=_as_map(value))
        if parts[0] == 'db' and len(parts) > 2:
            table, action = parts[1], parts[2]
            if action == 'push':
                return DbPushEffect(table=table, value=value)
            if action == 'update':
                update = _as_map(value)
                return DbUpdateEffect(table=table, match=_as_map(update.get('match')), set=_as_map(update.get('set')))
            if action == 'remove':
                return DbRemoveEffect(table=table, match=_as_map(value))

    return UnknownEffect(raw={key: value})


def normalize_effects(raw: Any) -> List[Effect]:
    """
    Normalize authored effects into the canonical effect list.

    Args:
        raw: List of {type: ...} records, legacy "$"-keyed map, or None

    Returns:
        List of Effect variants in execution order
    """
    if raw is None:
        return []
    if isinstance(raw, list):
        return [_parse_effect_record(item) for item in raw]
    if isinstance(raw, dict):
        return [_parse_legacy_effect(str(k), v) for k, v in raw.items()]
    raise ValueError(f"Effects must be an array or an object, got {type(raw).__name__}")


# --- Scenarios and transitions ---

@dataclass
class Scenario:
    """Isolated namespace owning transitions and one state document."""

    id: str
    name: str
    description: Optional[str] = None
    created_at: str = field(default_factory=_now)
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scenario':
        """Create Scenario from dictionary."""
        return cls(
            id=data['id'],
            name=data.get('name') or data['id'],
            description=data.get('description'),
            created_at=data.get('createdAt') or _now(),
            updated_at=data.get('updatedAt')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at
        }


@dataclass
class Transition:
    """
    Declarative rule mapping method + path to conditions, effects and a
    response template.

    `conditions` and `effects` hold the authored form; `condition_set` and
    `effect_list` hold the normalized form the engine executes.
    """

    id: int
    scenario_id: str
    path: str
    method: str
    response: Dict[str, Any]
    name: str = ''
    description: Optional[str] = None
    conditions: Any = field(default_factory=dict)
    effects: Any = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=_now)
    updated_at: Optional[str] = None
    condition_set: ConditionSet = field(init=False, repr=False, compare=False)
    effect_list: List[Effect] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.method = self.method.upper()
        if self.conditions is None:
            self.conditions = {}
        if self.effects is None:
            self.effects = []
        self.condition_set = parse_conditions(self.conditions)
        self.effect_list = normalize_effects(self.effects)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], transition_id: Optional[int] = None) -> 'Transition':
        """Create Transition from a wire (camelCase) dictionary."""
        return cls(
            id=transition_id if transition_id is not None else int(data.get('id', 0)),
            scenario_id=data['scenarioId'],
            path=data['path'],
            method=data['method'],
            response=data.get('response') or {},
            name=data.get('name') or '',
            description=data.get('description'),
            conditions=data.get('conditions'),
            effects=data.get('effects'),
            meta=data.get('meta') or {},
            created_at=data.get('createdAt') or _now(),
            updated_at=data.get('updatedAt')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'scenarioId': self.scenario_id,
            'name': self.name,
            'description': self.description,
            'path': self.path,
            'method': self.method,
            'conditions': self.conditions,
            'effects': self.effects,
            'response': self.response,
            'meta': self.meta,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at
        }


# --- Request context and state ---

@dataclass
class RequestInput:
    """Read-only request data visible to conditions and templates."""

    body: Any = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'body': self.body,
            'query': self.query,
            'params': self.params,
            'headers': self.headers
        }


@dataclass
class MatchContext:
    """Working set for one request: input plus scenario state and tables."""

    input: RequestInput = field(default_factory=RequestInput)
    state: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, List[Any]] = field(default_factory=dict)

    def view(self) -> Dict[str, Any]:
        """Root value that paths like "state.x" or "tables.cart" resolve against."""
        return {
            'input': self.input.to_dict(),
            'state': self.state,
            'tables': self.tables
        }


@dataclass
class ScenarioStateDocument:
    """Persisted {state, tables} document, one per scenario."""

    state: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, List[Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ScenarioStateDocument':
        data = data or {}
        return cls(state=data.get('state') or {}, tables=data.get('tables') or {})

    def to_dict(self) -> Dict[str, Any]:
        return {'state': self.state, 'tables': self.tables}


@dataclass
class WorkflowRequest:
    """Inbound request descriptor handed to the engine by the HTTP layer."""

    method: str
    path: str
    body: Any = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.method = self.method.upper()


@dataclass
class WorkflowResponse:
    """Outbound {status, headers, body} for the HTTP layer to serialize."""

    status: int
    headers: Dict[str, str]
    body: Any
    condition_failure: bool = False  # Set when the 400 comes from unmet conditions

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status, 'headers': self.headers, 'body': self.body}
