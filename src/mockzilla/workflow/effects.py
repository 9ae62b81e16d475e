"""
Mockzilla Effects Engine

Applies declarative mutations to a match context's state map and mini-DB
tables. Effects only mutate the in-memory context; persisting it is the
processor's job.

Effect values may reference the context with whole-value placeholders:
"{{input.body}}" resolves to the body itself (dict, list, number...),
never to its string form.
"""

from typing import List, Any

from ..common.coercion import loose_equals
from ..common.path_resolver import MISSING, resolve_context_path
from .errors import EffectError
from .models import (
    DbPushEffect,
    DbRemoveEffect,
    DbUpdateEffect,
    Effect,
    MatchContext,
    StateSetEffect,
    UnknownEffect,
    normalize_effects
)


def interpolate(value: Any, context: MatchContext) -> Any:
    """
    Resolve whole-value placeholders in an effect value.

    A string that starts with "{{" and ends with "}}" is replaced by the
    value at that path (type preserved). Dicts and lists are resolved
    element-wise; every other value passes through unchanged.

    Args:
        value: Authored effect value
        context: Current match context

    Returns:
        Resolved value; MISSING if a top-level placeholder doesn't resolve
    """
    if isinstance(value, str) and value.startswith('{{') and value.endswith('}}'):
        return resolve_context_path(value[2:-2].strip(), context.view())

    if isinstance(value, list):
        resolved_items = [interpolate(item, context) for item in value]
        return [None if item is MISSING else item for item in resolved_items]

    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            resolved = interpolate(item, context)
            if resolved is not MISSING:
                result[key] = resolved
        return result

    return value


def _table_rows(context: MatchContext, table: str) -> List[Any]:
    rows = context.tables.get(table)
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise EffectError(f"Table '{table}' is not a list (got {type(rows).__name__})")
    return rows


def _column(row: Any, key: str) -> Any:
    if isinstance(row, dict):
        return row.get(key, MISSING)
    if row is None:
        raise EffectError(f"Cannot read column '{key}' of a null row")
    return MISSING


def _assign(target: dict, key: str, value: Any):
    if value is MISSING:
        target.pop(key, None)
    else:
        target[key] = value


def _apply_state_set(effect: StateSetEffect, context: MatchContext):
    if effect.raw:
        for key, value in effect.raw.items():
            _assign(context.state, key, interpolate(value, context))
    elif effect.key:
        _assign(context.state, effect.key, interpolate(effect.value, context))


def _apply_push(effect: DbPushEffect, context: MatchContext):
    rows = _table_rows(context, effect.table)
    resolved = interpolate(effect.value, context)
    rows.append(None if resolved is MISSING else resolved)
    context.tables[effect.table] = rows


def _apply_update(effect: DbUpdateEffect, context: MatchContext):
    rows = _table_rows(context, effect.table)
    for row in rows:
        # Every match pair must hold for the row to be updated
        if all(loose_equals(_column(row, k), interpolate(v, context)) for k, v in effect.match.items()):
            if not isinstance(row, dict):
                raise EffectError(f"Cannot update non-object row in table '{effect.table}'")
            for set_key, set_value in effect.set.items():
                _assign(row, set_key, interpolate(set_value, context))
    context.tables[effect.table] = rows


def _apply_remove(effect: DbRemoveEffect, context: MatchContext):
    rows = _table_rows(context, effect.table)

    def should_remove(row: Any) -> bool:
        # Any single matching pair is enough to drop the row
        return any(loose_equals(_column(row, k), interpolate(v, context)) for k, v in effect.match.items())

    context.tables[effect.table] = [row for row in rows if not should_remove(row)]


def apply_effects(effects: Any, context: MatchContext) -> None:
    """
    Apply effects to the context in order.

    Args:
        effects: Normalized effect list, or effects in either authored
            form (canonical list or legacy "$"-keyed map)
        context: Match context to mutate in place

    Raises:
        EffectError: If a table operation targets a malformed table
    """
    effect_list: List[Effect] = effects
    if not (isinstance(effects, list) and all(
        isinstance(e, (StateSetEffect, DbPushEffect, DbUpdateEffect, DbRemoveEffect, UnknownEffect))
        for e in effects
    )):
        effect_list = normalize_effects(effects)

    for effect in effect_list:
        if isinstance(effect, StateSetEffect):
            _apply_state_set(effect, context)
        elif isinstance(effect, DbPushEffect):
            _apply_push(effect, context)
        elif isinstance(effect, DbUpdateEffect):
            _apply_update(effect, context)
        elif isinstance(effect, DbRemoveEffect):
            _apply_remove(effect, context)
        elif isinstance(effect, UnknownEffect):
            continue
