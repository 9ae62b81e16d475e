"""
Mockzilla Path Resolver

Dotted/bracket path lookup into JSON-like value trees.

Supports:
- $.field, $field (JSONPath-style prefix is stripped)
- nested.field
- array[0], array[0].field
- array.length, string.length
"""

import re
from typing import Any, List


class _Missing:
    """Marker for a value that is absent (as opposed to JSON null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_SPLIT_PATTERN = re.compile(r'[.\[\]]')
_INDEX_PATTERN = re.compile(r'^-?\d+$')

DB_ALIAS = 'db'
TABLES_ROOT = 'tables'


def split_path(path: str) -> List[str]:
    """
    Split a path into segments.

    Args:
        path: Path such as "$.users[0].name"

    Returns:
        Ordered list of segment names (empty tokens discarded)
    """
    if path.startswith('$.'):
        path = path[2:]
    elif path.startswith('$'):
        path = path[1:]

    return [part for part in _SPLIT_PATTERN.split(path) if part]


def resolve_path(path: str, root: Any) -> Any:
    """
    Resolve a path against a JSON-like value.

    Missing paths are signaled by returning MISSING, never by raising.

    Args:
        path: Path string (e.g. "state.users[0].name")
        root: Value to walk

    Returns:
        The resolved value, or MISSING
    """
    current = root
    for part in split_path(path):
        if current is None or current is MISSING:
            return MISSING

        if _INDEX_PATTERN.match(part):
            if not isinstance(current, list):
                return MISSING
            index = int(part)
            if index < 0 or index >= len(current):
                return MISSING
            current = current[index]
        elif isinstance(current, dict):
            current = current.get(part, MISSING)
        elif part == 'length' and isinstance(current, (list, str)):
            current = len(current)
        else:
            return MISSING

    return current


def alias_db_path(path: str) -> str:
    """Rewrite a leading "db" root segment to "tables"."""
    if path == DB_ALIAS:
        return TABLES_ROOT
    if path.startswith(DB_ALIAS + '.') or path.startswith(DB_ALIAS + '['):
        return TABLES_ROOT + path[len(DB_ALIAS):]
    return path


def resolve_context_path(path: str, root: Any) -> Any:
    """
    Resolve a path against a workflow context view.

    "db." is accepted as an alias for "tables." so templates and
    conditions can address mini-DB tables as db.<table>. An empty path
    ("", "$", "$.") resolves to MISSING rather than the whole view.
    """
    path = path.strip()
    if path.startswith('$.'):
        path = path[2:]
    elif path.startswith('$'):
        path = path[1:]
    if not path:
        return MISSING
    return resolve_path(alias_db_path(path), root)
