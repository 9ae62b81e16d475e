"""
Mockzilla Common Utilities

Shared utilities and helpers used across Mockzilla modules.
"""

from .utils import (
    safe_json_parse,
    parse_request_body,
    generate_slug,
    normalize_headers,
    WorkflowLoader
)
from .path_resolver import MISSING, resolve_path, resolve_context_path
from .coercion import loose_equals, strict_equals, to_boolean, to_number, to_js_string

__all__ = [
    'safe_json_parse',
    'parse_request_body',
    'generate_slug',
    'normalize_headers',
    'WorkflowLoader',
    'MISSING',
    'resolve_path',
    'resolve_context_path',
    'loose_equals',
    'strict_equals',
    'to_boolean',
    'to_number',
    'to_js_string',
]
