"""
Mockzilla Response Templater

Renders transition response bodies by substituting {{ path }} placeholders
with values from the match context.

- "{{ db.cart }}" (the whole string is one placeholder) returns the value
  itself, so a response field can be an entire table.
- "Items: {{ db.cart.length }}" substitutes the string form of each value,
  or "" when a path doesn't resolve.
"""

import re
from typing import Any, Dict

from ..common.coercion import to_boolean, to_js_string
from ..common.path_resolver import MISSING, resolve_context_path
from .models import MatchContext, WorkflowResponse

WHOLE_PLACEHOLDER = re.compile(r'^\{\{\s*([^}]+)\s*\}\}$')
EMBEDDED_PLACEHOLDER = re.compile(r'\{\{\s*([^}]+)\s*\}\}')

DEFAULT_HEADERS = {'Content-Type': 'application/json'}


def _lookup(path: str, context: MatchContext) -> Any:
    path = path.strip()
    value = resolve_context_path(path, context.view())

    # A whole table that doesn't exist yet renders as an empty list
    if value is MISSING and path.startswith('db.'):
        parts = path.split('.')
        if len(parts) == 2 and parts[1] not in context.tables:
            return []

    return value


def render(template: Any, context: MatchContext) -> Any:
    """
    Render a response template against the context.

    Args:
        template: Response body template (any JSON value)
        context: Match context after effects were applied

    Returns:
        Rendered JSON value
    """
    if isinstance(template, str):
        whole = WHOLE_PLACEHOLDER.match(template.strip())
        if whole:
            value = _lookup(whole.group(1), context)
            return template if value is MISSING else value

        def replace(match: re.Match) -> str:
            value = _lookup(match.group(1), context)
            return '' if value is MISSING else to_js_string(value)

        return EMBEDDED_PLACEHOLDER.sub(replace, template)

    if isinstance(template, list):
        return [render(item, context) for item in template]

    if isinstance(template, dict):
        return {key: render(value, context) for key, value in template.items()}

    return template


def render_response(response_config: Dict[str, Any], context: MatchContext) -> WorkflowResponse:
    """
    Build the outbound response from a transition's response definition.

    Args:
        response_config: {"status": int, "headers": {...}, "body": template}
        context: Match context after effects were applied

    Returns:
        WorkflowResponse with status defaulting to 200, JSON content type
        unless headers are given, and {} for a falsy body (null, false, 0, "")
    """
    response_config = response_config or {}
    body = render(response_config.get('body'), context)

    return WorkflowResponse(
        status=response_config.get('status') or 200,
        headers=dict(response_config.get('headers') or DEFAULT_HEADERS),
        body=body if to_boolean(body) else {}
    )
