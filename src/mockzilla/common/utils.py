"""
Mockzilla Common Utilities

Shared helpers for parsing request payloads, normalizing headers and
loading workflow definition files.
"""

import json
import re
from pathlib import Path
from typing import List, Dict, Any, Optional

import yaml


def safe_json_parse(json_string: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(raw_body, default={})
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def parse_request_body(raw: bytes) -> Any:
    """
    Parse an inbound request body.

    Args:
        raw: Raw request body bytes

    Returns:
        Parsed JSON value, the raw text if it isn't JSON, or {} if empty
    """
    if not raw:
        return {}

    text = raw.decode('utf-8', errors='replace')
    if not text:
        return {}

    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text


def generate_slug(name: str) -> str:
    """
    Generate a URL-friendly slug from a display name.

    Example:
        generate_slug("Auth Flow!")  # -> "auth-flow"
    """
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower().strip())
    return slug.strip('-')


def normalize_headers(headers: Dict[str, Any]) -> Dict[str, str]:
    """
    Normalize headers to lower-cased keys and string values.

    Args:
        headers: Header mapping (any value types)

    Returns:
        New dict with lower-cased keys and str values (None -> "")
    """
    return {
        str(key).lower(): '' if value is None else str(value)
        for key, value in headers.items()
    }


class WorkflowLoader:
    """
    Loader for Mockzilla workflow definition files.

    Accepts JSON or YAML files in the export format:
        {"version": 1, "scenarios": [...], "transitions": [...]}

    Example:
        loader = WorkflowLoader("workflows.yaml")
        data = loader.load()

        for transition in data['transitions']:
            print(transition['method'], transition['path'])
    """

    YAML_SUFFIXES = ('.yaml', '.yml')

    def __init__(self, file_path: str):
        """
        Initialize workflow loader.

        Args:
            file_path: Path to workflow JSON or YAML file
        """
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, Any]:
        """
        Load workflow definitions from file.

        Returns:
            Dict with 'scenarios' and 'transitions' lists

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file format is unrecognized
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Workflow file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            if self.file_path.suffix.lower() in self.YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(
                f"Unexpected workflow format in {self.file_path}. "
                f"Expected a mapping, got {type(data).__name__}"
            )

        if 'scenarios' not in data or 'transitions' not in data:
            raise ValueError(
                f"Unexpected workflow format in {self.file_path}. "
                f"Expected 'scenarios' and 'transitions' keys. Found keys: {list(data.keys())}"
            )

        return data

    @staticmethod
    def load_from_file(file_path: str) -> Dict[str, Any]:
        """Convenience method to load workflow definitions in one call."""
        return WorkflowLoader(file_path).load()

    def save(self, data: Dict[str, Any]):
        """
        Write workflow definitions to file (format chosen by suffix).

        Args:
            data: Export document to write
        """
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, 'w', encoding='utf-8') as f:
            if self.file_path.suffix.lower() in self.YAML_SUFFIXES:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(data, f, indent=2)

    def validate_transition(self, transition: Dict[str, Any]) -> bool:
        """Check that a transition has the minimum required fields."""
        required_fields = ['scenarioId', 'path', 'method', 'response']
        return all(transition.get(field) for field in required_fields)

    def invalid_transitions(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Return transitions missing required fields."""
        return [t for t in data.get('transitions', []) if not self.validate_transition(t)]
