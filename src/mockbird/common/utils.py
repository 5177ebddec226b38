"""
MockBird Common Utilities

Shared helpers for tolerant JSON parsing and fixture file loading.
"""

import json
from pathlib import Path
from typing import List, Dict, Any, Optional

import yaml


class FixtureError(ValueError):
    """Raised when a fixture file has an unexpected shape or invalid records."""


def safe_json_parse(json_string: Any, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Values that are already decoded (dicts, lists) are returned unchanged,
    so records coming from fixtures and from SQLite columns can share the
    same code path.

    Args:
        json_string: JSON string to parse (or an already decoded value)
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        headers = safe_json_parse(row["headers"], default={})
    """
    if isinstance(json_string, (dict, list)):
        return json_string

    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def to_json_text(value: Any, default: str = "") -> str:
    """Serialize a value for storage in a TEXT column."""
    if value is None:
        return default
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


class FixtureLoader:
    """
    Loader for MockBird fixture files (projects, mocks and responses).

    Handles both YAML and JSON files, in two layouts:
    - Format 1: {"projects": [...]}  (wrapped format)
    - Format 2: [...]                (direct list of projects)

    Example:
        loader = FixtureLoader("mocks.yaml")
        for project in loader.load():
            print(project["slug"])
    """

    def __init__(self, file_path: str):
        """
        Initialize fixture loader.

        Args:
            file_path: Path to a .yaml/.yml/.json fixture file
        """
        self.file_path = Path(file_path)

    def load(self) -> List[Dict[str, Any]]:
        """
        Load project definitions from the fixture file.

        Returns:
            List of project dictionaries (each may carry nested "mocks")

        Raises:
            FileNotFoundError: If fixture file doesn't exist
            FixtureError: If the file format is invalid or unrecognized
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Fixture file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            try:
                if self.file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                raise FixtureError(f"Could not parse {self.file_path}: {e}") from e

        if data is None:
            return []

        if isinstance(data, dict):
            if 'projects' in data:
                projects = data['projects'] or []
            else:
                raise FixtureError(
                    f"Unexpected fixture format in {self.file_path}. "
                    f"Expected dict with 'projects' key or a list of projects. "
                    f"Found keys: {list(data.keys())}"
                )
        elif isinstance(data, list):
            projects = data
        else:
            raise FixtureError(
                f"Unexpected fixture format in {self.file_path}. "
                f"Expected dict or list, got {type(data).__name__}"
            )

        for index, project in enumerate(projects):
            if not isinstance(project, dict):
                raise FixtureError(f"Project #{index} in {self.file_path} is not a mapping")
            if not project.get('slug'):
                raise FixtureError(f"Project #{index} in {self.file_path} has no slug")

        return projects

    @staticmethod
    def load_from_file(file_path: str) -> List[Dict[str, Any]]:
        """Convenience method to load fixtures in one call."""
        return FixtureLoader(file_path).load()


def filter_hop_by_hop_headers(
    headers: Dict[str, Any],
    skip: Optional[List[str]] = None
) -> Dict[str, str]:
    """
    Drop headers the HTTP server computes itself and stringify the rest.

    Args:
        headers: Stored response headers
        skip: Lower-cased header names to drop (defaults to length/framing headers)

    Returns:
        New header dictionary with string values
    """
    headers_to_skip = set(skip or ['content-length', 'transfer-encoding', 'connection'])
    return {
        str(k): str(v)
        for k, v in headers.items()
        if str(k).lower() not in headers_to_skip and v is not None
    }
