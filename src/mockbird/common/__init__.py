"""
MockBird Common Utilities

Shared utilities and helpers used across MockBird modules.
"""

from .utils import (
    FixtureError,
    FixtureLoader,
    safe_json_parse,
    to_json_text,
    filter_hop_by_hop_headers,
)

__all__ = [
    'FixtureError',
    'FixtureLoader',
    'safe_json_parse',
    'to_json_text',
    'filter_hop_by_hop_headers',
]
