"""
MockBird Path Matcher and Mock Resolver

Finds the mock definition that should answer an incoming request.

Features:
- Path templates with {name} placeholders, one segment per placeholder
- Literal matching of every other character (dots, plus signs, brackets...)
- Exact paths always win over templates
- Longer templates are tried before shorter ones
"""

import re
import logging
from functools import lru_cache
from typing import List, Dict, Optional, Pattern, Tuple
from dataclasses import dataclass, field

from .models import Mock

logger = logging.getLogger("mockbird.execution")

PLACEHOLDER_RE = re.compile(r'\{([^}]+)\}')
SEGMENT_PATTERN = '([^/]+)'


@dataclass
class PathMatch:
    """Result of matching a request path against a path template."""

    is_match: bool
    params: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResolvedMock:
    """A mock selected for a request, with the parameters captured from its path."""

    mock: Mock
    path_params: Dict[str, str] = field(default_factory=dict)


def has_placeholders(template: str) -> bool:
    """Check whether a path contains at least one {name} placeholder."""
    return PLACEHOLDER_RE.search(template) is not None


@lru_cache(maxsize=1024)
def compile_template(template: str) -> Tuple[Pattern[str], Tuple[str, ...]]:
    """
    Compile a path template into a regex and its placeholder names.

    Placeholders become single-segment capture groups; everything else is
    escaped so it only matches itself.

    Args:
        template: Stored mock path, e.g. /users/{id}/posts/{postId}

    Returns:
        (compiled pattern, placeholder names in declaration order)
    """
    names: List[str] = []
    parts: List[str] = []
    position = 0

    for placeholder in PLACEHOLDER_RE.finditer(template):
        parts.append(re.escape(template[position:placeholder.start()]))
        parts.append(SEGMENT_PATTERN)
        names.append(placeholder.group(1))
        position = placeholder.end()

    parts.append(re.escape(template[position:]))
    return re.compile(''.join(parts)), tuple(names)


def match_path(template: str, actual_path: str) -> PathMatch:
    """
    Match a request path against a path template.

    The whole path must be consumed, so a differing segment count never
    matches.

    Args:
        template: Stored mock path, e.g. /users/{id}
        actual_path: Incoming request path, e.g. /users/123

    Returns:
        PathMatch with captured parameters, or a negative result with no parameters

    Example:
        >>> match_path('/users/{id}', '/users/123')
        PathMatch(is_match=True, params={'id': '123'})
    """
    pattern, names = compile_template(template)
    found = pattern.fullmatch(actual_path)
    if not found:
        return PathMatch(is_match=False)

    params = {}
    for index, name in enumerate(names):
        params[name] = found.group(index + 1)
    return PathMatch(is_match=True, params=params)


class MockResolver:
    """
    Resolve (project, path, method) to a single mock definition.

    Resolution runs in two phases:
    1. Exact match on the stored path string and method.
    2. Template match among active mocks with placeholders, longest path first.

    Example:
        resolver = MockResolver(store)
        resolved = await resolver.resolve(project.id, '/users/42', 'GET')
        if resolved:
            print(resolved.mock.path, resolved.path_params)
    """

    def __init__(self, store):
        """
        Initialize resolver.

        Args:
            store: MockStore used for mock lookups
        """
        self.store = store

    async def resolve(
        self,
        project_id: str,
        request_path: str,
        method: str
    ) -> Optional[ResolvedMock]:
        """
        Find the best matching active mock.

        Args:
            project_id: Project owning the mocks
            request_path: Logical mock path (project slug already stripped)
            method: HTTP method

        Returns:
            ResolvedMock, or None when nothing matches
        """
        method_upper = method.upper()

        exact = await self.store.find_exact_mock(project_id, request_path, method_upper)
        if exact is not None:
            return ResolvedMock(mock=exact)

        candidates = [
            mock for mock in await self.store.list_active_mocks(project_id, method_upper)
            if has_placeholders(mock.path)
        ]
        # Stable sort keeps store order for templates of equal length
        candidates.sort(key=lambda mock: len(mock.path), reverse=True)

        for mock in candidates:
            result = match_path(mock.path, request_path)
            if result.is_match:
                return ResolvedMock(mock=mock, path_params=result.params)

        logger.debug(f"No mock for {method_upper} {request_path} in project {project_id}")
        return None
