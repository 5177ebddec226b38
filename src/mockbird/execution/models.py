"""
MockBird Execution Models

Typed records consumed by the execution engine. Stored JSON columns
(response headers and conditions) are parsed once here, at the boundary,
so the matcher and selector only ever see plain Python values.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from urllib.parse import parse_qsl

from ..common import safe_json_parse

ALLOWED_METHODS = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH')

CONTENT_TYPES = {
    'json': 'application/json',
    'xml': 'application/xml',
    'text': 'text/plain',
    'html': 'text/html',
}
DEFAULT_CONTENT_TYPE = 'application/json'


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='microseconds')


def normalize_path(path: str) -> str:
    """Ensure a mock path starts with '/'."""
    path = path or ''
    return path if path.startswith('/') else f'/{path}'


def _as_bool(value: Any) -> bool:
    # SQLite stores booleans as 0/1
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


@dataclass
class Project:
    """A mock project, publicly addressed by its slug."""

    id: str
    slug: str
    name: str = ''
    user_id: Optional[str] = None
    organization_id: Optional[str] = None

    def __post_init__(self):
        if bool(self.user_id) == bool(self.organization_id):
            raise ValueError(
                f"Project '{self.slug}' must be owned by exactly one user or one organization"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Project':
        """Create Project from a fixture entry or a database row."""
        return cls(
            id=data.get('id') or data.get('project_id') or new_id(),
            slug=data['slug'],
            name=data.get('name') or data['slug'],
            user_id=data.get('user_id'),
            organization_id=data.get('organization_id'),
        )


@dataclass
class Mock:
    """A virtual endpoint (path template + method) within a project."""

    id: str
    project_id: str
    path: str
    method: str = 'GET'
    name: str = ''
    is_active: bool = True
    response_type: str = 'json'
    response_delay_ms: int = 0

    def __post_init__(self):
        self.path = normalize_path(self.path)
        self.method = (self.method or 'GET').upper()
        if self.method not in ALLOWED_METHODS:
            raise ValueError(
                f"Unsupported method '{self.method}' (expected one of {', '.join(ALLOWED_METHODS)})"
            )
        self.response_delay_ms = int(self.response_delay_ms or 0)
        if self.response_delay_ms < 0:
            raise ValueError(f"response_delay_ms must be non-negative, got {self.response_delay_ms}")
        self.is_active = _as_bool(self.is_active)

    @property
    def content_type(self) -> str:
        """Content-Type derived from the response type hint."""
        return CONTENT_TYPES.get(self.response_type, DEFAULT_CONTENT_TYPE)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_id: Optional[str] = None) -> 'Mock':
        """Create Mock from a fixture entry or a database row."""
        return cls(
            id=data.get('id') or data.get('mock_id') or new_id(),
            project_id=project_id or data['project_id'],
            path=data['path'],
            method=data.get('method', 'GET'),
            name=data.get('name') or f"Mock {data['path']}",
            is_active=data.get('is_active', True),
            response_type=data.get('response_type') or 'json',
            response_delay_ms=data.get('response_delay_ms') or 0,
        )


@dataclass
class Condition:
    """A declarative rule gating whether a response is eligible for a request."""

    type: str
    field: str
    operator: str
    value: str

    @classmethod
    def from_dict(cls, data: Any) -> 'Condition':
        """
        Create a Condition from a decoded JSON value.

        Entries that are not objects become a condition with no type,
        which never evaluates true.
        """
        if not isinstance(data, dict):
            return cls(type='', field='', operator='', value='')
        value = data.get('value')
        return cls(
            type=str(data.get('type') or ''),
            field=str(data.get('field') or ''),
            operator=str(data.get('operator') or ''),
            value='' if value is None else str(value),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            'type': self.type,
            'field': self.field,
            'operator': self.operator,
            'value': self.value,
        }


def parse_conditions(raw: Any) -> List[Condition]:
    """Parse stored conditions; invalid JSON or non-list values mean no conditions."""
    decoded = safe_json_parse(raw, default=[])
    if not isinstance(decoded, list):
        return []
    return [Condition.from_dict(item) for item in decoded]


def parse_headers(raw: Any) -> Dict[str, Any]:
    """Parse stored headers; anything but a JSON object means no headers."""
    decoded = safe_json_parse(raw, default={})
    if not isinstance(decoded, dict):
        return {}
    return decoded


@dataclass
class MockResponse:
    """One candidate reply configured for a mock."""

    id: str
    mock_id: str
    status_code: int = 200
    headers: Dict[str, Any] = field(default_factory=dict)
    body: str = ''
    is_default: bool = False
    weight: Optional[int] = 100
    conditions: List[Condition] = field(default_factory=list)
    name: str = ''
    created_at: str = field(default_factory=utc_now)

    def __post_init__(self):
        if self.weight is not None and self.weight < 0:
            raise ValueError(f"weight must be non-negative, got {self.weight}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], mock_id: Optional[str] = None) -> 'MockResponse':
        """Create MockResponse from a fixture entry or a database row."""
        body = data.get('body')
        if body is None:
            body = ''
        elif not isinstance(body, str):
            body = json.dumps(body)

        weight = data.get('weight', 100)
        return cls(
            id=data.get('id') or data.get('response_id') or new_id(),
            mock_id=mock_id or data['mock_id'],
            status_code=int(data.get('status_code') or 200),
            headers=parse_headers(data.get('headers')),
            body=body,
            is_default=_as_bool(data.get('is_default', False)),
            weight=None if weight is None else int(weight),
            conditions=parse_conditions(data.get('conditions')),
            name=data.get('name') or '',
            created_at=data.get('created_at') or utc_now(),
        )


@dataclass
class IncomingRequest:
    """
    The parts of an inbound HTTP request the engine inspects.

    Header names are stored lower-cased; `body` holds the parsed body
    (a dict for JSON objects and form posts, otherwise a list, scalar or
    raw text), `raw_body` the undecoded text.
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: str = ''
    client_ip: str = ''

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @property
    def user_agent(self) -> str:
        return self.headers.get('user-agent', '')

    @staticmethod
    def parse_body(raw_body: str, content_type: str) -> Any:
        """Decode a request body the way the public endpoint accepts them."""
        if not raw_body:
            return None
        content_type = (content_type or '').lower()
        if 'json' in content_type:
            try:
                return json.loads(raw_body)
            except ValueError:
                return raw_body
        if 'application/x-www-form-urlencoded' in content_type:
            return dict(parse_qsl(raw_body, keep_blank_values=True))
        return raw_body

    def serialized_body(self) -> str:
        """Body as stored in a request log."""
        if isinstance(self.body, (dict, list)):
            return json.dumps(self.body)
        return self.raw_body or ''


@dataclass
class RequestLog:
    """Append-only record of one execution attempt."""

    project_id: Optional[str]
    mock_id: Optional[str]
    request_path: str
    request_method: str
    request_headers: str
    request_body: str
    request_query: str
    response_status: int
    response_time_ms: int
    ip_address: str = ''
    user_agent: str = ''
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now)

    @classmethod
    def from_request(
        cls,
        request: IncomingRequest,
        project_id: Optional[str],
        mock_id: Optional[str],
        response_status: int,
        response_time_ms: int
    ) -> 'RequestLog':
        """Capture an incoming request and its outcome."""
        return cls(
            project_id=project_id,
            mock_id=mock_id,
            request_path=request.path,
            request_method=request.method,
            request_headers=json.dumps(request.headers),
            request_body=request.serialized_body(),
            request_query=json.dumps(request.query),
            response_status=response_status,
            response_time_ms=response_time_ms,
            ip_address=request.client_ip,
            user_agent=request.user_agent,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'project_id': self.project_id,
            'mock_id': self.mock_id,
            'request_path': self.request_path,
            'request_method': self.request_method,
            'request_headers': self.request_headers,
            'request_body': self.request_body,
            'request_query': self.request_query,
            'response_status': self.response_status,
            'response_time_ms': self.response_time_ms,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RequestLog':
        return cls(
            id=data.get('id') or data.get('log_id') or new_id(),
            project_id=data.get('project_id'),
            mock_id=data.get('mock_id'),
            request_path=data.get('request_path') or '',
            request_method=data.get('request_method') or '',
            request_headers=data.get('request_headers') or '{}',
            request_body=data.get('request_body') or '',
            request_query=data.get('request_query') or '{}',
            response_status=int(data.get('response_status') or 0),
            response_time_ms=int(data.get('response_time_ms') or 0),
            ip_address=data.get('ip_address') or '',
            user_agent=data.get('user_agent') or '',
            created_at=data.get('created_at') or utc_now(),
        )
