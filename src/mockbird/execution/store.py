"""
MockBird Data Stores

Read access to projects, mocks and responses, plus the append-only request
log. The execution engine only depends on the MockStore interface; two
implementations are provided:

- InMemoryStore: dict-backed, seeded from fixture files or in tests
- SQLiteStore: sqlite3 database with the MockBird schema
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

from ..common import FixtureError, FixtureLoader, to_json_text
from .models import Mock, MockResponse, Project, RequestLog

logger = logging.getLogger("mockbird.store")


class MockStore(ABC):
    """Collaborator contract consumed by the execution engine."""

    @abstractmethod
    async def get_project_by_slug(self, slug: str) -> Optional[Project]:
        """Return the project with this slug, or None."""

    @abstractmethod
    async def find_exact_mock(self, project_id: str, path: str, method: str) -> Optional[Mock]:
        """Return the active mock with exactly this path and method, or None."""

    @abstractmethod
    async def list_active_mocks(self, project_id: str, method: str) -> List[Mock]:
        """Return all active mocks of a project for a method."""

    @abstractmethod
    async def list_responses(self, mock_id: str) -> List[MockResponse]:
        """Return a mock's responses, defaults first, then oldest first."""

    @abstractmethod
    async def write_request_log(self, entry: RequestLog) -> None:
        """Append a request log entry."""

    @abstractmethod
    async def list_request_logs(self, project_id: str, limit: int = 50) -> List[RequestLog]:
        """Return a project's most recent request logs, newest first."""

    def load_fixtures(self, fixtures: Union[str, Path, List[Dict[str, Any]]]) -> int:
        """
        Load projects, mocks and responses from a fixture file or decoded list.

        Args:
            fixtures: Path to a YAML/JSON fixture file, or already loaded projects

        Returns:
            Number of projects loaded

        Raises:
            FixtureError: If a record is invalid
        """
        if isinstance(fixtures, (str, Path)):
            projects = FixtureLoader(str(fixtures)).load()
        else:
            projects = fixtures

        for project_data in projects:
            try:
                project = self.add_project(Project.from_dict(project_data))
                for mock_data in project_data.get('mocks') or []:
                    mock = self.add_mock(Mock.from_dict(mock_data, project_id=project.id))
                    for response_data in mock_data.get('responses') or []:
                        self.add_response(MockResponse.from_dict(response_data, mock_id=mock.id))
            except (KeyError, TypeError, ValueError) as e:
                raise FixtureError(
                    f"Invalid fixture for project '{project_data.get('slug')}': {e}"
                ) from e

        logger.info(f"Loaded {len(projects)} projects from fixtures")
        return len(projects)

    @abstractmethod
    def add_project(self, project: Project) -> Project:
        """Insert a project."""

    @abstractmethod
    def add_mock(self, mock: Mock) -> Mock:
        """Insert a mock."""

    @abstractmethod
    def add_response(self, response: MockResponse) -> MockResponse:
        """Insert a response; a new default unsets every sibling default."""


def _response_order(response: MockResponse, position: int):
    return (not response.is_default, response.created_at, position)


class InMemoryStore(MockStore):
    """
    Dict-backed store.

    Example:
        store = InMemoryStore()
        store.load_fixtures('mocks.yaml')
    """

    def __init__(self):
        self.projects: Dict[str, Project] = {}
        self.mocks: Dict[str, Mock] = {}
        self.responses: Dict[str, List[MockResponse]] = {}
        self.request_logs: List[RequestLog] = []

    def add_project(self, project: Project) -> Project:
        for existing in self.projects.values():
            if existing.slug == project.slug and existing.id != project.id:
                raise ValueError(f"Project slug '{project.slug}' is already taken")
        self.projects[project.id] = project
        return project

    def add_mock(self, mock: Mock) -> Mock:
        if mock.project_id not in self.projects:
            raise ValueError(f"Unknown project '{mock.project_id}'")
        self.mocks[mock.id] = mock
        self.responses.setdefault(mock.id, [])
        return mock

    def add_response(self, response: MockResponse) -> MockResponse:
        if response.mock_id not in self.mocks:
            raise ValueError(f"Unknown mock '{response.mock_id}'")
        siblings = self.responses.setdefault(response.mock_id, [])
        if response.is_default:
            for sibling in siblings:
                sibling.is_default = False
        siblings.append(response)
        return response

    async def get_project_by_slug(self, slug: str) -> Optional[Project]:
        for project in self.projects.values():
            if project.slug == slug:
                return project
        return None

    async def find_exact_mock(self, project_id: str, path: str, method: str) -> Optional[Mock]:
        for mock in self.mocks.values():
            if (mock.project_id == project_id and mock.is_active
                    and mock.path == path and mock.method == method):
                return mock
        return None

    async def list_active_mocks(self, project_id: str, method: str) -> List[Mock]:
        return [
            mock for mock in self.mocks.values()
            if mock.project_id == project_id and mock.is_active and mock.method == method
        ]

    async def list_responses(self, mock_id: str) -> List[MockResponse]:
        responses = self.responses.get(mock_id, [])
        ordered = sorted(
            enumerate(responses),
            key=lambda item: _response_order(item[1], item[0])
        )
        return [response for _, response in ordered]

    async def write_request_log(self, entry: RequestLog) -> None:
        self.request_logs.append(entry)

    async def list_request_logs(self, project_id: str, limit: int = 50) -> List[RequestLog]:
        entries = [entry for entry in self.request_logs if entry.project_id == project_id]
        return list(reversed(entries))[:limit]


SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    project_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT UNIQUE NOT NULL,
    user_id TEXT,
    organization_id TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    CHECK ((user_id IS NULL) <> (organization_id IS NULL))
);

CREATE TABLE IF NOT EXISTS mocks (
    mock_id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    name TEXT NOT NULL,
    path TEXT NOT NULL,
    method TEXT DEFAULT 'GET',
    is_active INTEGER DEFAULT 1,
    response_type TEXT DEFAULT 'json',
    response_delay_ms INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_mocks_lookup ON mocks (project_id, method, is_active);

CREATE TABLE IF NOT EXISTS mock_responses (
    response_id TEXT PRIMARY KEY,
    mock_id TEXT NOT NULL,
    name TEXT,
    status_code INTEGER DEFAULT 200,
    headers TEXT DEFAULT '{}',
    body TEXT DEFAULT '',
    is_default INTEGER DEFAULT 0,
    weight INTEGER DEFAULT 100,
    conditions TEXT DEFAULT '[]',
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (mock_id) REFERENCES mocks(mock_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS request_logs (
    log_id TEXT PRIMARY KEY,
    mock_id TEXT,
    project_id TEXT,
    request_path TEXT,
    request_method TEXT,
    request_headers TEXT,
    request_body TEXT,
    request_query TEXT,
    response_status INTEGER,
    response_time_ms INTEGER,
    ip_address TEXT,
    user_agent TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (mock_id) REFERENCES mocks(mock_id) ON DELETE SET NULL,
    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE SET NULL
);
"""


class SQLiteStore(MockStore):
    """
    SQLite-backed store.

    Each operation opens its own connection; blocking calls run in a worker
    thread so the event loop keeps serving other requests.

    Example:
        store = SQLiteStore('mockbird.db')
        store.initialize()
        project = await store.get_project_by_slug('acme')
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Initialize store.

        Args:
            db_path: Path to the SQLite database file (created if missing)
        """
        self.db_path = Path(db_path)

    def connect(self) -> sqlite3.Connection:
        """Open a connection with row access by column name and foreign keys enforced."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create tables if they do not exist yet."""
        conn = self.connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Initialized database schema in {self.db_path}")

    def _fetch_all(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        conn = self.connect()
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def _execute(self, statements: List[tuple]) -> None:
        conn = self.connect()
        try:
            for sql, params in statements:
                conn.execute(sql, params)
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValueError(f"Integrity error: {e}") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> Project:
        self._execute([(
            "INSERT INTO projects (project_id, name, slug, user_id, organization_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (project.id, project.name, project.slug, project.user_id, project.organization_id),
        )])
        return project

    def add_mock(self, mock: Mock) -> Mock:
        self._execute([(
            "INSERT INTO mocks (mock_id, project_id, name, path, method, is_active, "
            "response_type, response_delay_ms) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (mock.id, mock.project_id, mock.name, mock.path, mock.method,
             int(mock.is_active), mock.response_type, mock.response_delay_ms),
        )])
        return mock

    def add_response(self, response: MockResponse) -> MockResponse:
        statements = []
        if response.is_default:
            statements.append((
                "UPDATE mock_responses SET is_default = 0 WHERE mock_id = ?",
                (response.mock_id,),
            ))
        statements.append((
            "INSERT INTO mock_responses (response_id, mock_id, name, status_code, headers, "
            "body, is_default, weight, conditions, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (response.id, response.mock_id, response.name, response.status_code,
             to_json_text(response.headers, '{}'), response.body, int(response.is_default),
             response.weight, to_json_text([c.to_dict() for c in response.conditions], '[]'),
             response.created_at),
        ))
        self._execute(statements)
        return response

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_project_by_slug(self, slug: str) -> Optional[Project]:
        rows = await asyncio.to_thread(
            self._fetch_all, "SELECT * FROM projects WHERE slug = ?", (slug,)
        )
        return Project.from_dict(dict(rows[0])) if rows else None

    async def find_exact_mock(self, project_id: str, path: str, method: str) -> Optional[Mock]:
        rows = await asyncio.to_thread(
            self._fetch_all,
            "SELECT * FROM mocks WHERE project_id = ? AND path = ? AND method = ? AND is_active = 1",
            (project_id, path, method),
        )
        return Mock.from_dict(dict(rows[0])) if rows else None

    async def list_active_mocks(self, project_id: str, method: str) -> List[Mock]:
        rows = await asyncio.to_thread(
            self._fetch_all,
            "SELECT * FROM mocks WHERE project_id = ? AND method = ? AND is_active = 1 "
            "ORDER BY LENGTH(path) DESC",
            (project_id, method),
        )
        return [Mock.from_dict(dict(row)) for row in rows]

    async def list_responses(self, mock_id: str) -> List[MockResponse]:
        rows = await asyncio.to_thread(
            self._fetch_all,
            "SELECT * FROM mock_responses WHERE mock_id = ? "
            "ORDER BY is_default DESC, created_at ASC, rowid ASC",
            (mock_id,),
        )
        return [MockResponse.from_dict(dict(row)) for row in rows]

    async def write_request_log(self, entry: RequestLog) -> None:
        await asyncio.to_thread(self._execute, [(
            "INSERT INTO request_logs (log_id, mock_id, project_id, request_path, request_method, "
            "request_headers, request_body, request_query, response_status, response_time_ms, "
            "ip_address, user_agent, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (entry.id, entry.mock_id, entry.project_id, entry.request_path, entry.request_method,
             entry.request_headers, entry.request_body, entry.request_query,
             entry.response_status, entry.response_time_ms, entry.ip_address,
             entry.user_agent, entry.created_at),
        )])

    async def list_request_logs(self, project_id: str, limit: int = 50) -> List[RequestLog]:
        rows = await asyncio.to_thread(
            self._fetch_all,
            "SELECT * FROM request_logs WHERE project_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (project_id, limit),
        )
        return [RequestLog.from_dict(dict(row)) for row in rows]
