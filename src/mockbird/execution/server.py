"""
MockBird Execution Server

FastAPI application that executes user-defined mocks against live requests
under {mount_prefix}/{project_slug}/{path}.

Features:
- Exact and templated path matching
- Conditional responses with weighted random selection
- Simulated latency per mock
- Fire-and-forget request logging
- Per-client rate limiting
- Admin API for metrics and recent request logs
"""

from __future__ import annotations  # Enable forward references for type hints

import time
import random
import asyncio
import logging
import os
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Any, Optional, Callable

import yaml
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from ..common import filter_hop_by_hop_headers
from .matcher import MockResolver
from .models import IncomingRequest, Mock, MockResponse
from .ratelimit import FixedWindowRateLimiter
from .request_log import RequestLogger
from .selector import ResponseSelector
from .store import MockStore, InMemoryStore, SQLiteStore

logger = logging.getLogger("mockbird.execution")

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,DELETE,PATCH,OPTIONS',
    'Access-Control-Allow-Headers': '*',
}

ROUTE_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Statuses sent without a body
NO_CONTENT_STATUSES = {204, 304}

PROJECT_NOT_FOUND = 'PROJECT_NOT_FOUND'
MOCK_NOT_FOUND = 'MOCK_NOT_FOUND'
NO_RESPONSE_DEFINED = 'NO_RESPONSE_DEFINED'
INTERNAL_ERROR = 'INTERNAL_ERROR'
INVALID_REQUEST = 'INVALID_REQUEST'
RATE_LIMIT_EXCEEDED = 'RATE_LIMIT_EXCEEDED'

ENV_OVERRIDES = {
    'MOCKBIRD_HOST': ('host', str),
    'MOCKBIRD_PORT': ('port', int),
    'MOCKBIRD_DATABASE': ('database', str),
    'MOCKBIRD_LOG_LEVEL': ('log_level', str),
}


@dataclass
class ExecutionConfig:
    """Configuration for the execution server."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "info"
    mount_prefix: str = "/m"

    # Data sources
    database: Optional[str] = None  # SQLite database path
    fixtures: Optional[str] = None  # YAML/JSON fixture file

    # Weighted selection
    random_seed: Optional[int] = None  # Fixed seed for reproducible draws

    # Rate limiting (per client address and project)
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutionConfig':
        """Create config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ExecutionConfig':
        """Load config from YAML file."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {yaml_path} must contain a mapping")

        return cls.from_dict(data)

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> 'ExecutionConfig':
        """Overlay MOCKBIRD_* environment variables."""
        environ = os.environ if environ is None else environ
        for var, (attr, cast) in ENV_OVERRIDES.items():
            if environ.get(var):
                setattr(self, attr, cast(environ[var]))
        return self


@dataclass
class ExecutionMetrics:
    """Track execution outcomes."""

    total_requests: int = 0
    served_requests: int = 0
    preflight_requests: int = 0
    rate_limited_requests: int = 0
    errors: Dict[str, int] = field(default_factory=dict)
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def record_error(self, code: str) -> None:
        self.errors[code] = self.errors.get(code, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'served_requests': self.served_requests,
            'preflight_requests': self.preflight_requests,
            'rate_limited_requests': self.rate_limited_requests,
            'errors': dict(self.errors),
            'serve_rate': round((self.served_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


def build_response_headers(response: MockResponse, mock: Mock) -> Dict[str, str]:
    """
    Headers for a selected response.

    Stored headers are used as-is; a Content-Type derived from the mock's
    response type is added when none is stored.
    """
    headers = dict(response.headers)
    if not any(str(name).lower() == 'content-type' for name in headers):
        headers['Content-Type'] = mock.content_type
    return filter_hop_by_hop_headers(headers)


def error_response(
    status_code: int,
    code: str,
    message: str,
    background: Optional[BackgroundTask] = None,
    **extra: Any
) -> JSONResponse:
    """JSON error body with CORS headers."""
    return JSONResponse(
        content={'error': code, 'message': message, **extra},
        status_code=status_code,
        headers=dict(CORS_HEADERS),
        background=background
    )


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


class MockExecutionServer:
    """
    FastAPI-based server executing mock definitions from a MockStore.

    Example:
        store = InMemoryStore()
        store.load_fixtures('mocks.yaml')
        server = MockExecutionServer(store)
        server.start(port=3001)

        # GET http://127.0.0.1:3001/m/acme/users/42
    """

    def __init__(
        self,
        store: MockStore,
        config: Optional[ExecutionConfig] = None,
        rng: Optional[Callable[[], float]] = None
    ):
        """
        Initialize execution server.

        Args:
            store: Data store with projects, mocks and responses
            config: Optional ExecutionConfig for server behavior
            rng: Optional randomness source for weighted selection (float in [0, 1))
        """
        self.store = store
        self.config = config or ExecutionConfig()
        self.metrics = ExecutionMetrics()

        self.logger = logger
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        if rng is None and self.config.random_seed is not None:
            rng = random.Random(self.config.random_seed).random

        self.resolver = MockResolver(store)
        self.selector = ResponseSelector(rng=rng)
        self.request_logger = RequestLogger(store)
        self.rate_limiter = FixedWindowRateLimiter(
            max_requests=self.config.rate_limit_max_requests,
            window_seconds=self.config.rate_limit_window_seconds
        )

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="MockBird API",
            description="Executes user-defined mock endpoints",
            version="1.0.0"
        )
        prefix = '/' + self.config.mount_prefix.strip('/')

        @app.get("/")
        async def health():
            """Health check."""
            return JSONResponse(content={'status': 'ok', 'app': 'MockBird API'})

        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics():
                """Get execution metrics."""
                return JSONResponse(content=self.metrics.to_dict())

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics():
                """Reset metrics."""
                self.metrics = ExecutionMetrics()
                return JSONResponse(content={'status': 'reset'})

            @app.get(f"{self.config.admin_prefix}/logs")
            async def get_request_logs(project: str, limit: int = 50):
                """Get the most recent request logs of a project."""
                found = await self.store.get_project_by_slug(project)
                if found is None:
                    return JSONResponse(
                        content={'error': PROJECT_NOT_FOUND, 'message': f'No project found with slug "{project}"'},
                        status_code=404
                    )
                entries = await self.store.list_request_logs(found.id, limit=max(1, min(limit, 500)))
                return JSONResponse(content={
                    'total': len(entries),
                    'logs': [entry.to_dict() for entry in entries]
                })

        @app.api_route(f"{prefix}/{{project_slug}}/{{path:path}}", methods=ROUTE_METHODS)
        async def execute_mock(request: Request, project_slug: str, path: str):
            """Execute the mock matching this request."""
            return await self._handle_request(request, project_slug, path)

        @app.api_route(f"{prefix}/{{project_slug}}", methods=ROUTE_METHODS)
        async def missing_path(project_slug: str):
            """Reject requests without a path after the project slug."""
            return error_response(
                400,
                INVALID_REQUEST,
                f'Please include a path after the project slug, e.g., {prefix}/{project_slug}/api/users'
            )

        return app

    async def _handle_request(self, request: Request, project_slug: str, path: str) -> Response:
        """
        Handle an incoming request against a project's mocks.

        Args:
            request: FastAPI Request object
            project_slug: Project slug from the URL
            path: Remainder of the URL path after the slug

        Returns:
            Response configured on the selected mock response, or a JSON error
        """
        start_time = time.perf_counter()
        self.metrics.total_requests += 1

        method = request.method.upper()
        mock_path = '/' + path

        if method == 'OPTIONS':
            self.metrics.preflight_requests += 1
            return Response(status_code=204, headers=dict(CORS_HEADERS))

        if self.config.rate_limit_enabled:
            client_ip = request.client.host if request.client else 'unknown'
            decision = self.rate_limiter.check(f"{client_ip}:{project_slug}")
            if not decision.allowed:
                self.metrics.rate_limited_requests += 1
                retry_after_ms = int(decision.retry_after_seconds * 1000)
                response = error_response(
                    429,
                    RATE_LIMIT_EXCEEDED,
                    'Too many requests to this mock endpoint. Please try again later.',
                    retryAfterMs=retry_after_ms
                )
                response.headers['Retry-After'] = str(max(1, int(decision.retry_after_seconds)))
                return response

        try:
            return await self._execute(request, project_slug, mock_path, method, start_time)
        except Exception:
            self.metrics.record_error(INTERNAL_ERROR)
            self.logger.exception(f"Mock execution error for {method} /{project_slug}{mock_path}")
            return error_response(
                500,
                INTERNAL_ERROR,
                'An error occurred while processing the mock request'
            )

    async def _execute(
        self,
        request: Request,
        project_slug: str,
        mock_path: str,
        method: str,
        start_time: float
    ) -> Response:
        """Resolve project, mock and response, then emit it."""
        incoming = await self._extract_request(request, mock_path)

        project = await self.store.get_project_by_slug(project_slug)
        if project is None:
            self.metrics.record_error(PROJECT_NOT_FOUND)
            self.logger.debug(f"Unknown project slug: {project_slug}")
            return error_response(
                404,
                PROJECT_NOT_FOUND,
                f'No project found with slug "{project_slug}"'
            )

        resolved = await self.resolver.resolve(project.id, mock_path, method)
        if resolved is None:
            self.metrics.record_error(MOCK_NOT_FOUND)
            log_task = self.request_logger.schedule(
                incoming,
                project_id=project.id,
                mock_id=None,
                response_status=404,
                response_time_ms=_elapsed_ms(start_time)
            )
            return error_response(
                404,
                MOCK_NOT_FOUND,
                f'No mock found for {method} {mock_path}',
                background=log_task
            )

        mock = resolved.mock
        responses = await self.store.list_responses(mock.id)

        # Mocks without responses are a configuration error and are not logged
        selected = self.selector.select(responses, incoming, resolved.path_params)
        if selected is None:
            self.metrics.record_error(NO_RESPONSE_DEFINED)
            return error_response(
                404,
                NO_RESPONSE_DEFINED,
                'This mock has no responses configured'
            )

        if mock.response_delay_ms > 0:
            await asyncio.sleep(mock.response_delay_ms / 1000)

        stored_headers = build_response_headers(selected, mock)
        overridden = {name.lower() for name in stored_headers}
        headers = {k: v for k, v in CORS_HEADERS.items() if k.lower() not in overridden}
        headers.update(stored_headers)
        content = b'' if selected.status_code in NO_CONTENT_STATUSES else selected.body

        log_task = self.request_logger.schedule(
            incoming,
            project_id=project.id,
            mock_id=mock.id,
            response_status=selected.status_code,
            response_time_ms=_elapsed_ms(start_time)
        )
        self.metrics.served_requests += 1

        return Response(
            content=content,
            status_code=selected.status_code,
            headers=headers,
            background=log_task
        )

    async def _extract_request(self, request: Request, mock_path: str) -> IncomingRequest:
        """Capture the parts of the request used for matching and logging."""
        raw = await request.body()
        raw_body = raw.decode('utf-8', errors='replace') if raw else ''
        headers = dict(request.headers)

        return IncomingRequest(
            method=request.method,
            path=mock_path,
            headers=headers,
            query=dict(request.query_params),
            body=IncomingRequest.parse_body(raw_body, headers.get('content-type', '')),
            raw_body=raw_body,
            client_ip=request.client.host if request.client else ''
        )

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the execution server (blocking).

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        self.logger.info(
            f"MockBird execution server on http://{actual_host}:{actual_port}"
            f"{'/' + self.config.mount_prefix.strip('/')}/<project-slug>/<path>"
        )

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def build_store(config: ExecutionConfig) -> MockStore:
    """
    Create the store described by a config.

    A database takes precedence; fixtures are loaded into it (or into an
    in-memory store when no database is configured).
    """
    if config.database:
        store = SQLiteStore(config.database)
        store.initialize()
    else:
        store = InMemoryStore()

    if config.fixtures:
        store.load_fixtures(config.fixtures)

    return store


def create_execution_server(
    fixtures: Optional[str] = None,
    database: Optional[str] = None,
    host: str = "127.0.0.1",
    port: int = 3001,
    mount_prefix: str = "/m",
    random_seed: Optional[int] = None,
    rate_limit_enabled: bool = True,
    admin_enabled: bool = True,
    log_level: str = "info"
) -> MockExecutionServer:
    """
    Convenience function to create and configure an execution server.

    Args:
        fixtures: YAML/JSON fixture file with projects, mocks and responses
        database: SQLite database path
        host: Host to bind to
        port: Port to bind to
        mount_prefix: Public mount prefix for mock execution
        random_seed: Fixed seed for weighted response selection
        rate_limit_enabled: Enable per-client rate limiting
        admin_enabled: Enable admin API
        log_level: Log level

    Returns:
        Configured MockExecutionServer instance

    Example:
        server = create_execution_server(fixtures='mocks.yaml', port=3001)
        server.start()
    """
    config = ExecutionConfig(
        host=host,
        port=port,
        mount_prefix=mount_prefix,
        database=database,
        fixtures=fixtures,
        random_seed=random_seed,
        rate_limit_enabled=rate_limit_enabled,
        admin_enabled=admin_enabled,
        log_level=log_level
    )

    return MockExecutionServer(build_store(config), config=config)
