"""
MockBird Execution Module

Executes user-defined mocks against live HTTP requests.

This module provides:
- FastAPI-based execution server
- Path template matching and mock resolution
- Conditional, weighted response selection
- Data stores (in-memory and SQLite) and request logging
"""

from .server import (
    MockExecutionServer,
    ExecutionConfig,
    ExecutionMetrics,
    build_store,
    create_execution_server
)
from .matcher import MockResolver, PathMatch, ResolvedMock, match_path
from .conditions import evaluate_condition, response_matches_conditions
from .selector import ResponseSelector, select_response
from .models import Condition, IncomingRequest, Mock, MockResponse, Project, RequestLog
from .store import MockStore, InMemoryStore, SQLiteStore
from .request_log import RequestLogger
from .ratelimit import FixedWindowRateLimiter

__all__ = [
    # Server
    'MockExecutionServer',
    'ExecutionConfig',
    'ExecutionMetrics',
    'build_store',
    'create_execution_server',

    # Matching
    'MockResolver',
    'PathMatch',
    'ResolvedMock',
    'match_path',
    'evaluate_condition',
    'response_matches_conditions',

    # Selection
    'ResponseSelector',
    'select_response',

    # Records
    'Condition',
    'IncomingRequest',
    'Mock',
    'MockResponse',
    'Project',
    'RequestLog',

    # Storage and logging
    'MockStore',
    'InMemoryStore',
    'SQLiteStore',
    'RequestLogger',
    'FixedWindowRateLimiter',
]

__version__ = '1.0.0'
