"""
MockBird Condition Evaluator

Evaluates declarative response conditions against an incoming request.
Evaluation never raises: unknown types or operators, missing values and
malformed regular expressions all evaluate to False.
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

from .models import Condition, IncomingRequest, MockResponse

_MISSING = object()


def _stringify(value: Any) -> str:
    """String form used for comparisons (JSON spelling for booleans and containers)."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(',', ':'))
    return str(value)


def _resolve_actual(
    condition: Condition,
    request: IncomingRequest,
    path_params: Dict[str, str]
) -> Any:
    """Look up the request value a condition inspects."""
    if condition.type == 'header':
        return request.headers.get(condition.field.lower(), _MISSING)
    if condition.type == 'query':
        return request.query.get(condition.field, _MISSING)
    if condition.type == 'body':
        if isinstance(request.body, dict):
            return request.body.get(condition.field, _MISSING)
        return _MISSING
    if condition.type == 'path':
        return path_params.get(condition.field, _MISSING)
    return _MISSING


def evaluate_condition(
    condition: Condition,
    request: IncomingRequest,
    path_params: Optional[Dict[str, str]] = None
) -> bool:
    """
    Evaluate a single condition.

    Args:
        condition: Condition to evaluate
        request: Incoming request
        path_params: Parameters captured by the path matcher

    Returns:
        True if the condition holds for this request
    """
    actual = _resolve_actual(condition, request, path_params or {})
    if actual is _MISSING or actual is None:
        return False

    actual_str = _stringify(actual)

    if condition.operator == 'equals':
        return actual_str == condition.value
    if condition.operator == 'contains':
        return condition.value in actual_str
    if condition.operator == 'regex':
        try:
            return re.search(condition.value, actual_str) is not None
        except re.error:
            return False
    return False


def response_matches_conditions(
    response: MockResponse,
    request: IncomingRequest,
    path_params: Optional[Dict[str, str]] = None
) -> Tuple[bool, bool]:
    """
    Check whether all of a response's conditions hold.

    A response without conditions always qualifies.

    Returns:
        (matches, has_conditions)
    """
    if not response.conditions:
        return True, False

    matches = all(
        evaluate_condition(condition, request, path_params)
        for condition in response.conditions
    )
    return matches, True
