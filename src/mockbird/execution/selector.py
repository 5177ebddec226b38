"""
MockBird Response Selector

Picks which configured response answers a request.

Priority:
1. Responses whose conditions all hold
2. Responses without conditions
3. Every response, when neither pool has members

Within the winning pool the choice is a weighted random draw; when every
weight is zero the default response (or the first one) is returned.
"""

import random
from typing import Callable, Dict, List, Optional

from .conditions import response_matches_conditions
from .models import IncomingRequest, MockResponse


class ResponseSelector:
    """
    Select a response for a request.

    The randomness source is injectable so selection is reproducible:

    Example:
        selector = ResponseSelector(rng=random.Random(42).random)
        chosen = selector.select(responses, request, path_params)
    """

    def __init__(self, rng: Optional[Callable[[], float]] = None):
        """
        Initialize selector.

        Args:
            rng: Function returning a float in [0, 1). Defaults to random.random
        """
        self.rng = rng or random.random

    def select(
        self,
        responses: List[MockResponse],
        request: IncomingRequest,
        path_params: Optional[Dict[str, str]] = None
    ) -> Optional[MockResponse]:
        """
        Pick the response to return.

        Args:
            responses: All responses for the mock, in listing order
            request: Incoming request
            path_params: Parameters captured by the path matcher

        Returns:
            Selected response, or None if there are no responses
        """
        if not responses:
            return None
        if len(responses) == 1:
            return responses[0]

        conditional_matches = []
        unconditioned = []

        for response in responses:
            matches, has_conditions = response_matches_conditions(response, request, path_params)
            if has_conditions and matches:
                conditional_matches.append(response)
            elif not has_conditions:
                unconditioned.append(response)

        pool = conditional_matches or unconditioned or responses
        if len(pool) == 1:
            return pool[0]

        return self._weighted_pick(pool)

    def _weighted_pick(self, pool: List[MockResponse]) -> MockResponse:
        """Weighted random draw, falling back to the default when all weights are zero."""
        total_weight = sum(response.weight or 0 for response in pool)

        if total_weight == 0:
            for response in pool:
                if response.is_default:
                    return response
            return pool[0]

        roll = self.rng() * total_weight
        for response in pool:
            roll -= response.weight or 0
            if roll <= 0:
                return response

        return pool[-1]


def select_response(
    responses: List[MockResponse],
    request: IncomingRequest,
    path_params: Optional[Dict[str, str]] = None,
    rng: Optional[Callable[[], float]] = None
) -> Optional[MockResponse]:
    """Convenience wrapper around ResponseSelector.select."""
    return ResponseSelector(rng=rng).select(responses, request, path_params)
