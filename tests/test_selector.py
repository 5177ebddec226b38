"""
Tests for MockBird Response Selector

Tests response selection including:
- Empty and single-response shortcuts
- Conditional responses preferred over unconditioned ones
- Fallback to all responses when no pool qualifies
- Weighted random draws with an injected randomness source
- Zero-weight fallback to the default response
"""

import random

import pytest

from mockbird.execution.models import Condition, IncomingRequest, MockResponse
from mockbird.execution.selector import ResponseSelector, select_response


@pytest.fixture
def admin_request():
    """Request carrying an admin role header."""
    return IncomingRequest(method='GET', path='/users/1', headers={'X-Role': 'admin'})


@pytest.fixture
def guest_request():
    """Request without a role header."""
    return IncomingRequest(method='GET', path='/users/1')


def make_response(response_id, weight=100, is_default=False, conditions=None):
    return MockResponse(
        id=response_id,
        mock_id='m1',
        body=response_id,
        weight=weight,
        is_default=is_default,
        conditions=conditions or []
    )


ADMIN_ONLY = [Condition(type='header', field='X-Role', operator='equals', value='admin')]
BETA_ONLY = [Condition(type='query', field='beta', operator='equals', value='1')]


def sequence(*values):
    """Deterministic randomness source returning the given values in order."""
    iterator = iter(values)
    return lambda: next(iterator)


class TestShortcuts:
    """Test trivial inputs."""

    def test_empty_returns_none(self, guest_request):
        """Test an empty response list selects nothing."""
        assert select_response([], guest_request) is None

    def test_single_response_returned(self, guest_request):
        """Test a single response is returned whatever its conditions."""
        only = make_response('only', weight=0, conditions=ADMIN_ONLY)

        assert select_response([only], guest_request) is only


class TestConditionalPools:
    """Test pool partitioning by condition outcome."""

    def test_conditional_match_always_preferred(self, admin_request):
        """Test a satisfied conditional response beats the default every time."""
        default = make_response('default', is_default=True)
        admin = make_response('admin', conditions=ADMIN_ONLY)
        selector = ResponseSelector(rng=random.Random(7).random)

        picks = {selector.select([default, admin], admin_request).id for _ in range(200)}

        assert picks == {'admin'}

    def test_unsatisfied_condition_excluded(self, guest_request):
        """Test responses with failing conditions are skipped."""
        default = make_response('default', is_default=True)
        admin = make_response('admin', conditions=ADMIN_ONLY)
        selector = ResponseSelector(rng=random.Random(7).random)

        picks = {selector.select([admin, default], guest_request).id for _ in range(200)}

        assert picks == {'default'}

    def test_fallback_to_all_responses(self, guest_request):
        """Test all responses are candidates when none qualifies."""
        admin = make_response('admin', weight=50, conditions=ADMIN_ONLY)
        beta = make_response('beta', weight=50, conditions=BETA_ONLY)

        assert select_response([admin, beta], guest_request, rng=lambda: 0.25).id == 'admin'
        assert select_response([admin, beta], guest_request, rng=lambda: 0.75).id == 'beta'

    def test_weighted_within_conditional_pool(self, admin_request):
        """Test weighted selection among several satisfied conditional responses."""
        first = make_response('first', weight=1, conditions=ADMIN_ONLY)
        second = make_response('second', weight=3, conditions=ADMIN_ONLY)
        plain = make_response('plain', weight=1000)

        assert select_response([first, second, plain], admin_request, rng=lambda: 0.1).id == 'first'
        assert select_response([first, second, plain], admin_request, rng=lambda: 0.9).id == 'second'


class TestWeightedDraw:
    """Test weighted random selection."""

    def test_weights_partition_the_range(self, guest_request):
        """Test each response owns an interval proportional to its weight."""
        a = make_response('a', weight=25)
        b = make_response('b', weight=75)
        selector = ResponseSelector(rng=sequence(0.0, 0.2, 0.25, 0.26, 0.99))

        picks = [selector.select([a, b], guest_request).id for _ in range(5)]

        assert picks == ['a', 'a', 'a', 'b', 'b']

    def test_heavy_weight_dominates(self, guest_request):
        """Test a 99:1 split picks the heavy response in at least 90% of trials."""
        heavy = make_response('heavy', weight=99)
        light = make_response('light', weight=1)
        selector = ResponseSelector(rng=random.Random(1234).random)

        heavy_picks = sum(
            1 for _ in range(1000)
            if selector.select([heavy, light], guest_request).id == 'heavy'
        )

        assert heavy_picks >= 900

    def test_missing_weight_counts_as_zero(self, guest_request):
        """Test responses without a weight are never drawn when others have weight."""
        unweighted = make_response('unweighted', weight=None)
        weighted = make_response('weighted', weight=10)

        assert select_response([unweighted, weighted], guest_request, rng=lambda: 0.5).id == 'weighted'

    def test_rounding_residual_returns_last(self, guest_request):
        """Test a draw at the very top of the range still returns a response."""
        a = make_response('a', weight=1)
        b = make_response('b', weight=1)

        assert select_response([a, b], guest_request, rng=lambda: 0.9999999999999999).id == 'b'

    def test_same_seed_same_choice(self, guest_request):
        """Test selection is reproducible with a fixed seed."""
        responses = [make_response(str(i), weight=i + 1) for i in range(5)]

        first = ResponseSelector(rng=random.Random(99).random).select(responses, guest_request)
        second = ResponseSelector(rng=random.Random(99).random).select(responses, guest_request)

        assert first is second


class TestZeroWeights:
    """Test the all-zero-weight fallback."""

    def test_default_returned(self, guest_request):
        """Test the default response is chosen when every weight is zero."""
        other = make_response('other', weight=0)
        default = make_response('default', weight=0, is_default=True)
        selector = ResponseSelector(rng=random.Random(3).random)

        picks = {selector.select([other, default], guest_request).id for _ in range(50)}

        assert picks == {'default'}

    def test_first_returned_without_default(self, guest_request):
        """Test the first response is chosen when no default exists."""
        first = make_response('first', weight=0)
        second = make_response('second', weight=0)

        assert select_response([first, second], guest_request).id == 'first'

    def test_rng_not_consulted(self, guest_request):
        """Test zero total weight never draws a random number."""
        def exploding_rng():
            raise AssertionError('rng should not be used')

        responses = [make_response('a', weight=0), make_response('b', weight=0)]

        assert select_response(responses, guest_request, rng=exploding_rng).id == 'a'
