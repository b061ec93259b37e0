"""Tests for server-side predicate evaluation."""
import pytest

from geoveil.server.compute import PredicateEvaluator, inner_product
from geoveil.shared.errors import TokenExpiredError
from geoveil.shared.protocol import EncryptedBounds, EncryptedLocation, POIRecord, QueryToken

BOUNDS = EncryptedBounds(encrypted_min=(0.0,) * 4, encrypted_max=(1.0,) * 4)


def make_token(query, radius_normalized=0.1, created_at=0, expires_at=300_000):
    return QueryToken(
        encrypted_query=tuple(query),
        encrypted_bounds=BOUNDS,
        radius_normalized=radius_normalized,
        created_at=created_at,
        expires_at=expires_at,
    )


def location(*coords):
    return EncryptedLocation(coords=tuple(coords))


class TestInnerProduct:
    """Test the pairwise product helper."""

    def test_equal_length(self):
        assert inner_product([1, 2, 3], [4, 5, 6]) == 32

    def test_truncates_to_shorter(self):
        assert inner_product([1, 1, 1, 1], [2, 2]) == 4
        assert inner_product([2, 2], [1, 1, 1, 1]) == 4

    def test_empty(self):
        assert inner_product([], [1, 2]) == 0


class TestPredicateEvaluator:
    """Test the threshold comparison."""

    def test_threshold(self):
        token = make_token([0] * 6, radius_normalized=0.2)
        assert PredicateEvaluator.threshold(token) == pytest.approx(0.02)

    def test_only_first_four_query_components_count(self):
        token = make_token([1, 0, 0, 0, 1000, 1000])
        assert PredicateEvaluator.score(location(0.003, 5, 5, 5), token) == pytest.approx(0.003)

    def test_match_at_threshold(self):
        """Equality counts as a match."""
        token = make_token([1, 0, 0, 0, 0, 0], radius_normalized=0.1)
        evaluator = PredicateEvaluator()
        assert evaluator.evaluate(location(0.005, 0, 0, 0), token)
        assert evaluator.evaluate(location(0.001, 0, 0, 0), token)
        assert not evaluator.evaluate(location(0.006, 0, 0, 0), token)

    def test_filter(self):
        token = make_token([1, 0, 0, 0, 0, 0], radius_normalized=0.1)
        candidates = [
            POIRecord(id="near", encrypted_location=location(0.001, 0, 0, 0)),
            POIRecord(id="far", encrypted_location=location(0.5, 0, 0, 0)),
            POIRecord(id="unscored"),
        ]
        matches = PredicateEvaluator().filter(candidates, token)
        assert [r.id for r in matches] == ["near"]

    def test_filter_empty(self):
        assert PredicateEvaluator().filter([], make_token([0] * 6)) == []

    def test_expired_token_allowed_by_default(self, clock):
        token = make_token([0] * 6, created_at=0, expires_at=1)
        assert PredicateEvaluator(clock=clock).evaluate(location(0, 0, 0, 0), token)

    def test_expired_token_rejected_when_enforced(self, clock):
        evaluator = PredicateEvaluator(enforce_expiry=True, clock=clock)
        token = make_token([0] * 6, created_at=clock.now, expires_at=clock.now + 100)

        assert evaluator.evaluate(location(0, 0, 0, 0), token)

        clock.advance(101)
        with pytest.raises(TokenExpiredError) as excinfo:
            evaluator.filter([POIRecord(id="a", encrypted_location=location(0, 0, 0, 0))], token)
        assert excinfo.value.expires_at == token.expires_at
