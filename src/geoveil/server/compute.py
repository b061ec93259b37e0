"""
Server-side predicate evaluation.

Decides range membership from transformed values alone: the inner product
of a POI's encrypted coordinates with the first four components of the
encrypted query, compared against a radius-derived threshold.

This is an approximate, non-cryptographic test. The formula and the
threshold must stay exactly as they are for compatibility with data that
has already been encrypted.
"""
import logging
from typing import Callable, List, Optional, Sequence

from geoveil.shared.errors import TokenExpiredError
from geoveil.shared.protocol import EncryptedLocation, POIRecord, QueryToken
from geoveil.shared.utils import Timer, now_ms

logger = logging.getLogger(__name__)

THRESHOLD_FACTOR = 0.5
QUERY_SLICE = 4


def inner_product(a: Sequence[float], b: Sequence[float]) -> float:
    """Sum of pairwise products over the shorter of the two vectors."""
    total = 0.0
    for i in range(min(len(a), len(b))):
        total += a[i] * b[i]
    return total


class PredicateEvaluator:
    """
    Evaluates the range predicate on encrypted candidates.

    Token expiry is not checked unless enforce_expiry is set.
    """

    def __init__(
        self,
        enforce_expiry: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            enforce_expiry: Raise TokenExpiredError for expired tokens
            clock: Returns the current time in epoch milliseconds
        """
        self.enforce_expiry = enforce_expiry
        self._clock = clock or now_ms

    @staticmethod
    def threshold(token: QueryToken) -> float:
        """Largest inner product still counted as inside the radius."""
        return token.radius_normalized * token.radius_normalized * THRESHOLD_FACTOR

    @staticmethod
    def score(location: EncryptedLocation, token: QueryToken) -> float:
        """Inner product of the candidate with the query's point slice."""
        return inner_product(location.coords, token.encrypted_query[:QUERY_SLICE])

    def check_token(self, token: QueryToken) -> None:
        if not self.enforce_expiry:
            return
        current = self._clock()
        if token.is_expired(current):
            raise TokenExpiredError(token.expires_at, current)

    def evaluate(self, location: EncryptedLocation, token: QueryToken) -> bool:
        """
        Decide whether an encrypted location matches the query token.

        Args:
            location: Candidate's encrypted location
            token: Query token

        Returns:
            True iff the inner product is at most the threshold
        """
        self.check_token(token)
        return self.score(location, token) <= self.threshold(token)

    def filter(self, candidates: List[POIRecord], token: QueryToken) -> List[POIRecord]:
        """
        Keep the candidates that satisfy the predicate.

        Records without an encrypted location cannot be scored and are
        dropped.
        """
        self.check_token(token)
        limit = self.threshold(token)

        with Timer() as t:
            matches = [
                record for record in candidates
                if record.encrypted_location is not None
                and self.score(record.encrypted_location, token) <= limit
            ]

        logger.debug(
            "Predicate evaluation: %d/%d matched in %.2fms",
            len(matches), len(candidates), t.elapsed_ms,
        )
        return matches
