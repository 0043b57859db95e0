"""
Probabilistic client resolution.

Weighted name similarity over the indexed candidate pool, used when no
client matches the extracted name exactly.
"""

import logging
from typing import List

from .base import ResolutionStrategy
from ..core.data_models import ClientMatch, Identity, MatchType
from ..utils.string_similarity import name_similarity


class FuzzyNameStrategy(ResolutionStrategy):
    """
    Weighted fuzzy name match.

    Use case: OCR slips or typos in the extracted name, or a client
    registered under a slightly different spelling.
    """

    def __init__(self, threshold: float = 0.5, limit: int = 10, pool_size: int = 100):
        """
        Args:
            threshold: Scores must be strictly above this to be kept (default: 0.5)
            limit: Maximum number of matches returned (default: 10)
            pool_size: Number of indexed clients scored (default: 100)
        """
        self.threshold = threshold
        self.limit = limit
        self.pool_size = pool_size
        self.logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return "Fuzzy Name Match"

    @property
    def match_type(self) -> MatchType:
        return MatchType.FUZZY

    def execute(self, identity: Identity, record_store) -> List[ClientMatch]:
        candidates = record_store.list_indexed_clients(limit=self.pool_size)
        self.logger.debug(f"Scoring {len(candidates)} indexed clients for '{identity.search_term}'")

        scored = []
        for client in candidates:
            score = name_similarity(
                identity.first_name,
                identity.last_name,
                client.first_name,
                client.last_name,
                identity.middle_initial,
                client.middle_initial or None
            )
            if score > self.threshold:
                scored.append(ClientMatch(client=client, match_type=self.match_type, score=score))

        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:self.limit]
