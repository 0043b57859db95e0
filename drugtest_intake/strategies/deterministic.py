"""
Deterministic client resolution.

Exact, case-insensitive name equality as answered by the record store.
"""

from typing import List

from .base import ResolutionStrategy
from ..core.data_models import ClientMatch, Identity, MatchType


class ExactNameStrategy(ResolutionStrategy):
    """
    Exact first and last name match (and middle initial when supplied).

    Use case: the extracted name was read cleanly and the client is
    registered under the same spelling.
    """

    def __init__(self, limit: int = 5):
        self.limit = limit

    @property
    def name(self) -> str:
        return "Exact Name Match"

    @property
    def match_type(self) -> MatchType:
        return MatchType.EXACT

    def execute(self, identity: Identity, record_store) -> List[ClientMatch]:
        clients = record_store.find_clients_by_name(
            identity.first_name,
            identity.last_name,
            identity.middle_initial,
            limit=self.limit
        )
        return [
            ClientMatch(client=client, match_type=self.match_type, score=1.0)
            for client in clients[:self.limit]
        ]
