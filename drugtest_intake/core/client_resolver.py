"""
Client Resolver - finds the client an uploaded report belongs to.

Names extracted from reports are untrusted, so lookup is hierarchical:
an exact name match is tried first and weighted fuzzy matching is used only
when nothing matches exactly. An empty result is a valid outcome; the
caller decides whether to offer manual registration.
"""

import logging
from typing import List, Optional

from .data_models import ClientMatch, ClientResolution, Identity, MatchType
from ..strategies import ExactNameStrategy, FuzzyNameStrategy, ResolutionStrategy
from ..utils.string_similarity import name_similarity, string_similarity


class ClientResolver:
    """
    Hierarchical client lookup against the record store.

    Strategies are tried in priority order and the first one returning any
    match wins. Record store failures (LookupFailure, LookupTimeout) are never
    turned into an empty result.
    """

    def __init__(self,
                 record_store,
                 fuzzy_threshold: float = 0.5,
                 exact_limit: int = 5,
                 fuzzy_limit: int = 10,
                 pool_size: int = 100):
        """
        Initialize the client resolver.

        Args:
            record_store: RecordStore collaborator used for lookups
            fuzzy_threshold: Fuzzy scores must exceed this (default: 0.5)
            exact_limit: Maximum exact matches returned (default: 5)
            fuzzy_limit: Maximum fuzzy matches returned (default: 10)
            pool_size: Number of indexed clients scored in fuzzy lookups (default: 100)
        """
        self.record_store = record_store
        self.fuzzy_threshold = fuzzy_threshold
        self.fuzzy_limit = fuzzy_limit
        self.pool_size = pool_size

        # Initialize resolution strategies in priority order
        self.strategies: List[ResolutionStrategy] = [
            ExactNameStrategy(limit=exact_limit),
            FuzzyNameStrategy(threshold=fuzzy_threshold, limit=fuzzy_limit, pool_size=pool_size),
        ]

        self.logger = logging.getLogger(__name__)

    def resolve(self,
                first_name: str,
                last_name: str,
                middle_initial: Optional[str] = None) -> ClientResolution:
        """
        Find the best matching clients for a name.

        Args:
            first_name: First name (as extracted or typed)
            last_name: Last name
            middle_initial: Optional middle initial

        Returns:
            ClientResolution with matches (possibly empty) and the search term

        Raises:
            LookupFailure: if the record store query fails
        """
        identity = Identity(
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            middle_initial=(middle_initial or "").strip() or None
        )
        search_term = identity.search_term

        for strategy in self.strategies:
            matches = strategy.execute(identity, self.record_store)
            if matches:
                self.logger.info(
                    f"[resolve] '{search_term}' - {strategy.name}: {len(matches)} match(es)")
                return ClientResolution(matches=matches, search_term=search_term)

        self.logger.info(f"[resolve] '{search_term}' - no matching clients")
        return ClientResolution(matches=[], search_term=search_term)

    def search(self, search_term: str) -> ClientResolution:
        """
        Free-text client search for operators.

        With two or more words the first is the first name and the last is the
        last name (a middle word is used when there are exactly three). A
        single word is compared against both first and last name. The email
        address is also compared and the best score wins.

        Args:
            search_term: Text typed by the operator

        Returns:
            ClientResolution with fuzzy matches, best first

        Raises:
            LookupFailure: if the record store query fails
        """
        term = (search_term or "").strip()
        parts = term.split()
        if not parts:
            return ClientResolution(matches=[], search_term=term)

        candidates = self.record_store.list_indexed_clients(limit=self.pool_size)
        self.logger.info(f"[search] '{term}' - scoring {len(candidates)} clients")

        scored = []
        for client in candidates:
            if len(parts) >= 2:
                name_score = name_similarity(
                    parts[0],
                    parts[-1],
                    client.first_name,
                    client.last_name,
                    parts[1] if len(parts) == 3 else None,
                    client.middle_initial or None
                )
            else:
                first_score = name_similarity(parts[0], '', client.first_name, client.last_name)
                last_score = name_similarity('', parts[0], client.first_name, client.last_name)
                name_score = max(first_score, last_score)

            email_score = string_similarity(term, client.email or '') if client.email else 0.0
            score = max(name_score, email_score)

            if score > self.fuzzy_threshold:
                scored.append(ClientMatch(client=client, match_type=MatchType.FUZZY, score=score))

        scored.sort(key=lambda m: m.score, reverse=True)
        return ClientResolution(matches=scored[:self.fuzzy_limit], search_term=term)
