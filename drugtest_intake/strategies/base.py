"""
Base class for client resolution strategies.
"""

from abc import ABC, abstractmethod
from typing import List

from ..core.data_models import ClientMatch, Identity, MatchType


class ResolutionStrategy(ABC):
    """A single step of the hierarchical client lookup."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable strategy name."""

    @property
    @abstractmethod
    def match_type(self) -> MatchType:
        """Match type assigned to every match this strategy returns."""

    @abstractmethod
    def execute(self, identity: Identity, record_store) -> List[ClientMatch]:
        """
        Look up candidate clients for an identity.

        Returns an empty list when nothing matches. Record store failures
        propagate unchanged.
        """
