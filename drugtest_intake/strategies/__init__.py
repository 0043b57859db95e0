"""Client resolution strategies, tried in priority order."""

from .base import ResolutionStrategy
from .deterministic import ExactNameStrategy
from .probabilistic import FuzzyNameStrategy

__all__ = [
    'ResolutionStrategy',
    'ExactNameStrategy',
    'FuzzyNameStrategy'
]
