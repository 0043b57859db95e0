"""
Confidence scoring for test record matching.

Maps a 0-100 match score to a confidence band and decides whether the best
candidate may be selected without operator confirmation.
"""

import logging

from .data_models import ConfidenceLevel


class ConfidenceCalculator:
    """
    Converts test match scores to confidence levels.

    Scores at or above the auto-select threshold are applied automatically;
    anything lower is presented for manual confirmation.
    """

    def __init__(self, auto_select_threshold: int = 60):
        """
        Initialize confidence calculator.

        Args:
            auto_select_threshold: Minimum score for automatic selection (default: 60)
        """
        self.auto_select_threshold = auto_select_threshold

        # Lower bound of each band
        self.confidence_thresholds = {
            ConfidenceLevel.HIGH: 80,
            ConfidenceLevel.MEDIUM: 60,
            ConfidenceLevel.LOW: 1,
        }

        self.logger = logging.getLogger(__name__)

    def get_confidence_level(self, score: int) -> ConfidenceLevel:
        """Get confidence level from a numeric match score."""
        if score >= self.confidence_thresholds[ConfidenceLevel.HIGH]:
            return ConfidenceLevel.HIGH
        elif score >= self.confidence_thresholds[ConfidenceLevel.MEDIUM]:
            return ConfidenceLevel.MEDIUM
        elif score >= self.confidence_thresholds[ConfidenceLevel.LOW]:
            return ConfidenceLevel.LOW
        else:
            return ConfidenceLevel.NONE

    def can_auto_select(self, score: int) -> bool:
        """Determine if a match is strong enough to apply without confirmation."""
        allowed = score >= self.auto_select_threshold
        self.logger.debug(
            f"Auto-select check: score {score} vs threshold {self.auto_select_threshold} "
            f"-> {'auto' if allowed else 'manual'}"
        )
        return allowed

    def requires_manual_review(self, score: int) -> bool:
        return not self.can_auto_select(score)
