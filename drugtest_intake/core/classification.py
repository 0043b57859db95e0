"""
Screening result classification.

Compares detected substances with the substances explained by a client's
active prescriptions and decides whether the result can be accepted without
a human confirmation decision.

Classification (first match wins):
- negative: nothing detected, nothing expected
- expected-positive: every detected substance expected, none missing
- mixed-unexpected: unexpected positives and missing expected substances
- unexpected-positive: unexpected positives only
- unexpected-negative-critical: a required medication was not detected
- unexpected-negative-warning: a non-required medication was not detected

Only unexpected positives block auto-accept. A client not testing positive
for a prescribed drug is informational.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from .data_models import ClassificationOutcome, InitialScreenResult, ScreeningInput
from .expected_substances import resolve_expected_substances
from .panels import validate_panel_substances
from ..utils.normalizers import clean_substances

logger = logging.getLogger(__name__)

# BAC is reported to three decimals; anything above 0.000 is detectable.
BAC_EPSILON = 0.0001

PASSING_RESULTS = (InitialScreenResult.NEGATIVE, InitialScreenResult.EXPECTED_POSITIVE)


def classify(detected: Iterable[str],
             expected: Iterable[str],
             critical: Iterable[str]) -> ClassificationOutcome:
    """
    Classify a screen.

    Args:
        detected: Substances detected by the screen
        expected: Substances explained by active medications
        critical: Subset of expected substances that must show

    Returns:
        ClassificationOutcome with sorted substance lists
    """
    detected_set = set(detected)
    expected_set = set(expected)
    critical_set = set(critical)

    expected_positives = detected_set & expected_set
    unexpected_positives = detected_set - expected_set
    missing_expected = expected_set - detected_set
    critical_negatives = missing_expected & critical_set
    warning_negatives = missing_expected - critical_set

    if not detected_set and not expected_set:
        result = InitialScreenResult.NEGATIVE
    elif not unexpected_positives and not missing_expected:
        result = InitialScreenResult.EXPECTED_POSITIVE
    elif unexpected_positives and missing_expected:
        result = InitialScreenResult.MIXED_UNEXPECTED
    elif unexpected_positives:
        result = InitialScreenResult.UNEXPECTED_POSITIVE
    elif critical_negatives:
        result = InitialScreenResult.UNEXPECTED_NEGATIVE_CRITICAL
    else:
        result = InitialScreenResult.UNEXPECTED_NEGATIVE_WARNING

    return ClassificationOutcome(
        initial_screen_result=result,
        expected_positives=tuple(sorted(expected_positives)),
        unexpected_positives=tuple(sorted(unexpected_positives)),
        critical_negatives=tuple(sorted(critical_negatives)),
        warning_negatives=tuple(sorted(warning_negatives)),
        auto_accept=not unexpected_positives
    )


def is_breathalyzer_positive(breathalyzer_taken: bool, breathalyzer_result: Optional[float]) -> bool:
    """Check whether a breathalyzer reading is detectable."""
    return bool(breathalyzer_taken and breathalyzer_result is not None
                and breathalyzer_result > BAC_EPSILON)


def compute_test_results(screening: ScreeningInput) -> ClassificationOutcome:
    """
    Classify a screen from its full input, including the medication snapshot.

    Detected substances are sanitized and checked against the test type's
    panel; expected substances outside the panel are filtered out. A
    detectable breathalyzer reading turns a passing result into
    unexpected-positive and blocks auto-accept.

    Args:
        screening: Screening input for one test

    Returns:
        ClassificationOutcome

    Raises:
        PanelMismatch: if a detected substance is not screened by the test type
    """
    detected = validate_panel_substances(screening.detected_substances, screening.test_type)
    expectations = resolve_expected_substances(screening.medications, screening.test_type)

    outcome = classify(detected, expectations.expected, expectations.critical)

    if not is_breathalyzer_positive(screening.breathalyzer_taken, screening.breathalyzer_result):
        return outcome

    # Already failing results keep their classification
    if outcome.initial_screen_result not in PASSING_RESULTS:
        return replace(outcome, breathalyzer_positive=True)

    logger.debug(
        f"Breathalyzer {screening.breathalyzer_result:.3f} overrides "
        f"{outcome.initial_screen_result.value} -> unexpected-positive"
    )
    return replace(
        outcome,
        initial_screen_result=InitialScreenResult.UNEXPECTED_POSITIVE,
        auto_accept=False,
        breathalyzer_positive=True
    )


def preview_classification(detected_substances: Iterable[str],
                           screening: ScreeningInput) -> ClassificationOutcome:
    """Recompute the classification for a draft list of detected substances."""
    draft = ScreeningInput(
        detected_substances=frozenset(clean_substances(detected_substances)),
        test_type=screening.test_type,
        medications=screening.medications,
        is_dilute=screening.is_dilute,
        breathalyzer_taken=screening.breathalyzer_taken,
        breathalyzer_result=screening.breathalyzer_result
    )
    return compute_test_results(draft)
