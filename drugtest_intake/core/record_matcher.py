"""
Test Record Matcher - selects the pending test an uploaded lab report belongs to.

Lab workflows create the test record at collection time; when the lab report
arrives, the donor name and collection date extracted from it are scored
against the pending records so the correct one can be selected.
"""

import logging
from typing import List, Optional, Union

from .confidence_scoring import ConfidenceCalculator
from .data_models import PendingTest, TestMatch, TestType
from .panels import coerce_test_type
from ..utils.date_similarity import calculate_date_proximity_score
from ..utils.normalizers import DateLike, normalize_string

NAME_EXACT_POINTS = 60
NAME_CONTAINS_POINTS = 40
NAME_SHARED_TOKEN_POINTS = 30

SCREENED_STATUSES = ("screened", "complete")


def calculate_name_match_score(extracted_name: Optional[str], client_name: Optional[str]) -> int:
    """
    Score an extracted donor name against a test record's client name.

    Only the first matching band applies: exact match (60), containment in
    either direction (40), a shared name token (30), otherwise 0.
    """
    extracted = normalize_string(extracted_name)
    candidate = normalize_string(client_name)

    if not extracted or not candidate:
        return 0
    if extracted == candidate:
        return NAME_EXACT_POINTS
    if extracted in candidate or candidate in extracted:
        return NAME_CONTAINS_POINTS
    if set(extracted.split()) & set(candidate.split()):
        return NAME_SHARED_TOKEN_POINTS
    return 0


def calculate_test_match_score(extracted_name: Optional[str],
                               extracted_date: DateLike,
                               test: PendingTest) -> int:
    """
    Calculate match score for a single pending test.

    Args:
        extracted_name: Donor name from the report, if extracted
        extracted_date: Collection date from the report, if extracted
        test: Candidate pending test

    Returns:
        Score from 0 to 100 (name up to 60, date up to 40)
    """
    name_points = calculate_name_match_score(extracted_name, test.client_name)
    date_points = calculate_date_proximity_score(extracted_date, test.collection_date)
    return name_points + date_points


def filter_by_screening_status(tests: List[PendingTest], is_screen_workflow: bool) -> List[PendingTest]:
    """For screen workflows, exclude tests that have already been screened."""
    if not is_screen_workflow:
        return list(tests)
    return [t for t in tests if normalize_string(t.screening_status) not in SCREENED_STATUSES]


def filter_by_test_type(tests: List[PendingTest],
                        test_type: Union[TestType, str, None]) -> List[PendingTest]:
    """Keep only tests of the uploaded report's test type."""
    resolved = coerce_test_type(test_type)
    if resolved is None:
        return list(tests)
    return [t for t in tests if normalize_string(t.test_type) == resolved.value]


class TestRecordMatcher:
    """Scores and ranks pending test records against an uploaded report."""
    __test__ = False

    def __init__(self, record_store=None, auto_select_threshold: int = 60, candidate_limit: int = 3):
        """
        Initialize the test record matcher.

        Args:
            record_store: Optional RecordStore used by find_matching_tests
            auto_select_threshold: Minimum score for automatic selection (default: 60)
            candidate_limit: Number of candidates presented for manual selection (default: 3)
        """
        self.record_store = record_store
        self.candidate_limit = candidate_limit
        self.confidence_calculator = ConfidenceCalculator(auto_select_threshold)
        self.logger = logging.getLogger(__name__)

    def match_score(self, extracted_name: Optional[str], extracted_date: DateLike, test: PendingTest) -> int:
        return calculate_test_match_score(extracted_name, extracted_date, test)

    def rank(self,
             tests: List[PendingTest],
             extracted_name: Optional[str],
             extracted_date: DateLike,
             test_type: Union[TestType, str, None] = None,
             is_screen_workflow: bool = False) -> List[TestMatch]:
        """
        Filter, score and sort candidate tests.

        Args:
            tests: Pending tests to consider
            extracted_name: Donor name from the report
            extracted_date: Collection date from the report
            test_type: Test type of the uploaded report
            is_screen_workflow: Exclude already screened tests

        Returns:
            TestMatch list sorted by score, highest first
        """
        candidates = filter_by_screening_status(tests, is_screen_workflow)
        candidates = filter_by_test_type(candidates, test_type)

        matches = []
        for test in candidates:
            score = self.match_score(extracted_name, extracted_date, test)
            matches.append(TestMatch(
                test=test,
                score=score,
                confidence=self.confidence_calculator.get_confidence_level(score)
            ))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def auto_select(self, ranked: List[TestMatch]) -> Optional[TestMatch]:
        """Return the top candidate if it is strong enough to apply automatically."""
        if not ranked:
            return None
        best = ranked[0]
        if self.confidence_calculator.can_auto_select(best.score):
            self.logger.info(
                f"AUTO_SELECTED - Test {best.test.id} - {best.test.client_name} "
                f"(Score: {best.score}, Confidence: {best.confidence.value})"
            )
            return best
        return None

    def top_candidates(self, ranked: List[TestMatch], limit: Optional[int] = None) -> List[TestMatch]:
        """Candidates presented for manual confirmation."""
        return ranked[:self.candidate_limit if limit is None else limit]

    def find_matching_tests(self,
                            extracted_name: Optional[str],
                            extracted_date: DateLike,
                            test_type: Union[TestType, str, None] = None,
                            is_screen_workflow: bool = False) -> List[TestMatch]:
        """
        Fetch pending tests from the record store and rank them.

        Raises:
            LookupFailure: if the record store query fails
        """
        if self.record_store is None:
            raise ValueError("A record store is required to look up pending tests")

        tests = self.record_store.list_pending_tests()
        self.logger.info(f"Scoring {len(tests)} pending tests for '{extracted_name or ''}'")
        return self.rank(tests, extracted_name, extracted_date, test_type, is_screen_workflow)
