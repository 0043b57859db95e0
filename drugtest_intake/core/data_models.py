"""
Drug Test Intake Data Models

This module defines the core data structures and types used throughout the
intake core: identities, client and test records, medication snapshots,
screening inputs and classification outcomes.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from ..utils.normalizers import normalize_string


class TestType(Enum):
    """Drug test products offered by the clinic."""
    __test__ = False

    PANEL_15_INSTANT = "15-panel-instant"
    PANEL_11_LAB = "11-panel-lab"
    PANEL_17_SOS_LAB = "17-panel-sos-lab"
    ETG_LAB = "etg-lab"


class InitialScreenResult(Enum):
    """Classification of a screen against the client's expected substances."""
    NEGATIVE = "negative"                                          # Pass - auto-accept
    EXPECTED_POSITIVE = "expected-positive"                        # Pass - auto-accept
    UNEXPECTED_POSITIVE = "unexpected-positive"                    # Fail - decision required
    UNEXPECTED_NEGATIVE_CRITICAL = "unexpected-negative-critical"  # Fail - red flag
    UNEXPECTED_NEGATIVE_WARNING = "unexpected-negative-warning"    # Warning - auto-accept
    MIXED_UNEXPECTED = "mixed-unexpected"                          # Fail - decision required


class FinalStatus(Enum):
    """Compliance status after any confirmation testing."""
    NEGATIVE = "negative"
    CONFIRMED_NEGATIVE = "confirmed-negative"
    EXPECTED_POSITIVE = "expected-positive"
    UNEXPECTED_POSITIVE = "unexpected-positive"
    UNEXPECTED_NEGATIVE_CRITICAL = "unexpected-negative-critical"
    UNEXPECTED_NEGATIVE_WARNING = "unexpected-negative-warning"
    MIXED_UNEXPECTED = "mixed-unexpected"
    INCONCLUSIVE = "inconclusive"

    @classmethod
    def from_initial(cls, initial: InitialScreenResult) -> 'FinalStatus':
        """Final status for a screen finalized without confirmation testing."""
        return cls(initial.value)


class ConfirmationDecision(Enum):
    """Operator decision when unexpected positives are found."""
    ACCEPT = "accept"
    REQUEST_CONFIRMATION = "request-confirmation"
    PENDING_DECISION = "pending-decision"


class ConfirmationOutcome(Enum):
    """Per-substance result reported by the confirmation lab."""
    CONFIRMED_POSITIVE = "confirmed-positive"
    CONFIRMED_NEGATIVE = "confirmed-negative"
    INCONCLUSIVE = "inconclusive"


class MatchType(Enum):
    """How a client was resolved."""
    EXACT = "exact"
    FUZZY = "fuzzy"


class ConfidenceLevel(Enum):
    """Confidence bands for test record matching scores."""
    HIGH = "high"        # 80-100 - Auto-select
    MEDIUM = "medium"    # 60-79 - Auto-select
    LOW = "low"          # 1-59 - Manual confirmation
    NONE = "none"        # 0 - No match


@dataclass(frozen=True, eq=False)
class Identity:
    """A person's name as stored on a client or extracted from a report.

    Identities compare case-insensitively; the original spelling is kept
    for display.
    """
    first_name: str
    last_name: str
    middle_initial: Optional[str] = None

    @property
    def search_term(self) -> str:
        """Display form used when reporting a lookup."""
        if self.middle_initial:
            return f"{self.first_name} {self.middle_initial} {self.last_name}"
        return f"{self.first_name} {self.last_name}"

    def _comparison_key(self) -> Tuple[str, str, str]:
        return (normalize_string(self.first_name),
                normalize_string(self.last_name),
                normalize_string(self.middle_initial))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return self._comparison_key() == other._comparison_key()

    def __hash__(self) -> int:
        return hash(self._comparison_key())


@dataclass
class ClientMedication:
    """A medication as currently recorded on a client (mutable, live)."""
    medication_name: str
    status: str = "active"
    detected_as: List[str] = field(default_factory=list)
    require_confirmation: bool = False


@dataclass(frozen=True)
class MedicationSnapshot:
    """A medication active when the specimen was collected (point-in-time copy)."""
    medication_name: str
    detected_as: FrozenSet[str] = frozenset()
    require_confirmation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'medication_name': self.medication_name,
            'detected_as': sorted(self.detected_as),
            'require_confirmation': self.require_confirmation
        }


@dataclass
class ClientRecord:
    """Client record as supplied by the record store."""
    id: str
    first_name: str
    last_name: str
    middle_initial: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[str] = None
    medications: List[ClientMedication] = field(default_factory=list)

    @property
    def identity(self) -> Identity:
        return Identity(self.first_name, self.last_name, self.middle_initial or None)

    @property
    def full_name(self) -> str:
        return self.identity.search_term

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'middle_initial': self.middle_initial,
            'email': self.email,
            'dob': self.dob
        }


@dataclass
class PendingTest:
    """A test record awaiting results (lab workflows)."""
    id: str
    client_name: str
    test_type: str
    collection_date: Union[str, date, datetime, None]
    screening_status: str = "collected"
    client_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        collection_date = self.collection_date
        if isinstance(collection_date, (date, datetime)):
            collection_date = collection_date.isoformat()
        return {
            'id': self.id,
            'client_name': self.client_name,
            'test_type': self.test_type,
            'collection_date': collection_date,
            'screening_status': self.screening_status,
            'client_id': self.client_id
        }


@dataclass
class ExtractedReport:
    """Data the PDF extraction collaborator pulled from an uploaded report.

    Every field is untrusted; donor name and collection date may be absent.
    """
    donor_name: Optional[str] = None
    collection_date: Union[str, date, datetime, None] = None
    detected_substances: List[str] = field(default_factory=list)
    is_dilute: bool = False
    confidence: str = "low"


@dataclass(frozen=True)
class ScreeningInput:
    """Everything needed to classify one screen. Never mutated."""
    detected_substances: FrozenSet[str]
    test_type: Optional[TestType]
    medications: Tuple[MedicationSnapshot, ...] = ()
    is_dilute: bool = False
    breathalyzer_taken: bool = False
    breathalyzer_result: Optional[float] = None


@dataclass(frozen=True)
class ExpectedSubstances:
    """Substances a client should test positive for, given their medications."""
    expected: FrozenSet[str]
    critical: FrozenSet[str]


@dataclass(frozen=True)
class ClassificationOutcome:
    """Result of comparing detected substances with expected substances."""
    initial_screen_result: InitialScreenResult
    expected_positives: Tuple[str, ...]
    unexpected_positives: Tuple[str, ...]
    critical_negatives: Tuple[str, ...]
    warning_negatives: Tuple[str, ...]
    auto_accept: bool
    breathalyzer_positive: bool = False

    @property
    def unexpected_negatives(self) -> Tuple[str, ...]:
        """Critical and warning negatives merged for display."""
        return tuple(sorted(set(self.critical_negatives) | set(self.warning_negatives)))

    @property
    def requires_decision(self) -> bool:
        return not self.auto_accept

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted representation."""
        return {
            'initial_screen_result': self.initial_screen_result.value,
            'expected_positives': list(self.expected_positives),
            'unexpected_positives': list(self.unexpected_positives),
            'unexpected_negatives': list(self.unexpected_negatives),
            'auto_accept': self.auto_accept
        }


@dataclass(frozen=True)
class ConfirmationResult:
    """Lab confirmation result for one substance."""
    substance: str
    result: ConfirmationOutcome
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'substance': self.substance,
            'result': self.result.value,
            'notes': self.notes
        }


@dataclass
class ClientMatch:
    """A candidate client returned by the resolver."""
    client: ClientRecord
    match_type: MatchType
    score: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        data = self.client.to_dict()
        data['match_type'] = self.match_type.value
        data['score'] = round(self.score, 4)
        return data


@dataclass
class ClientResolution:
    """Outcome of a client lookup. An empty match list is a valid result."""
    matches: List[ClientMatch]
    search_term: str

    @property
    def match_found(self) -> bool:
        return bool(self.matches)


@dataclass
class TestMatch:
    """A pending test record scored against an uploaded report."""
    __test__ = False

    test: PendingTest
    score: int
    confidence: ConfidenceLevel

    def to_dict(self) -> Dict[str, Any]:
        data = self.test.to_dict()
        data['score'] = self.score
        data['confidence'] = self.confidence.value
        return data


@dataclass
class TestRecord:
    """A drug test record moving through screening and confirmation."""
    __test__ = False

    id: str
    client_id: str
    test_type: TestType
    detected_substances: List[str] = field(default_factory=list)
    medications_at_test_time: Tuple[MedicationSnapshot, ...] = ()
    is_dilute: bool = False
    breathalyzer_taken: bool = False
    breathalyzer_result: Optional[float] = None
    outcome: Optional[ClassificationOutcome] = None
    confirmation_decision: Optional[ConfirmationDecision] = None
    confirmation_substances: List[str] = field(default_factory=list)
    confirmation_results: List[ConfirmationResult] = field(default_factory=list)
    final_status: Optional[FinalStatus] = None
    notification_stage: Optional[str] = None


@dataclass
class SessionStatistics:
    """Statistics for an intake session."""
    total_processed: int = 0
    auto_accepted: int = 0
    decision_required: int = 0
    finalized: int = 0

    # Client resolution distribution
    exact_resolutions: int = 0
    fuzzy_resolutions: int = 0
    unresolved: int = 0

    # Classification distribution
    result_counts: Dict[str, int] = field(default_factory=dict)
    final_status_counts: Dict[str, int] = field(default_factory=dict)

    def record_result(self, result: InitialScreenResult):
        self.result_counts[result.value] = self.result_counts.get(result.value, 0) + 1

    def record_final_status(self, status: FinalStatus):
        self.finalized += 1
        self.final_status_counts[status.value] = self.final_status_counts.get(status.value, 0) + 1

    def get_auto_accept_rate(self) -> float:
        """Calculate share of screens that needed no human decision."""
        if self.total_processed == 0:
            return 0.0
        return self.auto_accepted / self.total_processed

    def get_resolution_rate(self) -> float:
        """Calculate share of lookups that produced at least one client."""
        total = self.exact_resolutions + self.fuzzy_resolutions + self.unresolved
        if total == 0:
            return 0.0
        return (self.exact_resolutions + self.fuzzy_resolutions) / total
