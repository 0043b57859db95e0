"""Core intake framework: classification, confirmation and matching."""

# Import main classes for easier access
from .data_models import (
    TestType,
    InitialScreenResult,
    FinalStatus,
    ConfirmationDecision,
    ConfirmationOutcome,
    MatchType,
    ConfidenceLevel,
    ClientRecord,
    ClassificationOutcome,
    SessionStatistics
)
from .confidence_scoring import ConfidenceCalculator
from .classification import classify, compute_test_results
from .confirmation import ConfirmationWorkflow, compute_final_status

__all__ = [
    'TestType',
    'InitialScreenResult',
    'FinalStatus',
    'ConfirmationDecision',
    'ConfirmationOutcome',
    'MatchType',
    'ConfidenceLevel',
    'ClientRecord',
    'ClassificationOutcome',
    'SessionStatistics',
    'ConfidenceCalculator',
    'classify',
    'compute_test_results',
    'ConfirmationWorkflow',
    'compute_final_status'
]
