"""
Confirmation workflow for screens with unexpected positives.

When a screen cannot be auto-accepted, an operator decides to accept the
result, request lab confirmation for some or all unexpected positives, or
defer. Once confirmation results arrive, the final status is recomputed
from the stored screen fields.

States:
    NO_DECISION_NEEDED -> FINALIZED
    DECISION_PENDING -> ACCEPTED | AWAITING_LAB_CONFIRMATION | DEFERRED
    DEFERRED -> ACCEPTED | AWAITING_LAB_CONFIRMATION | DEFERRED
    ACCEPTED -> FINALIZED
    AWAITING_LAB_CONFIRMATION -> FINALIZED
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .classification import is_breathalyzer_positive
from .data_models import (
    ClassificationOutcome,
    ConfirmationDecision,
    ConfirmationOutcome,
    ConfirmationResult,
    FinalStatus,
    InitialScreenResult
)
from .exceptions import (
    ConfirmationIncomplete,
    InvalidConfirmationSubstanceSelection,
    InvalidWorkflowTransition,
    MissingConfirmationDecision
)
from ..utils.normalizers import normalize_substance

# Initial results that carried missing expected substances
RESULTS_WITH_MISSING_MEDICATIONS = (
    InitialScreenResult.MIXED_UNEXPECTED,
    InitialScreenResult.UNEXPECTED_NEGATIVE_CRITICAL,
    InitialScreenResult.UNEXPECTED_NEGATIVE_WARNING,
)

PASSING_FINAL_STATUSES = (FinalStatus.EXPECTED_POSITIVE, FinalStatus.CONFIRMED_NEGATIVE)


class WorkflowState(Enum):
    """States of the confirmation workflow."""
    NO_DECISION_NEEDED = "no-decision-needed"
    DECISION_PENDING = "decision-pending"
    ACCEPTED = "accepted"
    AWAITING_LAB_CONFIRMATION = "awaiting-lab-confirmation"
    DEFERRED = "deferred"
    FINALIZED = "finalized"


def parse_confirmation_result(data: Dict[str, Any]) -> ConfirmationResult:
    """
    Build a ConfirmationResult from its stored dictionary form.

    Raises:
        ValueError: if the result value is not a known confirmation outcome
    """
    return ConfirmationResult(
        substance=normalize_substance(data.get('substance', '')),
        result=ConfirmationOutcome(data.get('result', '')),
        notes=data.get('notes') or None
    )


def is_confirmation_complete(decision: Optional[ConfirmationDecision],
                             confirmation_substances: Optional[Sequence[str]],
                             confirmation_results: Optional[Sequence[ConfirmationResult]]) -> bool:
    """
    Check whether every requested confirmation has a result.

    Args:
        decision: Operator decision for the screen
        confirmation_substances: Substances sent for confirmation
        confirmation_results: Results received from the lab

    Returns:
        True only when confirmation was requested for at least one substance
        and there is exactly one result for each requested substance
    """
    if decision != ConfirmationDecision.REQUEST_CONFIRMATION:
        return False
    if not confirmation_substances or not confirmation_results:
        return False
    if len(confirmation_results) != len(confirmation_substances):
        return False

    requested = {normalize_substance(s) for s in confirmation_substances}
    received = set()
    for result in confirmation_results:
        substance = normalize_substance(result.substance)
        if not substance or result.result is None:
            return False
        received.add(substance)

    return received == requested


def compute_final_status(initial_screen_result: InitialScreenResult,
                         expected_positives: Iterable[str],
                         unexpected_positives: Iterable[str],
                         confirmation_results: Iterable[ConfirmationResult],
                         breathalyzer_taken: bool = False,
                         breathalyzer_result: Optional[float] = None) -> FinalStatus:
    """
    Compute the final status once confirmation results are available.

    Pure function of stored fields, so the status shown in notifications can
    always be reproduced from the persisted record.

    Args:
        initial_screen_result: Classification of the original screen
        expected_positives: Detected substances explained by medications
        unexpected_positives: Detected substances not explained by medications
        confirmation_results: Lab results for the substances sent for confirmation
        breathalyzer_taken: Whether a breathalyzer was administered
        breathalyzer_result: BAC reading, if taken

    Returns:
        FinalStatus
    """
    results = list(confirmation_results)
    expected_positives = list(expected_positives)

    confirmed_positive_count = sum(
        1 for r in results if r.result == ConfirmationOutcome.CONFIRMED_POSITIVE)
    inconclusive_count = sum(
        1 for r in results if r.result == ConfirmationOutcome.INCONCLUSIVE)

    # Unexpected positives not sent for confirmation were accepted as failures
    confirmed_substances = {normalize_substance(r.substance) for r in results}
    unconfirmed_unexpected = [
        s for s in unexpected_positives
        if normalize_substance(s) not in confirmed_substances
    ]

    if inconclusive_count > 0:
        final_status = FinalStatus.INCONCLUSIVE
    elif confirmed_positive_count > 0 or unconfirmed_unexpected:
        if initial_screen_result in RESULTS_WITH_MISSING_MEDICATIONS:
            final_status = FinalStatus.MIXED_UNEXPECTED
        else:
            final_status = FinalStatus.UNEXPECTED_POSITIVE
    elif initial_screen_result in (InitialScreenResult.UNEXPECTED_NEGATIVE_CRITICAL,
                                   InitialScreenResult.MIXED_UNEXPECTED):
        # Confirmations ruled out the positives, but a required medication is still missing
        final_status = FinalStatus.UNEXPECTED_NEGATIVE_CRITICAL
    elif initial_screen_result == InitialScreenResult.UNEXPECTED_NEGATIVE_WARNING:
        final_status = FinalStatus.UNEXPECTED_NEGATIVE_WARNING
    elif expected_positives:
        final_status = FinalStatus.EXPECTED_POSITIVE
    else:
        final_status = FinalStatus.CONFIRMED_NEGATIVE

    if final_status in PASSING_FINAL_STATUSES and is_breathalyzer_positive(
            breathalyzer_taken, breathalyzer_result):
        final_status = FinalStatus.UNEXPECTED_POSITIVE

    return final_status


def validate_for_finalization(outcome: ClassificationOutcome,
                              decision: Optional[ConfirmationDecision]) -> None:
    """
    Guard a record before it is finalized and persisted.

    Raises:
        MissingConfirmationDecision: if a decision is required but absent or deferred
    """
    if outcome.auto_accept:
        return
    if decision is None or decision == ConfirmationDecision.PENDING_DECISION:
        raise MissingConfirmationDecision(
            f"Confirmation decision required for {outcome.initial_screen_result.value} "
            f"result (unexpected positives: {', '.join(outcome.unexpected_positives) or 'breathalyzer'})"
        )


class ConfirmationWorkflow:
    """
    State machine for the human decision on a single screen.

    The workflow holds the classification outcome it was started with; it
    never reclassifies. A final status is set exactly once.
    """

    def __init__(self,
                 outcome: ClassificationOutcome,
                 breathalyzer_taken: bool = False,
                 breathalyzer_result: Optional[float] = None):
        """
        Start a workflow for a classified screen.

        Args:
            outcome: Classification of the screen
            breathalyzer_taken: Whether a breathalyzer was administered
            breathalyzer_result: BAC reading, if taken
        """
        self.outcome = outcome
        self.breathalyzer_taken = breathalyzer_taken
        self.breathalyzer_result = breathalyzer_result

        self.decision: Optional[ConfirmationDecision] = None
        self.confirmation_substances: List[str] = []
        self.confirmation_results: List[ConfirmationResult] = []
        self.final_status: Optional[FinalStatus] = None

        self.state = (WorkflowState.NO_DECISION_NEEDED if outcome.auto_accept
                      else WorkflowState.DECISION_PENDING)

        self.logger = logging.getLogger(__name__)

    @property
    def requires_decision(self) -> bool:
        return self.state in (WorkflowState.DECISION_PENDING, WorkflowState.DEFERRED)

    def decide(self,
               decision: ConfirmationDecision,
               confirmation_substances: Optional[Iterable[str]] = None) -> WorkflowState:
        """
        Record the operator's decision.

        Args:
            decision: accept, request-confirmation or pending-decision
            confirmation_substances: Substances to send for confirmation.
                Defaults to every unexpected positive.

        Returns:
            The new workflow state

        Raises:
            InvalidWorkflowTransition: if no decision is expected in the current state
            InvalidConfirmationSubstanceSelection: if the selection is empty or
                contains substances that were not unexpected positives
        """
        if not self.requires_decision:
            raise InvalidWorkflowTransition(
                f"Cannot record a decision in state {self.state.value}")

        if decision == ConfirmationDecision.REQUEST_CONFIRMATION:
            substances = self._validate_substance_selection(confirmation_substances)
            self.confirmation_substances = substances
            self.state = WorkflowState.AWAITING_LAB_CONFIRMATION
        elif decision == ConfirmationDecision.ACCEPT:
            self.confirmation_substances = []
            self.state = WorkflowState.ACCEPTED
        else:
            self.state = WorkflowState.DEFERRED

        self.decision = decision
        self.logger.info(
            f"DECISION - {decision.value} - "
            f"Result: {self.outcome.initial_screen_result.value}"
            + (f" - Confirming: {', '.join(self.confirmation_substances)}"
               if self.confirmation_substances else "")
        )
        return self.state

    def record_confirmation_results(self, results: Iterable[ConfirmationResult]) -> None:
        """
        Store lab confirmation results.

        Raises:
            InvalidWorkflowTransition: if confirmation was not requested
            InvalidConfirmationSubstanceSelection: if a result is for a substance
                that was not sent for confirmation
        """
        if self.state != WorkflowState.AWAITING_LAB_CONFIRMATION:
            raise InvalidWorkflowTransition(
                f"Cannot record confirmation results in state {self.state.value}")

        results = list(results)
        requested = set(self.confirmation_substances)
        unexpected = sorted({normalize_substance(r.substance) for r in results} - requested)
        if unexpected:
            raise InvalidConfirmationSubstanceSelection(
                f"Results for substances not sent for confirmation: {', '.join(unexpected)}")

        self.confirmation_results = results

    def is_confirmation_complete(self) -> bool:
        return is_confirmation_complete(
            self.decision, self.confirmation_substances, self.confirmation_results)

    def finalize(self) -> FinalStatus:
        """
        Compute and fix the final status.

        Returns:
            FinalStatus

        Raises:
            MissingConfirmationDecision: if a decision is still required
            ConfirmationIncomplete: if confirmation results are outstanding
            InvalidWorkflowTransition: if the workflow was already finalized
        """
        if self.state == WorkflowState.FINALIZED:
            raise InvalidWorkflowTransition("Final status already computed")

        if self.requires_decision:
            validate_for_finalization(self.outcome, self.decision)

        if self.state == WorkflowState.AWAITING_LAB_CONFIRMATION:
            if not self.is_confirmation_complete():
                outstanding = sorted(
                    set(self.confirmation_substances)
                    - {normalize_substance(r.substance) for r in self.confirmation_results})
                raise ConfirmationIncomplete(
                    f"Awaiting confirmation results for: {', '.join(outstanding) or 'unknown'}")
            final_status = compute_final_status(
                self.outcome.initial_screen_result,
                self.outcome.expected_positives,
                self.outcome.unexpected_positives,
                self.confirmation_results,
                self.breathalyzer_taken,
                self.breathalyzer_result
            )
        else:
            final_status = FinalStatus.from_initial(self.outcome.initial_screen_result)

        self.final_status = final_status
        self.state = WorkflowState.FINALIZED
        return final_status

    def _validate_substance_selection(self, substances: Optional[Iterable[str]]) -> List[str]:
        """Validate a confirmation selection against the unexpected positives."""
        unexpected = list(self.outcome.unexpected_positives)

        if substances is None:
            selection = unexpected
        else:
            selection = []
            for substance in substances:
                value = normalize_substance(substance)
                if value and value not in selection:
                    selection.append(value)

        if not selection:
            raise InvalidConfirmationSubstanceSelection(
                "Confirmation requested without any substances")

        out_of_range = sorted(set(selection) - set(unexpected))
        if out_of_range:
            raise InvalidConfirmationSubstanceSelection(
                f"Not unexpected positives: {', '.join(out_of_range)}")

        return selection
