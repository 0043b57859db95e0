"""
Error taxonomy for the intake core.

Only boundary operations raise: record-store lookups and confirmation
workflow transitions. Similarity, matching and classification functions are
total and never raise.
"""

from typing import Iterable, Optional


class IntakeError(Exception):
    """Base class for all intake core errors."""


class LookupFailure(IntakeError):
    """The record store query itself failed (network or storage layer)."""


class LookupTimeout(LookupFailure):
    """The record store query did not complete within the caller's timeout."""


class ClientNotFound(LookupFailure):
    """A client referenced by id does not exist in the record store."""

    def __init__(self, client_id: str):
        super().__init__(f"Client not found: {client_id}")
        self.client_id = client_id


class PanelMismatch(IntakeError):
    """A substance falls outside the panel screened by the selected test type."""

    def __init__(self, substances: Iterable[str], test_type: Optional[str]):
        self.substances = sorted(substances)
        self.test_type = test_type
        super().__init__(
            f"Substances not screened by {test_type or 'any panel'}: "
            f"{', '.join(self.substances)}"
        )


class WorkflowError(IntakeError):
    """Base class for confirmation workflow violations."""


class MissingConfirmationDecision(WorkflowError):
    """Finalization attempted while a confirmation decision is required and absent."""


class InvalidConfirmationSubstanceSelection(WorkflowError):
    """Confirmation requested with an empty or out-of-range substance set."""


class ConfirmationIncomplete(WorkflowError):
    """Finalization attempted before every requested confirmation result arrived."""


class InvalidWorkflowTransition(WorkflowError):
    """The requested transition is not allowed from the current workflow state."""
