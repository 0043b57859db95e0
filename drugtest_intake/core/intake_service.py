"""
Drug Test Intake Service

Service layer that ties client resolution, test record matching,
classification and the confirmation workflow to the record store.
"""

import csv
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .classification import compute_test_results
from .client_resolver import ClientResolver
from .confirmation import ConfirmationWorkflow, WorkflowState
from .data_models import (
    ClientRecord,
    ClientResolution,
    ConfirmationDecision,
    ConfirmationResult,
    ExtractedReport,
    FinalStatus,
    MatchType,
    ScreeningInput,
    SessionStatistics,
    TestMatch,
    TestRecord,
    TestType
)
from .exceptions import PanelMismatch
from .expected_substances import capture_medication_snapshot
from .panels import coerce_test_type
from .record_matcher import TestRecordMatcher
from ..config import config
from ..record_store import TRUE_VALUES
from ..reporting.audit_logger import ClassificationAuditLogger
from ..utils.normalizers import clean_substances, parse_full_name

# Notification stages; each is sent at most once per record
STAGE_SCREENED = "screened"
STAGE_CONFIRMED = "confirmed"

Notifier = Callable[[Dict[str, Any]], None]


class IntakeService:
    """Service for drug test intake operations."""

    def __init__(self,
                 record_store,
                 fuzzy_threshold: Optional[float] = None,
                 auto_select_threshold: Optional[int] = None,
                 audit_logger: Optional[ClassificationAuditLogger] = None):
        """
        Initialize the intake service.

        Args:
            record_store: RecordStore collaborator
            fuzzy_threshold: Minimum fuzzy name score (default from config)
            auto_select_threshold: Minimum test match score for auto-selection (default from config)
            audit_logger: Audit logger (a default one is created if omitted)
        """
        self.record_store = record_store
        self.resolver = ClientResolver(
            record_store,
            fuzzy_threshold=config.FUZZY_MATCH_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold,
            exact_limit=config.EXACT_MATCH_LIMIT,
            fuzzy_limit=config.FUZZY_MATCH_LIMIT,
            pool_size=config.CANDIDATE_POOL_SIZE
        )
        self.matcher = TestRecordMatcher(
            record_store,
            auto_select_threshold=(config.AUTO_SELECT_THRESHOLD if auto_select_threshold is None
                                   else auto_select_threshold)
        )
        self.audit = audit_logger or ClassificationAuditLogger()
        self.stats = SessionStatistics()
        self.manual_review_queue: List[dict] = []
        self.logger = logging.getLogger(__name__)

    def resolve_client(self, report: ExtractedReport) -> ClientResolution:
        """
        Find the client an uploaded report belongs to.

        Args:
            report: Data extracted from the report

        Returns:
            ClientResolution (empty when no client matched or no name was extracted)

        Raises:
            LookupFailure: if the record store query fails
        """
        name = parse_full_name(report.donor_name)
        if not name['last']:
            self.logger.warning("No donor name extracted from report")
            resolution = ClientResolution(matches=[], search_term="")
        else:
            middle_initial = name['middle'][0] if name['middle'] else None
            resolution = self.resolver.resolve(name['first'], name['last'], middle_initial)

        if not resolution.match_found:
            self.stats.unresolved += 1
            self.manual_review_queue.append({
                'subject': resolution.search_term or '(no name)',
                'reason': 'No matching client'
            })
        elif resolution.matches[0].match_type == MatchType.EXACT:
            self.stats.exact_resolutions += 1
        else:
            self.stats.fuzzy_resolutions += 1

        self.audit.log_resolution(resolution)
        return resolution

    def match_test(self,
                   report: ExtractedReport,
                   test_type: Union[TestType, str, None] = None,
                   is_screen_workflow: bool = False) -> Optional[TestMatch]:
        """
        Select the pending test record a lab report belongs to.

        Returns:
            The auto-selected TestMatch, or None when an operator has to choose

        Raises:
            LookupFailure: if the record store query fails
        """
        ranked = self.matcher.find_matching_tests(
            report.donor_name, report.collection_date, test_type, is_screen_workflow)
        selected = self.matcher.auto_select(ranked)

        if selected is None:
            candidates = self.matcher.top_candidates(ranked)
            self.manual_review_queue.append({
                'subject': report.donor_name or '(no name)',
                'reason': (f"Best test match score {ranked[0].score}" if ranked
                           else "No pending tests"),
                'candidates': [c.to_dict() for c in candidates]
            })
            self.logger.warning(
                f"MANUAL_SELECTION_REQUIRED - '{report.donor_name or ''}' - "
                f"{len(candidates)} candidate test(s)"
            )
        return selected

    def create_test_record(self,
                           test_id: str,
                           client: ClientRecord,
                           test_type: Union[TestType, str],
                           detected_substances: Iterable[str],
                           is_dilute: bool = False,
                           breathalyzer_taken: bool = False,
                           breathalyzer_result: Optional[float] = None) -> TestRecord:
        """
        Classify a screen for a resolved client and persist the result.

        The client's active medications are captured at this point and stored
        with the record; later medication edits do not affect it.

        Returns:
            TestRecord carrying the classification outcome

        Raises:
            PanelMismatch: if a detected substance is not on the test type's panel
            LookupFailure: if persisting the result fails
        """
        resolved_type = coerce_test_type(test_type)
        snapshot = capture_medication_snapshot(client.medications)
        detected = clean_substances(detected_substances)

        screening = ScreeningInput(
            detected_substances=frozenset(detected),
            test_type=resolved_type,
            medications=snapshot,
            is_dilute=is_dilute,
            breathalyzer_taken=breathalyzer_taken,
            breathalyzer_result=breathalyzer_result
        )
        outcome = compute_test_results(screening)

        record = TestRecord(
            id=test_id,
            client_id=client.id,
            test_type=resolved_type,
            detected_substances=detected,
            medications_at_test_time=snapshot,
            is_dilute=is_dilute,
            breathalyzer_taken=breathalyzer_taken,
            breathalyzer_result=breathalyzer_result,
            outcome=outcome
        )

        self.stats.total_processed += 1
        self.stats.record_result(outcome.initial_screen_result)
        if outcome.auto_accept:
            self.stats.auto_accepted += 1
        else:
            self.stats.decision_required += 1
            self.manual_review_queue.append({
                'subject': f"Test {test_id}",
                'reason': f"Decision required: {outcome.initial_screen_result.value}"
            })

        fields = outcome.to_dict()
        fields.update({
            'detected_substances': detected,
            'is_dilute': is_dilute,
            'medications_at_test_time': [m.to_dict() for m in snapshot],
        })
        self.record_store.save_test_result(test_id, fields)
        self.audit.log_classification(test_id, outcome)
        return record

    def record_decision(self,
                        record: TestRecord,
                        decision: ConfirmationDecision,
                        confirmation_substances: Optional[Iterable[str]] = None) -> WorkflowState:
        """
        Record the operator's confirmation decision and persist it.

        Raises:
            InvalidWorkflowTransition: if the record takes no decision
            InvalidConfirmationSubstanceSelection: if the selection is invalid
        """
        workflow = self._restore_workflow(record)
        state = workflow.decide(decision, confirmation_substances)

        record.confirmation_decision = decision
        record.confirmation_substances = list(workflow.confirmation_substances)
        self.record_store.save_test_result(record.id, {
            'confirmation_decision': decision.value,
            'confirmation_substances': record.confirmation_substances,
        })
        return state

    def record_confirmation_results(self,
                                    record: TestRecord,
                                    results: Iterable[ConfirmationResult]) -> bool:
        """
        Store lab confirmation results on a record.

        Returns:
            True when every requested substance has a result
        """
        workflow = self._restore_workflow(record)
        workflow.record_confirmation_results(results)

        record.confirmation_results = list(workflow.confirmation_results)
        self.record_store.save_test_result(record.id, {
            'confirmation_results': [r.to_dict() for r in record.confirmation_results],
        })
        return workflow.is_confirmation_complete()

    def finalize_and_notify(self, record: TestRecord, notifier: Notifier) -> Optional[FinalStatus]:
        """
        Finalize a record, persist its final status and notify once.

        The notification stage marker is written together with the final
        status before the notifier runs; a repeated call for a stage that was
        already sent is skipped.

        Args:
            record: Classified test record
            notifier: Callable receiving the notification payload

        Returns:
            The final status

        Raises:
            MissingConfirmationDecision: if a decision is still required
            ConfirmationIncomplete: if confirmation results are outstanding
        """
        stage = (STAGE_CONFIRMED
                 if record.confirmation_decision == ConfirmationDecision.REQUEST_CONFIRMATION
                 else STAGE_SCREENED)

        if record.notification_stage == stage:
            self.logger.info(f"Notification for test {record.id} already sent at stage '{stage}', skipping")
            return record.final_status

        workflow = self._restore_workflow(record)
        final_status = workflow.finalize()

        self.record_store.save_test_result(record.id, {
            'final_status': final_status.value,
            'notification_stage': stage,
        })
        record.final_status = final_status
        record.notification_stage = stage

        self.stats.record_final_status(final_status)
        self.audit.log_finalization(record.id, final_status)

        outcome = record.outcome
        notifier({
            'test_id': record.id,
            'final_status': final_status.value,
            'expected_positives': list(outcome.expected_positives),
            'unexpected_positives': list(outcome.unexpected_positives),
            'unexpected_negatives': list(outcome.unexpected_negatives),
        })
        return final_status

    def process_reports_file(self, reports_file: str, notifier: Notifier) -> SessionStatistics:
        """
        Process a CSV of extracted screen reports.

        Each row is resolved to a client and classified. Auto-accepted
        screens are finalized and notified; everything else lands in the
        manual review queue.

        Args:
            reports_file: Path to the extracted reports CSV
            notifier: Callable receiving notification payloads

        Returns:
            Session statistics

        Raises:
            LookupFailure: if the record store cannot be reached
        """
        self.logger.info(f"Processing reports file: {reports_file}")

        # Reset for new session
        self.manual_review_queue = []
        self.stats = SessionStatistics()

        with open(reports_file, 'r', encoding='utf-8') as infile:
            reader = csv.DictReader(infile)
            for row in reader:
                self._process_report_row(row, notifier)

        return self.stats

    def _process_report_row(self, row: dict, notifier: Notifier) -> Optional[TestRecord]:
        """Resolve, classify and, when possible, finalize one extracted report."""
        report = ExtractedReport(
            donor_name=(row.get('donor_name') or '').strip() or None,
            collection_date=(row.get('collection_date') or '').strip() or None,
            detected_substances=(row.get('detected_substances') or '').split(';'),
            is_dilute=(row.get('is_dilute') or '').strip().lower() in TRUE_VALUES
        )
        test_type = (row.get('test_type') or '').strip() or None
        breathalyzer = (row.get('breathalyzer') or '').strip()

        test_id = (row.get('test_id') or '').strip()
        if not test_id:
            selected = self.match_test(report, test_type)
            if selected is None:
                return None
            test_id = selected.test.id

        resolution = self.resolve_client(report)
        if not resolution.match_found:
            return None

        top = resolution.matches[0]
        if top.match_type != MatchType.EXACT or len(resolution.matches) > 1:
            self.manual_review_queue.append({
                'subject': f"Test {test_id}",
                'reason': (f"Client selection required: {len(resolution.matches)} "
                           f"{top.match_type.value} match(es) for '{resolution.search_term}'")
            })
            return None

        try:
            record = self.create_test_record(
                test_id,
                top.client,
                test_type,
                report.detected_substances,
                is_dilute=report.is_dilute,
                breathalyzer_taken=bool(breathalyzer),
                breathalyzer_result=float(breathalyzer) if breathalyzer else None
            )
        except (PanelMismatch, ValueError) as e:
            self.logger.error(f"Test {test_id} not classified: {e}")
            self.manual_review_queue.append({
                'subject': f"Test {test_id}",
                'reason': f"Invalid report data: {e}"
            })
            return None

        if record.outcome.auto_accept:
            self.finalize_and_notify(record, notifier)
        return record

    def get_manual_review_queue(self) -> List[dict]:
        """Get the current manual review queue."""
        return self.manual_review_queue.copy()

    def get_session_statistics(self) -> SessionStatistics:
        return self.stats

    def _restore_workflow(self, record: TestRecord) -> ConfirmationWorkflow:
        """Rebuild the confirmation workflow from a record's stored fields."""
        if record.outcome is None:
            raise ValueError(f"Test {record.id} has not been classified")

        workflow = ConfirmationWorkflow(
            record.outcome,
            record.breathalyzer_taken,
            record.breathalyzer_result
        )
        if record.final_status is not None:
            workflow.final_status = record.final_status
            workflow.state = WorkflowState.FINALIZED
            return workflow

        if record.confirmation_decision is not None and workflow.requires_decision:
            workflow.decide(record.confirmation_decision, record.confirmation_substances or None)
        if record.confirmation_results:
            workflow.record_confirmation_results(record.confirmation_results)
        return workflow
