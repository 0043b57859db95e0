"""
Audit logging and quality reporting for drug test intake.

Structured log lines for each resolution, classification and finalization
so a screen's outcome can be traced back to the inputs it was computed from.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.data_models import (
    ClassificationOutcome,
    ClientResolution,
    FinalStatus,
    SessionStatistics
)


class ClassificationAuditLogger:
    """
    Audit logging for client resolution and result classification.

    Donor names are logged as the search term only; substances and statuses
    are logged by code.
    """

    def __init__(self, logger_name: str = "drugtest_intake.audit"):
        """
        Initialize audit logger.

        Args:
            logger_name: Name for the logger instance
        """
        self.logger = logging.getLogger(logger_name)
        self.session_start_time = datetime.now()

    def log_resolution(self, resolution: ClientResolution) -> None:
        """
        Log a client lookup for audit trail.

        Args:
            resolution: Result of the lookup
        """
        if not resolution.match_found:
            self.logger.info(f"NO_MATCH - '{resolution.search_term}' - No matching client found")
            return

        best = resolution.matches[0]
        log_parts = [
            f"RESOLVED - '{resolution.search_term}'",
            f"Client: {best.client.id}",
            f"Match: {best.match_type.value}",
            f"Score: {best.score:.1%}"
        ]
        if len(resolution.matches) > 1:
            log_parts.append(f"Candidates: {len(resolution.matches)}")

        self.logger.info(" - ".join(log_parts))

    def log_classification(self, test_id: str, outcome: ClassificationOutcome) -> None:
        """
        Log a screen classification.

        Args:
            test_id: Test record identifier
            outcome: Classification of the screen
        """
        log_parts = [
            f"CLASSIFIED - Test {test_id}",
            f"Result: {outcome.initial_screen_result.value}"
        ]
        if outcome.expected_positives:
            log_parts.append(f"Expected: {', '.join(outcome.expected_positives)}")
        if outcome.unexpected_positives:
            log_parts.append(f"Unexpected: {', '.join(outcome.unexpected_positives)}")
        if outcome.unexpected_negatives:
            log_parts.append(f"Missing: {', '.join(outcome.unexpected_negatives)}")
        if outcome.breathalyzer_positive:
            log_parts.append("BREATHALYZER_POSITIVE")

        self.logger.info(" - ".join(log_parts))

        if not outcome.auto_accept:
            self.logger.warning(
                f"DECISION_REQUIRED - Test {test_id} - "
                f"{outcome.initial_screen_result.value}"
            )

    def log_finalization(self, test_id: str, final_status: FinalStatus) -> None:
        self.logger.info(f"FINALIZED - Test {test_id} - Status: {final_status.value}")

    def log_session_summary(self, stats: SessionStatistics) -> None:
        """
        Log summary statistics for the intake session.

        Args:
            stats: Session statistics to log
        """
        session_duration = datetime.now() - self.session_start_time

        self.logger.info(f"INTAKE_SESSION_COMPLETE - Duration: {session_duration}")
        self.logger.info(f"TOTAL_PROCESSED: {stats.total_processed}")
        self.logger.info(f"AUTO_ACCEPTED: {stats.auto_accepted}")
        self.logger.info(f"DECISION_REQUIRED: {stats.decision_required}")
        self.logger.info(f"FINALIZED: {stats.finalized}")

        if stats.result_counts:
            self.logger.info("RESULT_DISTRIBUTION:")
            for result, count in sorted(stats.result_counts.items()):
                self.logger.info(f"  {result}: {count}")

        if stats.final_status_counts:
            self.logger.info("FINAL_STATUS_DISTRIBUTION:")
            for status, count in sorted(stats.final_status_counts.items()):
                self.logger.info(f"  {status}: {count}")


def generate_intake_quality_report(stats: SessionStatistics,
                                   manual_review_queue: Optional[List[Dict[str, Any]]] = None) -> str:
    """
    Generate an intake quality report.

    Args:
        stats: Session statistics
        manual_review_queue: Items that need an operator

    Returns:
        Formatted report
    """
    report_lines = [
        "=" * 70,
        "DRUG TEST INTAKE QUALITY REPORT",
        "=" * 70,
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        ""
    ]

    total = stats.total_processed
    if total > 0:
        report_lines.extend([
            "OVERALL METRICS:",
            f"  Screens classified: {total:,}",
            f"  Auto-accepted: {stats.auto_accepted:,} ({stats.get_auto_accept_rate():.1%})",
            f"  Decision required: {stats.decision_required:,}",
            f"  Finalized: {stats.finalized:,}",
            ""
        ])

    lookups = stats.exact_resolutions + stats.fuzzy_resolutions + stats.unresolved
    if lookups > 0:
        report_lines.extend([
            "CLIENT RESOLUTION:",
            f"  Exact: {stats.exact_resolutions:,}",
            f"  Fuzzy: {stats.fuzzy_resolutions:,}",
            f"  Unresolved: {stats.unresolved:,}",
            f"  Resolution rate: {stats.get_resolution_rate():.1%}",
            ""
        ])

    if stats.result_counts:
        report_lines.append("INITIAL SCREEN RESULTS:")
        for result, count in sorted(stats.result_counts.items(), key=lambda x: x[1], reverse=True):
            percentage = (count / total * 100) if total > 0 else 0
            report_lines.append(f"  {result}: {count:,} ({percentage:.1f}%)")
        report_lines.append("")

    if stats.final_status_counts:
        report_lines.append("FINAL STATUSES:")
        for status, count in sorted(stats.final_status_counts.items(), key=lambda x: x[1], reverse=True):
            report_lines.append(f"  {status}: {count:,}")
        report_lines.append("")

    if manual_review_queue:
        report_lines.extend([
            f"MANUAL REVIEW QUEUE ({len(manual_review_queue)} items):",
            "-" * 50
        ])
        for i, item in enumerate(manual_review_queue[:10], 1):
            report_lines.append(f"{i:2d}. {item.get('subject', '')} | {item.get('reason', 'Unknown')}")
        if len(manual_review_queue) > 10:
            report_lines.append(f"    ... and {len(manual_review_queue) - 10} more items")
        report_lines.append("")

    report_lines.append("=" * 70)
    return "\n".join(report_lines)
