"""
Tests for audit logging and session reports.
"""

import io
import unittest
from unittest.mock import patch

from drugtest_intake.core.classification import classify
from drugtest_intake.core.data_models import (
    ClientMatch,
    ClientRecord,
    ClientResolution,
    FinalStatus,
    InitialScreenResult,
    MatchType,
    SessionStatistics
)
from drugtest_intake.core.reporting_service import IntakeReportingService
from drugtest_intake.reporting import ClassificationAuditLogger, generate_intake_quality_report


def make_stats():
    stats = SessionStatistics(total_processed=4, auto_accepted=3, decision_required=1,
                              exact_resolutions=3, unresolved=1)
    stats.record_result(InitialScreenResult.NEGATIVE)
    stats.record_result(InitialScreenResult.UNEXPECTED_POSITIVE)
    stats.record_final_status(FinalStatus.NEGATIVE)
    return stats


class TestSessionStatistics(unittest.TestCase):
    """Test cases for SessionStatistics."""

    def test_rates(self):
        stats = make_stats()
        self.assertEqual(stats.get_auto_accept_rate(), 0.75)
        self.assertEqual(stats.get_resolution_rate(), 0.75)
        self.assertEqual(stats.finalized, 1)

    def test_empty_rates(self):
        stats = SessionStatistics()
        self.assertEqual(stats.get_auto_accept_rate(), 0.0)
        self.assertEqual(stats.get_resolution_rate(), 0.0)


class TestClassificationAuditLogger(unittest.TestCase):
    """Test cases for ClassificationAuditLogger."""

    def setUp(self):
        """Set up test fixtures."""
        self.audit = ClassificationAuditLogger()

    def test_log_resolution(self):
        client = ClientRecord(id="c1", first_name="John", last_name="Smith")
        resolution = ClientResolution(
            matches=[ClientMatch(client=client, match_type=MatchType.EXACT)],
            search_term="John Smith"
        )
        with self.assertLogs("drugtest_intake.audit", level="INFO") as logs:
            self.audit.log_resolution(resolution)
        self.assertIn("RESOLVED", logs.output[0])
        self.assertIn("c1", logs.output[0])

    def test_log_no_match(self):
        with self.assertLogs("drugtest_intake.audit", level="INFO") as logs:
            self.audit.log_resolution(ClientResolution(matches=[], search_term="Nobody"))
        self.assertIn("NO_MATCH", logs.output[0])

    def test_log_classification_requiring_decision(self):
        outcome = classify({"cocaine"}, set(), set())
        with self.assertLogs("drugtest_intake.audit", level="INFO") as logs:
            self.audit.log_classification("t1", outcome)

        self.assertIn("CLASSIFIED", logs.output[0])
        self.assertIn("Unexpected: cocaine", logs.output[0])
        self.assertIn("DECISION_REQUIRED", logs.output[1])

    def test_log_session_summary(self):
        with self.assertLogs("drugtest_intake.audit", level="INFO") as logs:
            self.audit.log_session_summary(make_stats())
        self.assertTrue(any("TOTAL_PROCESSED: 4" in line for line in logs.output))


class TestReports(unittest.TestCase):
    """Test cases for quality and session reports."""

    def test_quality_report(self):
        queue = [{'subject': 'Test t1', 'reason': 'Decision required: unexpected-positive'}]
        report = generate_intake_quality_report(make_stats(), queue)

        self.assertIn("DRUG TEST INTAKE QUALITY REPORT", report)
        self.assertIn("Auto-accepted: 3 (75.0%)", report)
        self.assertIn("MANUAL REVIEW QUEUE (1 items)", report)

    def test_session_report_printed_to_stderr(self):
        queue = [{'subject': 'Nobody', 'reason': 'No matching client'}]
        with patch('sys.stderr', new_callable=io.StringIO) as stderr:
            IntakeReportingService.generate_session_report(make_stats(), queue)
            IntakeReportingService.print_session_summary(make_stats())

        output = stderr.getvalue()
        self.assertIn("DRUG TEST INTAKE SESSION REPORT", output)
        self.assertIn("unexpected-positive: 1", output)
        self.assertIn("Nobody", output)


if __name__ == '__main__':
    unittest.main()
