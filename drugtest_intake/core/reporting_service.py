"""
Intake Reporting Service

Service for printing intake session reports.
"""

import sys
from typing import List

from .data_models import SessionStatistics


class IntakeReportingService:
    """Service for generating intake reports."""

    @staticmethod
    def generate_session_report(stats: SessionStatistics, manual_review_queue: List[dict]):
        """Print the end-of-session intake report."""
        print("\n" + "="*70, file=sys.stderr)
        print("DRUG TEST INTAKE SESSION REPORT", file=sys.stderr)
        print("="*70, file=sys.stderr)

        IntakeReportingService._print_overall_statistics(stats)
        IntakeReportingService._print_result_distribution(stats)
        IntakeReportingService._print_manual_review_queue(manual_review_queue)

    @staticmethod
    def _print_overall_statistics(stats: SessionStatistics):
        """Print overall statistics section."""
        print(f"\nOVERALL STATISTICS:", file=sys.stderr)
        print(f"Screens classified: {stats.total_processed:,}", file=sys.stderr)
        print(f"Auto-accepted: {stats.auto_accepted:,} ({stats.get_auto_accept_rate():.1%})", file=sys.stderr)
        print(f"Decision required: {stats.decision_required:,}", file=sys.stderr)
        print(f"Finalized: {stats.finalized:,}", file=sys.stderr)
        print(f"Client lookups: exact {stats.exact_resolutions:,} | "
              f"fuzzy {stats.fuzzy_resolutions:,} | "
              f"unresolved {stats.unresolved:,}", file=sys.stderr)

    @staticmethod
    def _print_result_distribution(stats: SessionStatistics):
        """Print initial result and final status distribution."""
        if stats.result_counts:
            print(f"\nINITIAL SCREEN RESULTS:", file=sys.stderr)
            for result, count in sorted(stats.result_counts.items()):
                print(f"  {result}: {count:,}", file=sys.stderr)

        if stats.final_status_counts:
            print(f"\nFINAL STATUSES:", file=sys.stderr)
            for status, count in sorted(stats.final_status_counts.items()):
                print(f"  {status}: {count:,}", file=sys.stderr)

    @staticmethod
    def _print_manual_review_queue(manual_review_queue: List[dict]):
        """Print manual review queue details."""
        if not manual_review_queue:
            return

        print(f"\nMANUAL REVIEW QUEUE ({len(manual_review_queue)} items):", file=sys.stderr)
        print("-" * 50, file=sys.stderr)

        for i, item in enumerate(manual_review_queue[:10], 1):
            print(f"{i:2d}. {item.get('subject', ''):<30} | {item.get('reason', '')}", file=sys.stderr)

        if len(manual_review_queue) > 10:
            print(f"... and {len(manual_review_queue) - 10} more items", file=sys.stderr)

    @staticmethod
    def print_session_summary(stats: SessionStatistics):
        """Print final session summary."""
        print(f"\nIntake processing complete!", file=sys.stderr)
        print(f"Resolution rate: {stats.get_resolution_rate():.1%} | "
              f"Auto-accept rate: {stats.get_auto_accept_rate():.1%}", file=sys.stderr)
