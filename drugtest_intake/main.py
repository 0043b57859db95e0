#!/usr/bin/env python3
"""
Drug Test Intake - Main Entrypoint

Command line access to client resolution, test record matching, screen
classification and final status computation against CSV exports or the
CMS record store API.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import config
from .core.classification import compute_test_results
from .core.client_resolver import ClientResolver
from .core.confirmation import compute_final_status
from .core.data_models import (
    ConfirmationOutcome,
    ConfirmationResult,
    InitialScreenResult,
    ScreeningInput
)
from .core.exceptions import IntakeError
from .core.expected_substances import capture_medication_snapshot
from .core.intake_service import IntakeService
from .core.panels import coerce_test_type
from .core.record_matcher import TestRecordMatcher
from .core.reporting_service import IntakeReportingService
from .record_store import HttpRecordStore, InMemoryRecordStore, RecordStore
from .reporting import generate_intake_quality_report
from .utils.normalizers import clean_substances


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    format_str = '%(asctime)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma separated CLI value into substance codes."""
    return clean_substances((value or '').split(','))


def parse_confirmation(value: str) -> ConfirmationResult:
    """Parse a 'substance=result' CLI value."""
    if '=' not in value:
        raise argparse.ArgumentTypeError(f"Expected substance=result, got '{value}'")
    substance, result = value.split('=', 1)
    try:
        outcome = ConfirmationOutcome(result.strip().lower())
    except ValueError:
        raise argparse.ArgumentTypeError(f"Unknown confirmation result: '{result}'")
    return ConfirmationResult(substance=substance.strip().lower(), result=outcome)


def build_record_store(args) -> RecordStore:
    """Create the record store selected on the command line."""
    if args.api_url:
        return HttpRecordStore(base_url=args.api_url, token=args.api_token)

    csv_files = [args.clients, args.medications, args.tests]
    if any(csv_files):
        for path in csv_files:
            if path and not Path(path).exists():
                raise FileNotFoundError(path)
        return InMemoryRecordStore.from_csv(args.clients, args.medications, args.tests)

    if config.is_api_configured():
        return HttpRecordStore()

    raise IntakeError("No record store configured: pass CSV exports or --api-url")


def print_json(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_resolve(args) -> int:
    store = build_record_store(args)
    resolver = ClientResolver(
        store,
        fuzzy_threshold=config.FUZZY_MATCH_THRESHOLD,
        exact_limit=config.EXACT_MATCH_LIMIT,
        fuzzy_limit=config.FUZZY_MATCH_LIMIT,
        pool_size=config.CANDIDATE_POOL_SIZE
    )
    resolution = resolver.resolve(args.first_name, args.last_name, args.middle_initial)
    print_json({
        'search_term': resolution.search_term,
        'matches': [m.to_dict() for m in resolution.matches]
    })
    return 0


def cmd_match_test(args) -> int:
    store = build_record_store(args)
    matcher = TestRecordMatcher(store, auto_select_threshold=config.AUTO_SELECT_THRESHOLD)
    ranked = matcher.find_matching_tests(args.name, args.date, args.test_type, args.screen_workflow)
    selected = matcher.auto_select(ranked)
    print_json({
        'auto_selected': selected.test.id if selected else None,
        'candidates': [m.to_dict() for m in matcher.top_candidates(ranked, args.limit)]
    })
    return 0


def cmd_classify(args) -> int:
    store = build_record_store(args)
    client = store.get_client(args.client_id)
    screening = ScreeningInput(
        detected_substances=frozenset(split_list(args.detected)),
        test_type=coerce_test_type(args.test_type),
        medications=capture_medication_snapshot(client.medications),
        is_dilute=args.dilute,
        breathalyzer_taken=args.breathalyzer is not None,
        breathalyzer_result=args.breathalyzer
    )
    outcome = compute_test_results(screening)

    data = outcome.to_dict()
    data['breathalyzer_positive'] = outcome.breathalyzer_positive
    data['medications_at_test_time'] = [m.to_dict() for m in screening.medications]
    print_json(data)
    return 0


def cmd_final_status(args) -> int:
    final_status = compute_final_status(
        InitialScreenResult(args.initial),
        split_list(args.expected_positives),
        split_list(args.unexpected_positives),
        args.confirmation or [],
        breathalyzer_taken=args.breathalyzer is not None,
        breathalyzer_result=args.breathalyzer
    )
    print(final_status.value)
    return 0


def cmd_intake(args) -> int:
    if not Path(args.reports).exists():
        raise FileNotFoundError(args.reports)

    store = build_record_store(args)
    service = IntakeService(store)

    def notify(payload):
        print(json.dumps(payload))

    stats = service.process_reports_file(args.reports, notify)
    queue = service.get_manual_review_queue()

    service.audit.log_session_summary(stats)
    IntakeReportingService.generate_session_report(stats, queue)
    IntakeReportingService.print_session_summary(stats)

    if args.report:
        with open(args.report, 'w', encoding='utf-8') as f:
            f.write(generate_intake_quality_report(stats, queue))
        logging.info(f"Quality report written to {args.report}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='drugtest-intake',
        description="Drug Test Intake - result classification and record matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --clients clients.csv resolve John Smith
  %(prog)s --tests tests.csv match-test --name "John Smith" --date 2024-01-15
  %(prog)s --clients clients.csv --medications meds.csv classify --client-id c1 \\
      --test-type 15-panel-instant --detected benzodiazepines,thc
  %(prog)s final-status --initial unexpected-positive --unexpected-positives thc \\
      --confirmation thc=confirmed-negative
  %(prog)s --clients clients.csv --medications meds.csv intake reports.csv --report quality.txt
        """
    )

    parser.add_argument('--clients', help='Clients CSV export')
    parser.add_argument('--medications', help='Client medications CSV export')
    parser.add_argument('--tests', help='Pending tests CSV export')
    parser.add_argument('--api-url', help='Record store API root (default from RECORD_STORE_URL)')
    parser.add_argument('--api-token', help='Record store API token (default from RECORD_STORE_TOKEN)')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    resolve = subparsers.add_parser('resolve', help='Find the client a donor name belongs to')
    resolve.add_argument('first_name')
    resolve.add_argument('last_name')
    resolve.add_argument('-m', '--middle-initial', help='Middle initial')
    resolve.set_defaults(func=cmd_resolve)

    match_test = subparsers.add_parser('match-test', help='Rank pending tests against a lab report')
    match_test.add_argument('--name', help='Donor name from the report')
    match_test.add_argument('--date', help='Collection date from the report')
    match_test.add_argument('--test-type', help='Test type of the report')
    match_test.add_argument('--screen-workflow', action='store_true',
                            help='Exclude tests that were already screened')
    match_test.add_argument('--limit', type=int, default=3,
                            help='Number of candidates to show (default: 3)')
    match_test.set_defaults(func=cmd_match_test)

    classify = subparsers.add_parser('classify', help="Classify a screen against a client's medications")
    classify.add_argument('--client-id', required=True)
    classify.add_argument('--test-type', required=True)
    classify.add_argument('--detected', default='', help='Comma separated detected substances')
    classify.add_argument('--dilute', action='store_true', help='Specimen reported dilute')
    classify.add_argument('--breathalyzer', type=float, help='Breathalyzer BAC reading')
    classify.set_defaults(func=cmd_classify)

    final_status = subparsers.add_parser('final-status', help='Compute the final status after confirmation')
    final_status.add_argument('--initial', required=True,
                              choices=[r.value for r in InitialScreenResult])
    final_status.add_argument('--expected-positives', default='')
    final_status.add_argument('--unexpected-positives', default='')
    final_status.add_argument('--confirmation', nargs='*', type=parse_confirmation,
                              help='Confirmation results as substance=result')
    final_status.add_argument('--breathalyzer', type=float, help='Breathalyzer BAC reading')
    final_status.set_defaults(func=cmd_final_status)

    intake = subparsers.add_parser('intake', help='Classify a batch of extracted screen reports')
    intake.add_argument('reports', help='Extracted reports CSV')
    intake.add_argument('--report', help='Write the intake quality report to this file')
    intake.set_defaults(func=cmd_intake)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for drug test intake."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except FileNotFoundError as e:
        logging.error(f"File not found: {e}")
        return 1
    except (IntakeError, ValueError) as e:
        logging.error(f"Processing failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
