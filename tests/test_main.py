"""
CLI smoke tests for the drugtest-intake entrypoint.
"""

import csv
import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from drugtest_intake.main import main


class TestMain(unittest.TestCase):
    """Test cases for the command line interface."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.clients = self._write_csv(
            'clients.csv',
            ['id', 'first_name', 'last_name', 'middle_initial', 'email', 'dob'],
            [['c1', 'John', 'Smith', '', '', '']]
        )
        self.medications = self._write_csv(
            'medications.csv',
            ['client_id', 'medication_name', 'status', 'detected_as', 'require_confirmation'],
            [['c1', 'Oxycodone', 'active', 'oxycodone', 'yes']]
        )
        self.tests = self._write_csv(
            'tests.csv',
            ['id', 'client_name', 'test_type', 'collection_date', 'screening_status', 'client_id'],
            [['t1', 'John Smith', '11-panel-lab', '2024-01-15', 'collected', 'c1']]
        )

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_csv(self, filename, headers, rows):
        filepath = Path(self.temp_dir) / filename
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows(rows)
        return str(filepath)

    def _run(self, argv):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            code = main(argv)
        return code, stdout.getvalue()

    def test_resolve(self):
        code, output = self._run(['--clients', self.clients, 'resolve', 'Jon', 'Smith'])

        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data['matches'][0]['id'], 'c1')
        self.assertEqual(data['matches'][0]['match_type'], 'fuzzy')

    def test_match_test(self):
        code, output = self._run([
            '--tests', self.tests, 'match-test',
            '--name', 'John Smith', '--date', '2024-01-16', '--test-type', '11-panel-lab'
        ])

        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data['auto_selected'], 't1')
        self.assertEqual(data['candidates'][0]['score'], 90)

    def test_classify(self):
        code, output = self._run([
            '--clients', self.clients, '--medications', self.medications,
            'classify', '--client-id', 'c1', '--test-type', '15-panel-instant',
            '--detected', 'cocaine'
        ])

        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data['initial_screen_result'], 'mixed-unexpected')
        self.assertEqual(data['unexpected_positives'], ['cocaine'])
        self.assertFalse(data['auto_accept'])

    def test_classify_unknown_client(self):
        code, _ = self._run([
            '--clients', self.clients, 'classify',
            '--client-id', 'missing', '--test-type', '15-panel-instant'
        ])
        self.assertEqual(code, 1)

    def test_classify_panel_mismatch(self):
        code, _ = self._run([
            '--clients', self.clients, 'classify',
            '--client-id', 'c1', '--test-type', 'etg-lab', '--detected', 'thc'
        ])
        self.assertEqual(code, 1)

    def test_final_status(self):
        code, output = self._run([
            'final-status', '--initial', 'unexpected-positive',
            '--unexpected-positives', 'thc',
            '--confirmation', 'thc=confirmed-negative'
        ])

        self.assertEqual(code, 0)
        self.assertEqual(output.strip(), 'confirmed-negative')

    def test_intake_batch(self):
        reports = self._write_csv(
            'reports.csv',
            ['test_id', 'donor_name', 'collection_date', 'test_type', 'detected_substances', 'is_dilute'],
            [
                ['t1', 'John Smith', '2024-01-15', '15-panel-instant', 'oxycodone', 'false'],
                ['t2', 'Mary Jones', '2024-01-15', '15-panel-instant', '', 'false'],
            ]
        )
        quality_report = str(Path(self.temp_dir) / 'quality.txt')

        with patch('sys.stderr', new_callable=io.StringIO) as stderr:
            code, output = self._run([
                '--clients', self.clients, '--medications', self.medications,
                'intake', reports, '--report', quality_report
            ])

        self.assertEqual(code, 0)
        notification = json.loads(output.strip())
        self.assertEqual(notification['test_id'], 't1')
        self.assertEqual(notification['final_status'], 'expected-positive')
        self.assertIn("DRUG TEST INTAKE SESSION REPORT", stderr.getvalue())
        self.assertIn("Mary Jones", stderr.getvalue())

        with open(quality_report, encoding='utf-8') as f:
            report_text = f.read()
        self.assertIn("DRUG TEST INTAKE QUALITY REPORT", report_text)
        self.assertIn("MANUAL REVIEW QUEUE (1 items)", report_text)

    def test_intake_missing_reports(self):
        code, _ = self._run(['--clients', self.clients, 'intake', str(Path(self.temp_dir) / 'nope.csv')])
        self.assertEqual(code, 1)

    def test_missing_csv(self):
        code, _ = self._run(['--clients', str(Path(self.temp_dir) / 'nope.csv'), 'resolve', 'A', 'B'])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
