"""
Tests for result classification

Covers expected substance resolution, the six initial screen categories,
panel validation and the breathalyzer override.
"""

import unittest

from drugtest_intake.core.classification import (
    classify,
    compute_test_results,
    is_breathalyzer_positive,
    preview_classification
)
from drugtest_intake.core.data_models import (
    ClientMedication,
    InitialScreenResult,
    MedicationSnapshot,
    ScreeningInput,
    TestType
)
from drugtest_intake.core.exceptions import PanelMismatch
from drugtest_intake.core.expected_substances import (
    capture_medication_snapshot,
    resolve_expected_substances
)
from drugtest_intake.core.panels import coerce_test_type, format_substance, get_panel


def snapshot(name, detected_as, require_confirmation=False):
    return MedicationSnapshot(
        medication_name=name,
        detected_as=frozenset(detected_as),
        require_confirmation=require_confirmation
    )


def screening(detected, medications=(), test_type=TestType.PANEL_15_INSTANT, **kwargs):
    return ScreeningInput(
        detected_substances=frozenset(detected),
        test_type=test_type,
        medications=tuple(medications),
        **kwargs
    )


class TestExpectedSubstances(unittest.TestCase):
    """Test cases for medication snapshots and expected substances."""

    def test_snapshot_keeps_active_only(self):
        medications = [
            ClientMedication("Oxycodone", status="active", detected_as=["oxycodone"]),
            ClientMedication("Xanax", status="discontinued", detected_as=["benzodiazepines"]),
        ]
        result = capture_medication_snapshot(medications)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].medication_name, "Oxycodone")

    def test_snapshot_strips_none(self):
        medications = [ClientMedication("Vitamin D", detected_as=["none"])]
        self.assertEqual(capture_medication_snapshot(medications)[0].detected_as, frozenset())

    def test_snapshot_unaffected_by_later_edits(self):
        med = ClientMedication("Oxycodone", detected_as=["oxycodone"], require_confirmation=True)
        result = capture_medication_snapshot([med])

        med.detected_as.append("opiates")
        med.status = "discontinued"
        med.require_confirmation = False

        self.assertEqual(result[0].detected_as, frozenset(["oxycodone"]))
        self.assertTrue(result[0].require_confirmation)

    def test_expected_and_critical(self):
        meds = [
            snapshot("Oxycodone", ["oxycodone"], require_confirmation=True),
            snapshot("Adderall", ["amphetamines"]),
        ]
        expectations = resolve_expected_substances(meds)

        self.assertEqual(expectations.expected, frozenset(["oxycodone", "amphetamines"]))
        self.assertEqual(expectations.critical, frozenset(["oxycodone"]))

    def test_filtered_to_panel(self):
        meds = [snapshot("Oxycodone", ["oxycodone"], require_confirmation=True)]
        expectations = resolve_expected_substances(meds, TestType.PANEL_11_LAB)

        self.assertEqual(expectations.expected, frozenset())
        self.assertEqual(expectations.critical, frozenset())


class TestClassify(unittest.TestCase):
    """Test cases for the six-way classification."""

    def test_negative(self):
        outcome = classify(set(), set(), set())
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.NEGATIVE)
        self.assertTrue(outcome.auto_accept)

    def test_expected_positive(self):
        outcome = classify({"oxycodone"}, {"oxycodone"}, set())
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.EXPECTED_POSITIVE)
        self.assertEqual(outcome.expected_positives, ("oxycodone",))
        self.assertTrue(outcome.auto_accept)

    def test_mixed_unexpected(self):
        outcome = classify({"cocaine"}, {"oxycodone"}, {"oxycodone"})

        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.MIXED_UNEXPECTED)
        self.assertEqual(outcome.unexpected_positives, ("cocaine",))
        self.assertEqual(outcome.critical_negatives, ("oxycodone",))
        self.assertFalse(outcome.auto_accept)

    def test_mixed_unexpected_with_warning_negative(self):
        outcome = classify({"cocaine"}, {"oxycodone"}, set())
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.MIXED_UNEXPECTED)
        self.assertEqual(outcome.warning_negatives, ("oxycodone",))

    def test_unexpected_positive(self):
        outcome = classify({"thc", "cocaine"}, set(), set())

        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.UNEXPECTED_POSITIVE)
        self.assertEqual(outcome.unexpected_positives, ("cocaine", "thc"))
        self.assertFalse(outcome.auto_accept)

    def test_unexpected_negative_critical_is_auto_accepted(self):
        outcome = classify(set(), {"oxycodone"}, {"oxycodone"})

        self.assertEqual(outcome.initial_screen_result,
                         InitialScreenResult.UNEXPECTED_NEGATIVE_CRITICAL)
        self.assertTrue(outcome.auto_accept)

    def test_unexpected_negative_warning(self):
        outcome = classify(set(), {"oxycodone"}, set())

        self.assertEqual(outcome.initial_screen_result,
                         InitialScreenResult.UNEXPECTED_NEGATIVE_WARNING)
        self.assertEqual(outcome.unexpected_negatives, ("oxycodone",))
        self.assertTrue(outcome.auto_accept)

    def test_critical_outranks_warning(self):
        outcome = classify(set(), {"oxycodone", "amphetamines"}, {"oxycodone"})

        self.assertEqual(outcome.initial_screen_result,
                         InitialScreenResult.UNEXPECTED_NEGATIVE_CRITICAL)
        self.assertEqual(outcome.critical_negatives, ("oxycodone",))
        self.assertEqual(outcome.warning_negatives, ("amphetamines",))
        self.assertEqual(outcome.unexpected_negatives, ("amphetamines", "oxycodone"))

    def test_partitions_detected(self):
        detected = {"oxycodone", "cocaine", "thc"}
        outcome = classify(detected, {"oxycodone", "amphetamines"}, set())

        self.assertEqual(set(outcome.expected_positives) | set(outcome.unexpected_positives), detected)
        self.assertFalse(set(outcome.expected_positives) & set(outcome.unexpected_positives))

    def test_auto_accept_iff_no_unexpected_positives(self):
        cases = [
            (set(), set(), set()),
            ({"thc"}, set(), set()),
            ({"thc"}, {"thc"}, set()),
            (set(), {"thc"}, {"thc"}),
            ({"cocaine"}, {"thc"}, set()),
        ]
        for detected, expected, critical in cases:
            with self.subTest(detected=detected, expected=expected):
                outcome = classify(detected, expected, critical)
                self.assertEqual(outcome.auto_accept, not outcome.unexpected_positives)

    def test_pure(self):
        first = classify({"cocaine"}, {"oxycodone"}, {"oxycodone"})
        second = classify({"cocaine"}, {"oxycodone"}, {"oxycodone"})
        self.assertEqual(first, second)

    def test_to_dict(self):
        data = classify({"cocaine"}, {"oxycodone"}, {"oxycodone"}).to_dict()
        self.assertEqual(data['initial_screen_result'], "mixed-unexpected")
        self.assertEqual(data['unexpected_negatives'], ["oxycodone"])
        self.assertFalse(data['auto_accept'])


class TestComputeTestResults(unittest.TestCase):
    """Test cases for full screen classification."""

    def test_expected_from_snapshot(self):
        meds = [snapshot("Oxycodone", ["oxycodone"], require_confirmation=True)]
        outcome = compute_test_results(screening(["oxycodone"], meds))
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.EXPECTED_POSITIVE)

    def test_none_sentinel_ignored(self):
        outcome = compute_test_results(screening(["none"]))
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.NEGATIVE)

    def test_substance_outside_panel_rejected(self):
        with self.assertRaises(PanelMismatch) as ctx:
            compute_test_results(screening(["oxycodone"], test_type=TestType.PANEL_11_LAB))
        self.assertEqual(ctx.exception.substances, ["oxycodone"])

    def test_medication_outside_panel_not_missing(self):
        meds = [snapshot("Oxycodone", ["oxycodone"], require_confirmation=True)]
        outcome = compute_test_results(screening([], meds, test_type=TestType.PANEL_11_LAB))
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.NEGATIVE)

    def test_preview_recomputes(self):
        base = screening([], [snapshot("Oxycodone", ["oxycodone"])])

        self.assertEqual(preview_classification(["oxycodone"], base).initial_screen_result,
                         InitialScreenResult.EXPECTED_POSITIVE)
        self.assertEqual(preview_classification(["oxycodone", "thc"], base).initial_screen_result,
                         InitialScreenResult.UNEXPECTED_POSITIVE)
        self.assertEqual(preview_classification([], base).initial_screen_result,
                         InitialScreenResult.UNEXPECTED_NEGATIVE_WARNING)


class TestBreathalyzer(unittest.TestCase):
    """Test cases for the breathalyzer override."""

    def test_detectable_reading(self):
        self.assertTrue(is_breathalyzer_positive(True, 0.001))
        self.assertFalse(is_breathalyzer_positive(True, 0.0))
        self.assertFalse(is_breathalyzer_positive(True, None))
        self.assertFalse(is_breathalyzer_positive(False, 0.08))

    def test_negative_becomes_unexpected_positive(self):
        outcome = compute_test_results(
            screening([], breathalyzer_taken=True, breathalyzer_result=0.02))

        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.UNEXPECTED_POSITIVE)
        self.assertFalse(outcome.auto_accept)
        self.assertTrue(outcome.breathalyzer_positive)
        self.assertEqual(outcome.unexpected_positives, ())

    def test_expected_positive_becomes_unexpected_positive(self):
        meds = [snapshot("Oxycodone", ["oxycodone"])]
        outcome = compute_test_results(
            screening(["oxycodone"], meds, breathalyzer_taken=True, breathalyzer_result=0.05))

        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.UNEXPECTED_POSITIVE)
        self.assertEqual(outcome.expected_positives, ("oxycodone",))

    def test_failing_result_keeps_category(self):
        meds = [snapshot("Oxycodone", ["oxycodone"], require_confirmation=True)]
        outcome = compute_test_results(
            screening(["cocaine"], meds, breathalyzer_taken=True, breathalyzer_result=0.05))

        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.MIXED_UNEXPECTED)
        self.assertTrue(outcome.breathalyzer_positive)

    def test_zero_reading_no_effect(self):
        outcome = compute_test_results(
            screening([], breathalyzer_taken=True, breathalyzer_result=0.0))
        self.assertEqual(outcome.initial_screen_result, InitialScreenResult.NEGATIVE)
        self.assertTrue(outcome.auto_accept)


class TestPanels(unittest.TestCase):
    """Test cases for the substance panel library."""

    def test_panels(self):
        self.assertIn("oxycodone", get_panel(TestType.PANEL_15_INSTANT))
        self.assertEqual(get_panel("etg-lab"), frozenset(["etg"]))
        self.assertIn("kratom", get_panel(None))

    def test_coerce_test_type(self):
        self.assertEqual(coerce_test_type("11-panel-lab"), TestType.PANEL_11_LAB)
        self.assertIsNone(coerce_test_type(None))
        with self.assertRaises(ValueError):
            coerce_test_type("99-panel")

    def test_format_substance(self):
        self.assertEqual(format_substance("thc"), "THC")
        self.assertEqual(format_substance("unknown"), "unknown")


if __name__ == '__main__':
    unittest.main()
