"""
Expected substance resolution.

Derives which substances a client should test positive for from the
medications active when the specimen was collected.
"""

from typing import Iterable, List, Tuple, Union

from .data_models import ClientMedication, ExpectedSubstances, MedicationSnapshot, TestType
from .panels import get_panel
from ..utils.normalizers import clean_substances

ACTIVE_STATUS = "active"


def capture_medication_snapshot(medications: Iterable[ClientMedication]) -> Tuple[MedicationSnapshot, ...]:
    """
    Freeze a client's active medications for storage with a test record.

    Later edits to the client's medication list never change a snapshot.

    Args:
        medications: Live medication entries from the client record

    Returns:
        Tuple of immutable snapshots, one per active medication
    """
    snapshot: List[MedicationSnapshot] = []
    for med in medications or []:
        if (med.status or "").strip().lower() != ACTIVE_STATUS:
            continue
        snapshot.append(MedicationSnapshot(
            medication_name=med.medication_name,
            detected_as=frozenset(clean_substances(med.detected_as)),
            require_confirmation=bool(med.require_confirmation)
        ))
    return tuple(snapshot)


def resolve_expected_substances(medications: Iterable[MedicationSnapshot],
                                test_type: Union[TestType, str, None] = None) -> ExpectedSubstances:
    """
    Resolve expected and critical substances for a screen.

    Only substances the test type's panel actually screens for are kept, so
    a medication detected as something outside the panel never produces a
    missing-medication finding.

    Args:
        medications: Medication snapshot captured at collection time
        test_type: Test type of the screen, or None for every substance

    Returns:
        ExpectedSubstances with 'expected' and its 'critical' subset
    """
    panel = get_panel(test_type)
    expected = set()
    critical = set()

    for med in medications or ():
        for substance in clean_substances(med.detected_as):
            if substance not in panel:
                continue
            expected.add(substance)
            if med.require_confirmation:
                critical.add(substance)

    return ExpectedSubstances(expected=frozenset(expected), critical=frozenset(critical))
