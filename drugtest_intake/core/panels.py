"""
Substance panel library.

Substance codes screened by each test type, and display names used when
results are reported.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from .data_models import TestType
from .exceptions import PanelMismatch
from ..utils.normalizers import clean_substances

# ---------------------------------------------------------------------------
# Display names for every substance code a medication may be detected as.
# ---------------------------------------------------------------------------
SUBSTANCE_LABELS: Dict[str, str] = {
    "6-mam": "6-MAM (Heroin)",
    "alcohol": "Alcohol (Ethanol)",
    "amphetamines": "Amphetamines",
    "barbiturates": "Barbiturates",
    "benzodiazepines": "Benzodiazepines",
    "buprenorphine": "Buprenorphine",
    "cocaine": "Cocaine",
    "etg": "EtG (Alcohol)",
    "fentanyl": "Fentanyl",
    "kratom": "Kratom",
    "mdma": "MDMA (Ecstasy)",
    "methadone": "Methadone",
    "methamphetamines": "Methamphetamines",
    "opiates": "Opiates",
    "oxycodone": "Oxycodone",
    "pcp": "PCP",
    "propoxyphene": "Propoxyphene",
    "synthetic_cannabinoids": "Synthetic Cannabinoids",
    "thc": "THC",
    "tramadol": "Tramadol",
    "tricyclic_antidepressants": "Tricyclic Antidepressants",
}

ALL_SUBSTANCES: FrozenSet[str] = frozenset(SUBSTANCE_LABELS)

# ---------------------------------------------------------------------------
# Panels per test type
# ---------------------------------------------------------------------------
TEST_TYPE_PANELS: Dict[TestType, FrozenSet[str]] = {
    # On-site instant cup
    TestType.PANEL_15_INSTANT: frozenset([
        "6-mam", "amphetamines", "benzodiazepines", "buprenorphine", "cocaine",
        "etg", "fentanyl", "mdma", "methadone", "methamphetamines", "opiates",
        "oxycodone", "synthetic_cannabinoids", "thc", "tramadol",
    ]),
    # AMP, BUP, BZO, COC, ETG, FEN, MIT, MTD, OPI, THC
    TestType.PANEL_11_LAB: frozenset([
        "amphetamines", "benzodiazepines", "buprenorphine", "cocaine", "etg",
        "fentanyl", "kratom", "methadone", "opiates", "thc",
    ]),
    # Includes ethanol (current intoxication), not EtG
    TestType.PANEL_17_SOS_LAB: frozenset([
        "alcohol", "amphetamines", "barbiturates", "benzodiazepines",
        "buprenorphine", "cocaine", "mdma", "methadone", "opiates", "oxycodone",
        "pcp", "propoxyphene", "thc", "tricyclic_antidepressants",
    ]),
    TestType.ETG_LAB: frozenset(["etg"]),
}


def coerce_test_type(test_type: Union[TestType, str, None]) -> Optional[TestType]:
    """
    Convert a stored test type value to a TestType.

    Raises:
        ValueError: if the value is not a known test type
    """
    if test_type is None or test_type == "":
        return None
    if isinstance(test_type, TestType):
        return test_type
    return TestType(test_type.strip().lower())


def get_panel(test_type: Union[TestType, str, None] = None) -> FrozenSet[str]:
    """
    Get the substances screened by a test type.

    Args:
        test_type: Test type, or None for every known substance

    Returns:
        Frozen set of substance codes
    """
    resolved = coerce_test_type(test_type)
    if resolved is None:
        return ALL_SUBSTANCES
    return TEST_TYPE_PANELS[resolved]


def validate_panel_substances(substances: Iterable[str],
                              test_type: Union[TestType, str, None]) -> List[str]:
    """
    Clean detected substances and reject any outside the test type's panel.

    Raises:
        PanelMismatch: if a substance is not screened by the test type
    """
    cleaned = clean_substances(substances)
    panel = get_panel(test_type)
    outside = [s for s in cleaned if s not in panel]
    if outside:
        resolved = coerce_test_type(test_type)
        raise PanelMismatch(outside, resolved.value if resolved else None)
    return cleaned


def format_substance(substance: str) -> str:
    """
    Format a substance code to its display name.

    Performs case-insensitive lookup; unknown codes are returned unchanged.
    """
    return SUBSTANCE_LABELS.get((substance or "").strip().lower(), substance)
