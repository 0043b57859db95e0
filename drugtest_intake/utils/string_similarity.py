"""
String and name similarity for client identity matching.

Names extracted from uploaded reports are noisy (OCR slips, typos, missing
middle initials), so matching is based on normalized edit distance rather
than equality.
"""

from typing import Optional

from rapidfuzz.distance import Levenshtein

# Last-name collisions are rarer than first-name collisions in the client
# population, so the last name dominates the combined score.
LAST_NAME_WEIGHT = 0.85
FIRST_NAME_WEIGHT = 0.15
MIDDLE_INITIAL_BOOST = 0.1


def string_similarity(a: str, b: str) -> float:
    """
    Calculate case-insensitive similarity between two strings.

    Computed as ``(max_len - levenshtein(a, b)) / max_len``.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity from 0.0 (nothing in common) to 1.0 (identical).
        Two empty strings are identical.
    """
    s1 = (a or "").lower()
    s2 = (b or "").lower()

    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    distance = Levenshtein.distance(s1, s2)
    return (max_len - distance) / max_len


def name_similarity(search_first: str,
                    search_last: str,
                    candidate_first: str,
                    candidate_last: str,
                    search_middle: Optional[str] = None,
                    candidate_middle: Optional[str] = None) -> float:
    """
    Calculate weighted similarity between a searched name and a candidate.

    The middle initial only ever boosts the first-name component, and only
    when both sides carry one.

    Args:
        search_first: First name being searched for
        search_last: Last name being searched for
        candidate_first: Candidate client's first name
        candidate_last: Candidate client's last name
        search_middle: Optional middle initial being searched for
        candidate_middle: Optional candidate middle initial

    Returns:
        Weighted similarity score (0.0 to 1.0)
    """
    last_score = string_similarity(search_last, candidate_last)
    first_score = string_similarity(search_first, candidate_first)

    if search_middle and candidate_middle:
        middle_score = string_similarity(search_middle, candidate_middle)
        first_score = min(1.0, first_score + middle_score * MIDDLE_INITIAL_BOOST)

    return last_score * LAST_NAME_WEIGHT + first_score * FIRST_NAME_WEIGHT
