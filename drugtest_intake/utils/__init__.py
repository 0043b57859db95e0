"""Utility functions for client and test record matching."""

# Import key functions for easier access
from .normalizers import (
    normalize_string,
    normalize_substance,
    clean_substances,
    parse_full_name,
    to_calendar_date
)
from .string_similarity import string_similarity, name_similarity
from .date_similarity import get_date_difference_days, calculate_date_proximity_score

__all__ = [
    'normalize_string',
    'normalize_substance',
    'clean_substances',
    'parse_full_name',
    'to_calendar_date',
    'string_similarity',
    'name_similarity',
    'get_date_difference_days',
    'calculate_date_proximity_score'
]
