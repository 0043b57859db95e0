"""
Date proximity utilities for matching uploaded reports to test records.

Collection dates printed on lab reports frequently differ from the booked
collection date by a day or two (late-night collections, lab receipt date
printed instead of collection date), so proximity is scored in bands of
whole calendar days.
"""

from typing import Optional

from .normalizers import DateLike, to_calendar_date

# (maximum day difference, points) evaluated in order
DATE_PROXIMITY_BANDS = (
    (0, 40),
    (1, 30),
    (3, 20),
    (7, 10),
)


def get_date_difference_days(date1: DateLike, date2: DateLike) -> Optional[int]:
    """
    Calculate the absolute difference in whole calendar days.

    Args:
        date1: First date (date, datetime or string)
        date2: Second date (date, datetime or string)

    Returns:
        Absolute difference in days, or None if either date is missing
        or unparseable
    """
    day1 = to_calendar_date(date1)
    day2 = to_calendar_date(date2)

    if day1 is None or day2 is None:
        return None

    return abs((day1 - day2).days)


def calculate_date_proximity_score(date1: DateLike, date2: DateLike) -> int:
    """
    Score how close two collection dates are.

    Args:
        date1: Date extracted from the uploaded report
        date2: Collection date stored on the candidate test record

    Returns:
        40 for the same day, 30 within one day, 20 within three days,
        10 within a week, otherwise 0
    """
    diff_days = get_date_difference_days(date1, date2)
    if diff_days is None:
        return 0

    for max_days, points in DATE_PROXIMITY_BANDS:
        if diff_days <= max_days:
            return points

    return 0
