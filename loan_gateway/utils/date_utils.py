"""Date manipulation utilities"""

from datetime import date
from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """
    Calendar-month addition, clamped to the last day of the target month.

    Jan 31 + 1 month = Feb 28 (Feb 29 in leap years).
    """
    return from_date + relativedelta(months=months)


def days_between(earlier: date, later: date) -> int:
    """Calendar days from earlier to later (negative if reversed)"""
    return (later - earlier).days
