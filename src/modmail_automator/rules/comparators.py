"""
Threshold comparators used by author and mod action checks
"""
from datetime import datetime, timezone
from typing import Optional
import re

from dateutil.relativedelta import relativedelta

NUMERIC_COMPARATOR_PATTERN = r"^(<|>|<=|>=|=)?\s?(\d+)$"
DATE_COMPARATOR_PATTERN = r"^(<|>|<=|>=)?\s?(\d+)\s(minute|hour|day|week|month|year)s?$"

_numeric_regex = re.compile(NUMERIC_COMPARATOR_PATTERN)
_date_regex = re.compile(DATE_COMPARATOR_PATTERN)

_INTERVALS = {
    'minute': lambda value: relativedelta(minutes=value),
    'hour': lambda value: relativedelta(hours=value),
    'day': lambda value: relativedelta(days=value),
    'week': lambda value: relativedelta(weeks=value),
    'month': lambda value: relativedelta(months=value),
    'year': lambda value: relativedelta(years=value),
}


def meets_numeric_threshold(value: int, threshold: str) -> bool:
    """Compare a number to a threshold such as "< 10" or "100"

    A threshold with no operator is treated as an equality check. Returns
    False for any threshold that doesn't parse.
    """
    matches = _numeric_regex.match(threshold)
    if not matches:
        return False

    operator = matches.group(1) or '='
    target = int(matches.group(2))

    if operator == '=':
        return value == target
    elif operator == '<':
        return value < target
    elif operator == '<=':
        return value <= target
    elif operator == '>':
        return value > target
    elif operator == '>=':
        return value >= target
    return False


def _utc_now_like(value: datetime) -> datetime:
    # Naive datetimes are treated as UTC, as the rest of the app stores them.
    if value.tzinfo is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    return datetime.now(timezone.utc)


def meets_date_threshold(
    value: datetime,
    threshold: str,
    default_operator: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Compare a date to a relative threshold such as "< 10 days"

    The cutoff is "now minus the interval". "<" means the date is more recent
    than the cutoff, ">" means it is older. When the threshold has no operator
    the default operator is used; with neither, the check fails.
    """
    matches = _date_regex.match(threshold)
    if not matches:
        return False

    operator = matches.group(1) or default_operator
    amount = int(matches.group(2))
    interval = matches.group(3)

    if now is None:
        now = _utc_now_like(value)
    cutoff = now - _INTERVALS[interval](amount)

    if operator == '<':
        return cutoff < value
    elif operator == '<=':
        return cutoff <= value
    elif operator == '>':
        return cutoff > value
    elif operator == '>=':
        return cutoff >= value
    return False
