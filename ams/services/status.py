"""
Pure status classification helpers.

Every function here is deterministic for a given ``now``. Naive datetimes
(SQLite hands those back) are treated as UTC.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from ams.core.config import DUE_SOON_DAYS, GRACE_PERIOD_MINUTES
from ams.core.errors import DivisionError
from ams.schemas.filters import ResultsStatus, SubmissionStatus

NORMAL = "normal"
DUE_SOON = "due_soon"
OVERDUE = "overdue"

ON_TIME = "on_time"
GRACE_PERIOD = "grace_period"
LATE = "late"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def classify_submission(
    due_date: Optional[datetime],
    submitted_at: Optional[datetime],
    graded_at: Optional[datetime],
) -> SubmissionStatus:
    # due_date does not affect the outcome
    if graded_at is not None:
        return SubmissionStatus.GRADED
    if submitted_at is not None:
        return SubmissionStatus.SUBMITTED
    return SubmissionStatus.NOT_SUBMITTED


def classify_results(graded_at: Optional[datetime], is_verified: bool) -> ResultsStatus:
    if graded_at is None:
        return ResultsStatus.NOT_APPLICABLE
    if is_verified:
        return ResultsStatus.AVAILABLE
    return ResultsStatus.PENDING


def is_overdue(due_date: datetime, status: SubmissionStatus, now: Optional[datetime] = None) -> bool:
    if status != SubmissionStatus.NOT_SUBMITTED:
        return False
    return _now(now) > as_utc(due_date)


def days_until(due_date: datetime, now: Optional[datetime] = None) -> int:
    delta = as_utc(due_date) - _now(now)
    return math.ceil(delta / timedelta(days=1))


def urgency(due_date: datetime, now: Optional[datetime] = None) -> str:
    days = days_until(due_date, now)
    if days <= 0:
        return OVERDUE
    if days <= DUE_SOON_DAYS:
        return DUE_SOON
    return NORMAL


def percentage(score: float, total_marks: float) -> int:
    """Whole-number percentage, rounding halves up.

    Raises DivisionError when ``total_marks`` is zero.
    """
    if total_marks == 0:
        raise DivisionError("total_marks is zero; no percentage available")
    return math.floor(score / total_marks * 100 + 0.5)


def safe_percentage(score: Optional[float], total_marks: Optional[float]) -> Optional[int]:
    if score is None or total_marks is None:
        return None
    try:
        return percentage(score, total_marks)
    except DivisionError:
        return None


def late_duration(submitted_at: datetime, due_date: datetime) -> int:
    """Minutes between the deadline and the submission. Negative means early."""
    return int((as_utc(submitted_at) - as_utc(due_date)).total_seconds() // 60)


def classify_timeliness(submitted_at: datetime, due_date: datetime) -> str:
    late_minutes = late_duration(submitted_at, due_date)
    if late_minutes <= 0:
        return ON_TIME
    if late_minutes <= GRACE_PERIOD_MINUTES:
        return GRACE_PERIOD
    return LATE


def format_late_duration(minutes: int) -> str:
    if minutes <= 0:
        return ""

    days, rest = divmod(minutes, 1440)
    hours, mins = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins:
        parts.append(f"{mins}m")
    return " ".join(parts) + " late"
