# evalengine/services/due_dates.py
import enum
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Union

from evalengine.models.evaluation import EvaluationStatus

DateLike = Union[date, datetime]

SECONDS_PER_DAY = 24 * 60 * 60


class DueBucket(str, enum.Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    NORMAL = "normal"


@dataclass(frozen=True)
class DueStatus:
    label: str
    bucket: DueBucket
    days: int


def _as_utc_datetime(value: DateLike) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def days_until(scheduled_date: DateLike, now: DateLike) -> int:
    """Whole days from ``now`` until ``scheduled_date``, rounded up."""
    delta = _as_utc_datetime(scheduled_date) - _as_utc_datetime(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def classify(scheduled_date: DateLike, now: DateLike, due_soon_days: int = 7) -> DueStatus:
    diff_days = days_until(scheduled_date, now)
    if diff_days < 0:
        return DueStatus(label="Overdue", bucket=DueBucket.OVERDUE, days=diff_days)
    if diff_days == 0:
        label = "Due today"
    elif diff_days == 1:
        label = "Due in 1 day"
    else:
        label = f"Due in {diff_days} days"
    bucket = DueBucket.DUE_SOON if diff_days <= due_soon_days else DueBucket.NORMAL
    return DueStatus(label=label, bucket=bucket, days=diff_days)


def count_pending(evaluations: Iterable) -> int:
    """Badge number: evaluations not yet completed, whatever their due bucket."""
    return sum(1 for e in evaluations if e.status != EvaluationStatus.COMPLETED)
