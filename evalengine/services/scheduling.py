# evalengine/services/scheduling.py
from datetime import date, timedelta
from typing import Optional

CYCLE_STARTS = ("hire_date", "last_evaluation", "calendar_year", "fiscal_year", "custom")

def next_evaluation_date(
    today: date,
    frequency_days: int,
    cycle_start: str = "hire_date",
    start_date: Optional[date] = None,
    last_evaluation: Optional[date] = None,
    custom_start: Optional[date] = None,
) -> date:
    """Suggest the next scheduled date for an employee's evaluation.

    The cycle is anchored on ``cycle_start`` and stepped forward in
    ``frequency_days`` increments until it lands after ``today``.
    """
    if frequency_days <= 0:
        raise ValueError("frequency_days must be positive")

    if cycle_start == "last_evaluation":
        base = last_evaluation or start_date
    elif cycle_start == "calendar_year":
        base = date(today.year, 1, 1)
    elif cycle_start == "fiscal_year":
        base = date(today.year, 10, 1)
    elif cycle_start == "custom":
        base = custom_start
    else:
        base = start_date
    if base is None:
        base = today

    if base > today:
        return base
    periods = (today - base).days // frequency_days + 1
    return base + timedelta(days=periods * frequency_days)
