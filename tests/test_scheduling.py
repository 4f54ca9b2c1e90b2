from datetime import date

import pytest

from evalengine.services.scheduling import next_evaluation_date

TODAY = date(2026, 10, 17)


def test_hire_date_cycle_steps_past_today():
    # 2026-01-01 + 4 * 90 days = 2026-12-27
    assert next_evaluation_date(TODAY, 90, "hire_date", start_date=date(2026, 1, 1)) == date(2026, 12, 27)


def test_future_anchor_is_returned_as_is():
    assert next_evaluation_date(TODAY, 90, "custom", custom_start=date(2027, 1, 5)) == date(2027, 1, 5)


def test_anchor_on_today_moves_a_full_period():
    assert next_evaluation_date(TODAY, 30, "hire_date", start_date=TODAY) == date(2026, 11, 16)


def test_last_evaluation_falls_back_to_hire_date():
    with_last = next_evaluation_date(TODAY, 180, "last_evaluation", start_date=date(2020, 1, 1),
                                     last_evaluation=date(2026, 6, 1))
    assert with_last == date(2026, 11, 28)
    without_last = next_evaluation_date(TODAY, 365, "last_evaluation", start_date=date(2026, 1, 1))
    assert without_last == date(2027, 1, 1)


def test_calendar_and_fiscal_year_anchors():
    assert next_evaluation_date(TODAY, 365, "calendar_year") == date(2027, 1, 1)
    assert next_evaluation_date(TODAY, 30, "fiscal_year") == date(2026, 10, 31)


def test_frequency_must_be_positive():
    with pytest.raises(ValueError):
        next_evaluation_date(TODAY, 0)
