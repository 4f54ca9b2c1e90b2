import pytest

from evalengine.services.scoring import compute_overall_score

SCALE = {"id": 1, "name": "1-4", "grades": [{"value": v, "label": str(v)} for v in (1, 2, 3, 4)]}

TEMPLATE = {
    "id": 7,
    "sections": [
        {"id": "s1", "criteria": [
            {"id": "a", "grading_scale": SCALE},
            {"id": "b", "grading_scale": SCALE},
            {"id": "c", "grading_scale": SCALE},
        ]},
        {"id": "s2", "criteria": [
            {"id": "d", "grading_scale": SCALE},
            {"id": "notes", "grading_scale": None},
        ]},
    ],
}


def test_unrated_criteria_are_not_counted_as_zero():
    template = {"sections": [{"id": "s1", "criteria": [
        {"id": "a", "grading_scale": SCALE},
        {"id": "b", "grading_scale": SCALE},
    ]}]}
    score = compute_overall_score({"a": {"rating": 4}}, template)
    assert score.overall == 4
    assert score.by_section == {"s1": 4}


def test_overall_is_flat_mean_not_mean_of_sections():
    ratings = {"a": {"rating": 4}, "b": {"rating": 4}, "c": {"rating": 4}, "d": {"rating": 1}}
    score = compute_overall_score(ratings, TEMPLATE)
    assert score.by_section == {"s1": 4, "s2": 1}
    # (4 + 4 + 4 + 1) / 4, whereas averaging sections would give 2.5
    assert score.overall == pytest.approx(3.25)


def test_criteria_without_scale_are_skipped():
    ratings = {"a": {"rating": 2}, "notes": {"rating": 100, "comment": "great"}}
    score = compute_overall_score(ratings, TEMPLATE)
    assert score.overall == 2
    assert "s2" not in score.by_section


def test_nothing_rated_gives_no_score():
    score = compute_overall_score({}, TEMPLATE)
    assert score.overall is None
    assert score.by_section == {}
    assert score.percentage is None


def test_bounds_are_not_clamped():
    score = compute_overall_score({"a": {"rating": 9}}, TEMPLATE)
    assert score.overall == 9


def test_percentage_uses_scale_maximum():
    ratings = {"a": {"rating": 4}, "b": {"rating": 2}}
    score = compute_overall_score(ratings, TEMPLATE)
    assert score.percentage == 75


def test_plain_numbers_and_bad_values_are_tolerated():
    ratings = {"a": 3, "b": {"rating": "n/a"}, "c": {"rating": None}}
    score = compute_overall_score(ratings, TEMPLATE)
    assert score.overall == 3
