from types import SimpleNamespace

from evalengine.core.actor import Actor
from evalengine.models.evaluation import EvaluationStatus
from evalengine.services.eligibility import resolve_eligible

MANAGER = Actor(id=1, position="Leader", name="Maya")
DIRECTOR = Actor(id=2, position="Director", name="Dana")


def person(id, manager_id=None, name=None):
    return SimpleNamespace(id=id, manager_id=manager_id, name=name or f"E{id}")


def evaluation(id, employee_id, status=EvaluationStatus.PENDING_SELF_EVALUATION, acknowledged=False):
    return SimpleNamespace(id=id, employee_id=employee_id, status=status, acknowledged=acknowledged)


ROSTER = [person(1), person(2), person(10, manager_id=1), person(11, manager_id=3), person(12, manager_id=2)]


def ids(people):
    return [p.id for p in people]


def test_line_manager_only_sees_direct_reports():
    result = resolve_eligible(MANAGER, ROSTER, [])
    assert ids(result.available) == [10]
    assert result.blocked == []


def test_director_sees_everyone_but_themselves():
    result = resolve_eligible(DIRECTOR, ROSTER, [])
    assert ids(result.available) == [1, 10, 11, 12]


def test_director_my_team_only():
    result = resolve_eligible(DIRECTOR, ROSTER, [], my_team_only=True)
    assert ids(result.available) == [12]


def test_team_members_cannot_create():
    result = resolve_eligible(Actor(id=10, position="Team Member"), ROSTER, [])
    assert result.available == [] and result.blocked == []


def test_active_evaluation_blocks_employee():
    result = resolve_eligible(DIRECTOR, ROSTER, [evaluation(99, 11)])
    assert 11 in ids(result.blocked)
    assert 11 not in ids(result.available)
    assert result.blocking_evaluations[11] == 99


def test_completed_but_unacknowledged_still_blocks():
    result = resolve_eligible(DIRECTOR, ROSTER, [evaluation(5, 10, EvaluationStatus.COMPLETED)])
    assert ids(result.blocked) == [10]


def test_acknowledged_evaluation_releases_employee():
    done = evaluation(5, 10, EvaluationStatus.COMPLETED, acknowledged=True)
    result = resolve_eligible(MANAGER, ROSTER, [done])
    assert ids(result.available) == [10]


def test_malformed_rows_are_dropped_not_fatal():
    roster = ROSTER + [SimpleNamespace(name="ghost")]
    active = [SimpleNamespace(status=EvaluationStatus.PENDING_SELF_EVALUATION), evaluation(7, 12)]
    result = resolve_eligible(DIRECTOR, roster, active)
    assert ids(result.available) == [1, 10, 11]
    assert ids(result.blocked) == [12]


def test_employees_of_other_stores_are_never_offered():
    director = Actor(id=2, position="Director", store_id=1)
    roster = [
        SimpleNamespace(id=20, manager_id=2, name="Same", store_id=1),
        SimpleNamespace(id=21, manager_id=2, name="Elsewhere", store_id=2),
        SimpleNamespace(id=22, manager_id=2, name="Unassigned", store_id=None),
    ]
    result = resolve_eligible(director, roster, [evaluation(9, 21)])
    assert ids(result.available) == [20]
    assert result.blocked == []
