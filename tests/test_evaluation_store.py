import asyncio
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from evalengine.core.actor import Actor
from evalengine.core.errors import AuthorizationError, NotFoundError, ValidationError
from evalengine.models.evaluation import Evaluation, EvaluationStatus
from evalengine.services import evaluation_store
from tests.helpers import create_evaluation, create_scale, create_template, create_user

SCHEDULED = date.today() + timedelta(days=14)


async def _team(db):
    manager = await create_user(db, "Maya Leader", position="Leader")
    e1 = await create_user(db, "Eli Front", manager=manager)
    e2 = await create_user(db, "Eva Kitchen", manager=manager)
    template = await create_template(db, await create_scale(db))
    return manager, e1, e2, template


async def _count(db) -> int:
    return (await db.execute(select(func.count(Evaluation.id)))).scalar_one()


@pytest.mark.asyncio
async def test_batch_creation_reports_blocked_employee_and_creates_the_rest(db):
    manager, e1, e2, template = await _team(db)
    await create_evaluation(db, manager, e1, template, SCHEDULED)
    e1_id, e2_id = e1.id, e2.id
    before = await _count(db)

    results = await evaluation_store.create_evaluations(
        db, Actor.from_user(manager), [e1_id, e2_id], template.id, SCHEDULED
    )

    by_employee = {r.employee_id: r for r in results}
    assert by_employee[e1_id].status == evaluation_store.BLOCKED
    assert by_employee[e2_id].status == evaluation_store.CREATED
    assert await _count(db) == before + 1


@pytest.mark.asyncio
async def test_new_evaluation_starts_pending_self_evaluation_with_snapshot(db):
    manager, e1, _, template = await _team(db)
    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)

    assert evaluation.status == EvaluationStatus.PENDING_SELF_EVALUATION
    assert evaluation.evaluator_id == manager.id
    assert evaluation.active_employee_id == e1.id
    assert evaluation.template_name == "Team Member Review"
    titles = [c["title"] for s in evaluation.template_snapshot["sections"] for c in s["criteria"]]
    assert titles == ["Speed", "Accuracy", "Hospitality", "Notes"]


@pytest.mark.asyncio
async def test_template_edits_do_not_reach_existing_evaluations(db):
    manager, e1, _, template = await _team(db)
    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)

    template.sections[0].criteria[0].title = "Renamed"
    template.name = "Renamed Template"
    await db.commit()

    stored = await evaluation_store.get_evaluation(db, evaluation.id, refresh=True)
    assert stored.template_snapshot["sections"][0]["criteria"][0]["title"] == "Speed"
    assert stored.template_name == "Team Member Review"


@pytest.mark.asyncio
async def test_missing_scale_falls_back_to_default_scale(db):
    manager = await create_user(db, "Maya Leader", position="Leader")
    e1 = await create_user(db, "Eli Front", manager=manager)
    await create_scale(db, values=(1, 2, 3, 4, 5), is_default=True)
    template = await create_template(db, scale=None)

    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)

    criteria = evaluation.template_snapshot["sections"][0]["criteria"]
    assert [g["value"] for g in criteria[0]["grading_scale"]["grades"]] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_manager_cannot_create_for_someone_elses_report(db):
    manager, e1, _, template = await _team(db)
    other_manager = await create_user(db, "Omar Leader", position="Leader")
    outsider = await create_user(db, "Ola Drive", manager=other_manager)

    results = await evaluation_store.create_evaluations(
        db, Actor.from_user(manager), [outsider.id, 999], template.id, SCHEDULED
    )

    assert [r.status for r in results] == [evaluation_store.FORBIDDEN, evaluation_store.NOT_FOUND]
    assert await _count(db) == 0


@pytest.mark.asyncio
async def test_team_member_cannot_create(db):
    manager, e1, e2, template = await _team(db)
    with pytest.raises(AuthorizationError):
        await evaluation_store.create_evaluations(db, Actor.from_user(e1), [e2.id], template.id, SCHEDULED)


@pytest.mark.asyncio
async def test_missing_scheduled_date_is_a_validation_error(db):
    manager, e1, _, template = await _team(db)
    with pytest.raises(ValidationError):
        await evaluation_store.create_evaluations(db, Actor.from_user(manager), [e1.id], template.id, None)


@pytest.mark.asyncio
async def test_unknown_template_is_not_found(db):
    manager, e1, _, _ = await _team(db)
    with pytest.raises(NotFoundError):
        await evaluation_store.create_evaluations(db, Actor.from_user(manager), [e1.id], 404, SCHEDULED)


@pytest.mark.asyncio
async def test_stale_eligibility_read_is_caught_by_the_database(db, monkeypatch):
    manager, e1, _, template = await _team(db)
    actor = Actor.from_user(manager)
    e1_id, template_id = e1.id, template.id
    await create_evaluation(db, manager, e1, template, SCHEDULED)

    async def no_active(*args, **kwargs):
        return []

    # Simulate a creator that checked eligibility before the first insert landed
    monkeypatch.setattr(evaluation_store, "list_active_evaluations", no_active)
    results = await evaluation_store.create_evaluations(db, actor, [e1_id], template_id, SCHEDULED)

    assert results[0].status == evaluation_store.BLOCKED
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_concurrent_creators_leave_one_active_evaluation(session_factory):
    async with session_factory() as db:
        manager, e1, _, template = await _team(db)
        director = await create_user(db, "Dana Director", position="Director")
        ids = (manager.id, director.id, e1.id, template.id)

    async def create_as(actor):
        async with session_factory() as session:
            return await evaluation_store.create_evaluations(session, actor, [ids[2]], ids[3], SCHEDULED)

    first, second = await asyncio.gather(
        create_as(Actor(id=ids[0], position="Leader")),
        create_as(Actor(id=ids[1], position="Director")),
    )

    statuses = sorted([first[0].status, second[0].status])
    assert statuses == [evaluation_store.BLOCKED, evaluation_store.CREATED]
    async with session_factory() as db:
        active = await evaluation_store.list_active_evaluations(db, [ids[2]])
        assert len(active) == 1


@pytest.mark.asyncio
async def test_only_admins_can_delete(db):
    manager, e1, _, template = await _team(db)
    admin = await create_user(db, "Ada Admin", position="Director", role="admin")
    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)

    with pytest.raises(AuthorizationError):
        await evaluation_store.delete_evaluation(db, Actor.from_user(manager), evaluation.id)

    await evaluation_store.delete_evaluation(db, Actor.from_user(admin), evaluation.id)
    with pytest.raises(NotFoundError):
        await evaluation_store.get_evaluation(db, evaluation.id)


@pytest.mark.asyncio
async def test_deleting_releases_the_employee(db):
    manager, e1, _, template = await _team(db)
    admin = await create_user(db, "Ada Admin", role="admin")
    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)
    await evaluation_store.delete_evaluation(db, Actor.from_user(admin), evaluation.id)

    again = await create_evaluation(db, manager, e1, template, SCHEDULED)
    assert again.status == EvaluationStatus.PENDING_SELF_EVALUATION
    active = await evaluation_store.list_active_evaluations(db, [e1.id])
    assert [e.id for e in active] == [again.id]
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_mark_viewed_is_recorded_once(db):
    manager, e1, _, template = await _team(db)
    evaluation = await create_evaluation(db, manager, e1, template, SCHEDULED)

    assert await evaluation_store.mark_viewed(db, Actor.from_user(e1), evaluation.id) is True
    assert await evaluation_store.mark_viewed(db, Actor.from_user(e1), evaluation.id) is False
    outsider = await create_user(db, "Ola Drive")
    with pytest.raises(AuthorizationError):
        await evaluation_store.mark_viewed(db, Actor.from_user(outsider), evaluation.id)
