# evalengine/services/evaluation_store.py
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from evalengine.core.actor import Actor
from evalengine.core.errors import AuthorizationError, NotFoundError, ValidationError
from evalengine.models.evaluation import Evaluation, EvaluationStatus, EvaluationView
from evalengine.models.template import GradingScale, Template
from evalengine.models.user import User
from evalengine.services.eligibility import resolve_eligible

logger = logging.getLogger(__name__)

CREATED = "created"
BLOCKED = "blocked"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"


@dataclass
class CreationResult:
    employee_id: int
    status: str
    evaluation_id: Optional[int] = None
    detail: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.status == CREATED


def _scale_snapshot(scale: Optional[GradingScale]) -> Optional[Dict[str, Any]]:
    if scale is None:
        return None
    return {
        "id": scale.id,
        "name": scale.name,
        "grades": [
            {"value": g.value, "label": g.label, "description": g.description}
            for g in scale.grades
        ],
    }


def build_template_snapshot(template: Template, default_scale: Optional[GradingScale] = None) -> Dict[str, Any]:
    """Freeze a template so later edits cannot touch criteria already in flight."""
    return {
        "id": template.id,
        "name": template.name,
        "sections": [
            {
                "id": str(section.id),
                "title": section.title,
                "description": section.description,
                "criteria": [
                    {
                        "id": str(criterion.id),
                        "title": criterion.title,
                        "description": criterion.description,
                        "required": bool(criterion.required) if criterion.required is not None else True,
                        "grading_scale": _scale_snapshot(criterion.grading_scale or default_scale),
                    }
                    for criterion in section.criteria
                ],
            }
            for section in template.sections
        ],
    }


async def get_default_scale(db: AsyncSession) -> Optional[GradingScale]:
    result = await db.execute(
        select(GradingScale)
        .where(GradingScale.is_default.is_(True))
        .where(GradingScale.is_active.is_(True))
        .order_by(GradingScale.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_template(db: AsyncSession, template_id: int, store_id: Optional[int] = None) -> Template:
    result = await db.execute(
        select(Template)
        .where(Template.id == template_id)
        .where(Template.is_active.is_(True))
        .where(Template.store_id.is_not_distinct_from(store_id))
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise NotFoundError("Template not found", template_id=template_id)
    return template


async def get_evaluation(db: AsyncSession, evaluation_id: int, refresh: bool = False) -> Evaluation:
    stmt = select(Evaluation).where(Evaluation.id == evaluation_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    evaluation = result.scalar_one_or_none()
    if evaluation is None:
        raise NotFoundError("Evaluation not found", evaluation_id=evaluation_id)
    return evaluation


def can_view(actor: Actor, evaluation: Evaluation) -> bool:
    if not actor.in_store(evaluation):
        return False
    return actor.sees_all_evaluations or actor.id in (evaluation.employee_id, evaluation.evaluator_id)


async def get_visible_evaluation(db: AsyncSession, actor: Actor, evaluation_id: int) -> Evaluation:
    evaluation = await get_evaluation(db, evaluation_id)
    # Hide existence from people who are not party to it
    if not can_view(actor, evaluation):
        raise NotFoundError("Evaluation not found", evaluation_id=evaluation_id)
    return evaluation


async def load_roster(
    db: AsyncSession, store_id: Optional[int], employee_ids: Optional[Iterable[int]] = None
) -> List[User]:
    stmt = (
        select(User)
        .where(User.is_active.is_(True))
        .where(User.store_id.is_not_distinct_from(store_id))
        .order_by(User.name, User.id)
    )
    if employee_ids is not None:
        stmt = stmt.where(User.id.in_(list(employee_ids)))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_active_evaluations(
    db: AsyncSession, employee_ids: Optional[Iterable[int]] = None
) -> List[Evaluation]:
    stmt = select(Evaluation).where(
        or_(Evaluation.status != EvaluationStatus.COMPLETED, Evaluation.acknowledged.is_(False))
    )
    if employee_ids is not None:
        stmt = stmt.where(Evaluation.employee_id.in_(list(employee_ids)))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def last_completed_dates(db: AsyncSession, employee_ids: Iterable[int]) -> Dict[int, date]:
    result = await db.execute(
        select(Evaluation.employee_id, func.max(Evaluation.completed_date))
        .where(Evaluation.employee_id.in_(list(employee_ids)))
        .where(Evaluation.status == EvaluationStatus.COMPLETED)
        .group_by(Evaluation.employee_id)
    )
    return {employee_id: completed.date() for employee_id, completed in result.all() if completed is not None}


async def create_evaluations(
    db: AsyncSession,
    actor: Actor,
    employee_ids: List[int],
    template_id: int,
    scheduled_date: Optional[date],
) -> List[CreationResult]:
    """Create one evaluation per requested employee.

    Each employee is inserted and committed on its own, so a blocked or
    unknown employee never aborts the rest of the batch. The unique
    ``active_employee_id`` column settles races between two creators
    targeting the same employee.
    """
    if not actor.can_create_evaluations:
        raise AuthorizationError("Only managers and directors can create evaluations")
    if scheduled_date is None:
        raise ValidationError("Scheduled date is required")
    if not employee_ids:
        raise ValidationError("At least one employee is required")

    template = await load_template(db, template_id, actor.store_id)
    snapshot = build_template_snapshot(template, await get_default_scale(db))
    template_name = template.name

    requested = list(dict.fromkeys(employee_ids))
    roster = await load_roster(db, actor.store_id, requested)
    known_ids = {u.id for u in roster}
    eligibility = resolve_eligible(actor, roster, await list_active_evaluations(db, requested))
    available_ids = {u.id for u in eligibility.available}
    blocking = dict(eligibility.blocking_evaluations)

    results: List[CreationResult] = []
    for employee_id in requested:
        if employee_id not in known_ids:
            results.append(CreationResult(employee_id, NOT_FOUND, detail="Employee not found"))
            continue
        if employee_id in blocking:
            results.append(CreationResult(
                employee_id, BLOCKED, evaluation_id=blocking[employee_id],
                detail="Employee already has an active evaluation",
            ))
            continue
        if employee_id not in available_ids:
            results.append(CreationResult(employee_id, FORBIDDEN, detail="Employee is not in your team"))
            continue

        evaluation = Evaluation(
            employee_id=employee_id,
            evaluator_id=actor.id,
            template_id=template_id,
            store_id=actor.store_id,
            template_snapshot=snapshot,
            template_name=template_name,
            status=EvaluationStatus.PENDING_SELF_EVALUATION,
            scheduled_date=scheduled_date,
            self_evaluation={},
            manager_evaluation={},
            acknowledged=False,
            active_employee_id=employee_id,
        )
        db.add(evaluation)
        try:
            await db.flush()
            evaluation_id = evaluation.id
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Lost creation race for employee %s; an active evaluation exists", employee_id)
            results.append(CreationResult(
                employee_id, BLOCKED, detail="Employee already has an active evaluation",
            ))
            continue
        logger.info("Created evaluation %s for employee %s by %s", evaluation_id, employee_id, actor.id)
        results.append(CreationResult(employee_id, CREATED, evaluation_id=evaluation_id))

    return results


async def compare_and_swap(
    db: AsyncSession,
    evaluation_id: int,
    expected_status: EvaluationStatus,
    values: Dict[str, Any],
    require_unacknowledged: bool = False,
    expected_version: Optional[int] = None,
) -> bool:
    """Write ``values`` only if the row is still in ``expected_status``.

    With ``expected_version`` the row must also be unchanged since it was
    read, which keeps two draft saves from overwriting each other's
    ratings.
    """
    stmt = (
        update(Evaluation)
        .where(Evaluation.id == evaluation_id)
        .where(Evaluation.status == expected_status)
        .values(**values, version=Evaluation.version + 1, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if require_unacknowledged:
        stmt = stmt.where(Evaluation.acknowledged.is_(False))
    if expected_version is not None:
        stmt = stmt.where(Evaluation.version == expected_version)
    try:
        result = await db.execute(stmt)
        if result.rowcount != 1:
            await db.rollback()
            return False
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    return True


async def delete_evaluation(db: AsyncSession, actor: Actor, evaluation_id: int) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can delete evaluations")
    evaluation = await get_evaluation(db, evaluation_id)
    if not actor.in_store(evaluation):
        raise NotFoundError("Evaluation not found", evaluation_id=evaluation_id)
    await db.execute(delete(EvaluationView).where(EvaluationView.evaluation_id == evaluation.id))
    await db.delete(evaluation)
    await db.commit()
    logger.info("Evaluation %s deleted by administrator %s", evaluation_id, actor.id)


async def mark_viewed(db: AsyncSession, actor: Actor, evaluation_id: int) -> bool:
    """Record that ``actor`` has seen the evaluation; returns False if already seen."""
    evaluation = await get_evaluation(db, evaluation_id)
    if actor.id not in (evaluation.employee_id, evaluation.evaluator_id):
        raise AuthorizationError("Not authorized to view this evaluation")

    existing = await db.execute(
        select(EvaluationView.id)
        .where(EvaluationView.evaluation_id == evaluation_id)
        .where(EvaluationView.user_id == actor.id)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(EvaluationView(evaluation_id=evaluation_id, user_id=actor.id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True
