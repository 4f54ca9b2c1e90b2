# evalengine/services/queries.py
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_, and_, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from evalengine.core.actor import Actor
from evalengine.core.errors import AuthorizationError, NotFoundError, ValidationError
from evalengine.models.evaluation import Evaluation, EvaluationStatus, EvaluationView, STATUS_ORDER
from evalengine.models.user import User
from evalengine.services.due_dates import DueBucket, classify, count_pending, utc_today

NOT_COMPLETED = "not_completed"
DATE_RANGES = ("week", "month", "quarter", "all")
SORT_FIELDS = ("scheduled_date", "employee_name", "status")

Employee = aliased(User, name="employee")
Evaluator = aliased(User, name="evaluator")


@dataclass
class EvaluationQuery:
    status: Optional[str] = None
    date_range: str = "all"
    evaluator_id: Optional[int] = None
    template_id: Optional[int] = None
    employee_id: Optional[int] = None
    department: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "scheduled_date"
    sort_order: str = "desc"
    limit: Optional[int] = None
    offset: int = 0


@dataclass
class EvaluationPage:
    items: List[Evaluation] = field(default_factory=list)
    total: int = 0


@dataclass
class DashboardStats:
    pending_evaluations: int
    overdue_evaluations: int
    completed_this_quarter: int
    completed_last_30_days: int
    upcoming_evaluations: List[Evaluation]
    recent_activity: List[Evaluation] = field(default_factory=list)


def start_of_quarter(today: date) -> date:
    return date(today.year, (today.month - 1) // 3 * 3 + 1, 1)


def date_range_bounds(date_range: str, today: date) -> Optional[Tuple[date, date]]:
    """Half-open [start, end) window for the calendar week, month or quarter holding ``today``."""
    if date_range in (None, "", "all"):
        return None
    if date_range == "week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=7)
    if date_range == "month":
        start = today.replace(day=1)
        end = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
        return start, end
    if date_range == "quarter":
        start = start_of_quarter(today)
        end = date(start.year + 1, 1, 1) if start.month == 10 else date(start.year, start.month + 3, 1)
        return start, end
    raise ValidationError(f"Unknown date range: {date_range}")


def _visible_to(actor: Actor):
    in_store = Evaluation.store_id.is_not_distinct_from(actor.store_id)
    if actor.sees_all_evaluations:
        return in_store
    return and_(in_store, or_(Evaluation.employee_id == actor.id, Evaluation.evaluator_id == actor.id))


def _department_clause(department: str):
    # Mirrors User.effective_department: explicit department, else first word of position
    return or_(
        Employee.department == department,
        and_(
            Employee.department.is_(None),
            or_(
                Employee.position == department,
                Employee.position.startswith(f"{department} ", autoescape=True),
            ),
        ),
    )


_status_rank = case(
    *[(Evaluation.status == status, rank) for rank, status in enumerate(STATUS_ORDER)],
    else_=len(STATUS_ORDER),
)


def build_query(actor: Actor, query: EvaluationQuery, today: date):
    stmt = (
        select(Evaluation)
        .join(Employee, Employee.id == Evaluation.employee_id)
        .join(Evaluator, Evaluator.id == Evaluation.evaluator_id)
    )

    stmt = stmt.where(_visible_to(actor))

    if query.status:
        if query.status == NOT_COMPLETED:
            stmt = stmt.where(Evaluation.status != EvaluationStatus.COMPLETED)
        else:
            try:
                stmt = stmt.where(Evaluation.status == EvaluationStatus(query.status))
            except ValueError:
                raise ValidationError(f"Unknown status: {query.status}")

    bounds = date_range_bounds(query.date_range, today)
    if bounds:
        stmt = stmt.where(Evaluation.scheduled_date >= bounds[0]).where(Evaluation.scheduled_date < bounds[1])

    if query.evaluator_id is not None:
        stmt = stmt.where(Evaluation.evaluator_id == query.evaluator_id)
    if query.template_id is not None:
        stmt = stmt.where(Evaluation.template_id == query.template_id)
    if query.employee_id is not None:
        stmt = stmt.where(Evaluation.employee_id == query.employee_id)
    if query.department:
        stmt = stmt.where(_department_clause(query.department))

    if query.search:
        term = query.search.strip()
        stmt = stmt.where(or_(
            Employee.name.icontains(term, autoescape=True),
            Evaluator.name.icontains(term, autoescape=True),
            Evaluation.template_name.icontains(term, autoescape=True),
        ))
    return stmt


def _order_by(query: EvaluationQuery):
    if query.sort_by not in SORT_FIELDS:
        raise ValidationError(f"Unknown sort field: {query.sort_by}")
    if query.sort_order not in ("asc", "desc"):
        raise ValidationError(f"Unknown sort order: {query.sort_order}")

    column = {
        "scheduled_date": Evaluation.scheduled_date,
        "employee_name": func.lower(Employee.name),
        "status": _status_rank,
    }[query.sort_by]
    if query.sort_order == "desc":
        return [column.desc(), Evaluation.id.desc()]
    return [column.asc(), Evaluation.id.asc()]


async def list_evaluations(
    db: AsyncSession, actor: Actor, query: EvaluationQuery, today: Optional[date] = None
) -> EvaluationPage:
    today = today or utc_today()
    stmt = build_query(actor, query, today)
    order = _order_by(query)

    total = await db.execute(select(func.count()).select_from(stmt.subquery()))

    stmt = stmt.order_by(*order).offset(query.offset)
    if query.limit is not None:
        stmt = stmt.limit(query.limit)
    result = await db.execute(stmt)
    return EvaluationPage(items=list(result.scalars().all()), total=total.scalar_one())


async def employee_history(db: AsyncSession, actor: Actor, employee_id: int) -> List[Evaluation]:
    employee = (await db.execute(select(User).where(User.id == employee_id))).scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found", employee_id=employee_id)
    allowed = (
        actor.id == employee_id
        or employee.manager_id == actor.id
        or (actor.sees_all_evaluations and actor.in_store(employee))
    )
    if not allowed:
        raise AuthorizationError("Access denied")

    result = await db.execute(
        select(Evaluation)
        .where(Evaluation.employee_id == employee_id)
        .order_by(Evaluation.scheduled_date.desc(), Evaluation.id.desc())
    )
    return list(result.scalars().all())


async def dashboard_stats(
    db: AsyncSession,
    actor: Actor,
    now: Optional[datetime] = None,
    upcoming_limit: int = 5,
    due_soon_days: int = 7,
    recent_limit: int = 10,
    recent_days: int = 7,
) -> DashboardStats:
    """Badge numbers for the dashboard, derived from the same primitives as the list view."""
    now = now or datetime.now(timezone.utc)
    today = now.date()

    mine = await db.execute(
        select(Evaluation)
        .where(or_(Evaluation.employee_id == actor.id, Evaluation.evaluator_id == actor.id))
        .where(Evaluation.store_id.is_not_distinct_from(actor.store_id))
        .where(Evaluation.status != EvaluationStatus.COMPLETED)
        .order_by(Evaluation.scheduled_date.asc(), Evaluation.id.asc())
    )
    open_evaluations = list(mine.scalars().all())

    viewed = await db.execute(select(EvaluationView.evaluation_id).where(EvaluationView.user_id == actor.id))
    viewed_ids = set(viewed.scalars().all())

    overdue = sum(
        1 for e in open_evaluations
        if classify(e.scheduled_date, now, due_soon_days).bucket == DueBucket.OVERDUE
    )
    upcoming = [
        e for e in open_evaluations
        if e.scheduled_date >= today and e.id not in viewed_ids
    ][:upcoming_limit]

    completed_base = (
        select(func.count(Evaluation.id))
        .where(Evaluation.status == EvaluationStatus.COMPLETED)
        .where(_visible_to(actor))
    )
    quarter_start = datetime.combine(start_of_quarter(today), datetime.min.time(), tzinfo=timezone.utc)
    this_quarter = await db.execute(completed_base.where(Evaluation.completed_date >= quarter_start))
    last_30 = await db.execute(completed_base.where(Evaluation.completed_date >= now - timedelta(days=30)))

    recent = await db.execute(
        select(Evaluation)
        .where(_visible_to(actor))
        .where(Evaluation.updated_at >= now - timedelta(days=recent_days))
        .order_by(Evaluation.updated_at.desc(), Evaluation.id.desc())
        .limit(recent_limit)
    )

    return DashboardStats(
        pending_evaluations=count_pending(open_evaluations),
        overdue_evaluations=overdue,
        completed_this_quarter=this_quarter.scalar_one(),
        completed_last_30_days=last_30.scalar_one(),
        upcoming_evaluations=upcoming,
        recent_activity=list(recent.scalars().all()),
    )
