from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from typing import Optional
from evalengine.config import settings
from evalengine.database import get_db
from evalengine.core.actor import Actor
from evalengine.core.auth import get_current_actor
from evalengine.core.errors import AuthorizationError, ValidationError
from evalengine.models.evaluation import Evaluation, EvaluationStatus
from evalengine.schemas.evaluation import (
    EvaluationCreate, EvaluationCreateResponse, CreationResultItem, EvaluationUpdate,
    AcknowledgeRequest, EvaluationSummary, EvaluationDetail, EvaluationListResponse,
    AcknowledgementResponse, DueStatusResponse, EligibleEmployee, EligibilityResponse,
)
from evalengine.services import evaluation_store, lifecycle, queries
from evalengine.services.due_dates import classify, utc_today
from evalengine.services.eligibility import resolve_eligible
from evalengine.services.scheduling import next_evaluation_date

router = APIRouter(prefix="/api/evaluations", tags=["evaluations"])


def _summary_fields(evaluation: Evaluation, now: datetime) -> dict:
    employee = evaluation.employee
    evaluator = evaluation.evaluator
    due = None
    if evaluation.status != EvaluationStatus.COMPLETED:
        due = DueStatusResponse.model_validate(
            classify(evaluation.scheduled_date, now, settings.DUE_SOON_DAYS)
        )
    return dict(
        id=evaluation.id,
        employee_id=evaluation.employee_id,
        employee_name=employee.display_name if employee else None,
        evaluator_id=evaluation.evaluator_id,
        evaluator_name=evaluator.display_name if evaluator else None,
        department=employee.effective_department if employee else None,
        template_id=evaluation.template_id,
        template_name=evaluation.template_name,
        status=evaluation.status,
        scheduled_date=evaluation.scheduled_date,
        review_session_date=evaluation.review_session_date,
        completed_date=evaluation.completed_date,
        overall_score=evaluation.overall_score,
        acknowledged=evaluation.acknowledged,
        due=due,
    )


def to_summary(evaluation: Evaluation, now: datetime) -> EvaluationSummary:
    return EvaluationSummary(**_summary_fields(evaluation, now))


def to_detail(evaluation: Evaluation, now: datetime) -> EvaluationDetail:
    acknowledgement = None
    if evaluation.status == EvaluationStatus.COMPLETED:
        acknowledgement = AcknowledgementResponse(
            acknowledged=evaluation.acknowledged,
            date=evaluation.acknowledged_at,
            notes=evaluation.acknowledgement_notes,
            signature=evaluation.acknowledgement_signature,
        )
    return EvaluationDetail(
        **_summary_fields(evaluation, now),
        template_snapshot=evaluation.template_snapshot,
        self_evaluation=evaluation.self_evaluation or {},
        manager_evaluation=evaluation.manager_evaluation or {},
        overall_comments=evaluation.overall_comments,
        development_plan=evaluation.development_plan,
        section_scores=evaluation.section_scores,
        score_percentage=evaluation.score_percentage,
        acknowledgement=acknowledgement,
        created_at=evaluation.created_at,
        updated_at=evaluation.updated_at,
    )


@router.get("", response_model=EvaluationListResponse)
async def list_evaluations(
    status_filter: Optional[str] = Query(None, alias="status"),
    date_range: str = Query("all", alias="dateRange"),
    evaluator_id: Optional[int] = Query(None, alias="evaluator"),
    template_id: Optional[int] = Query(None, alias="template"),
    department: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("scheduled_date", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    now = datetime.now(timezone.utc)
    page = await queries.list_evaluations(
        db,
        actor,
        queries.EvaluationQuery(
            status=status_filter,
            date_range=date_range,
            evaluator_id=evaluator_id,
            template_id=template_id,
            department=department,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        ),
        today=now.date(),
    )
    return EvaluationListResponse(
        total=page.total,
        evaluations=[to_summary(e, now) for e in page.items],
    )


@router.get("/eligible", response_model=EligibilityResponse)
async def get_eligible_employees(
    my_team_only: bool = False,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    if not actor.can_create_evaluations:
        raise AuthorizationError("Only managers and directors can create evaluations")

    roster = await evaluation_store.load_roster(db, actor.store_id)
    active = await evaluation_store.list_active_evaluations(db)
    result = resolve_eligible(actor, roster, active, my_team_only=my_team_only)

    today = utc_today()
    last_completed = await evaluation_store.last_completed_dates(db, [e.id for e in result.available])

    def _employee(user, **extra) -> EligibleEmployee:
        return EligibleEmployee(
            id=user.id,
            name=user.display_name,
            position=user.position,
            department=user.effective_department,
            manager_id=user.manager_id,
            **extra,
        )

    return EligibilityResponse(
        available=[
            _employee(user, suggested_date=next_evaluation_date(
                today,
                settings.EVALUATION_FREQUENCY_DAYS,
                settings.EVALUATION_CYCLE_START,
                start_date=user.start_date,
                last_evaluation=last_completed.get(user.id),
                custom_start=settings.EVALUATION_CUSTOM_START_DATE,
            ))
            for user in result.available
        ],
        blocked=[
            _employee(user, blocking_evaluation_id=result.blocking_evaluations.get(user.id))
            for user in result.blocked
        ],
    )


@router.get("/employee/{employee_id}", response_model=list[EvaluationSummary])
async def get_employee_evaluations(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    now = datetime.now(timezone.utc)
    history = await queries.employee_history(db, actor, employee_id)
    return [to_summary(e, now) for e in history]


@router.post("", response_model=EvaluationCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_evaluations(
    evaluation_in: EvaluationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    results = await evaluation_store.create_evaluations(
        db,
        actor,
        employee_ids=evaluation_in.employee_ids,
        template_id=evaluation_in.template_id,
        scheduled_date=evaluation_in.scheduled_date,
    )
    created = sum(1 for r in results if r.created)
    return EvaluationCreateResponse(
        created=created,
        failed=len(results) - created,
        results=[CreationResultItem.model_validate(r) for r in results],
    )


@router.get("/{evaluation_id}", response_model=EvaluationDetail)
async def get_evaluation(
    evaluation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    evaluation = await evaluation_store.get_visible_evaluation(db, actor, evaluation_id)
    return to_detail(evaluation, datetime.now(timezone.utc))


@router.put("/{evaluation_id}", response_model=EvaluationDetail)
async def update_evaluation(
    evaluation_id: int,
    update_in: EvaluationUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    if update_in.transition == lifecycle.Transition.ACKNOWLEDGE:
        raise ValidationError(
            "Acknowledge through POST /api/evaluations/{id}/acknowledge", evaluation_id=evaluation_id
        )
    ratings = None
    if update_in.ratings is not None:
        ratings = {k: v.model_dump() for k, v in update_in.ratings.items()}
    evaluation = await lifecycle.apply_transition(
        db,
        actor,
        evaluation_id,
        lifecycle.TransitionRequest(
            transition=update_in.transition,
            ratings=ratings,
            review_session_date=update_in.review_session_date,
            overall_comments=update_in.overall_comments,
            development_plan=update_in.development_plan,
        ),
    )
    return to_detail(evaluation, datetime.now(timezone.utc))


@router.post("/{evaluation_id}/acknowledge", response_model=EvaluationDetail)
async def acknowledge_evaluation(
    evaluation_id: int,
    ack_in: AcknowledgeRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    evaluation = await lifecycle.acknowledge(
        db, actor, evaluation_id, notes=ack_in.notes, signature=ack_in.signature
    )
    return to_detail(evaluation, datetime.now(timezone.utc))


@router.post("/{evaluation_id}/mark-viewed")
async def mark_evaluation_viewed(
    evaluation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await evaluation_store.mark_viewed(db, actor, evaluation_id)
    return {"message": "Notification marked as viewed"}


@router.delete("/{evaluation_id}")
async def delete_evaluation(
    evaluation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await evaluation_store.delete_evaluation(db, actor, evaluation_id)
    return {"message": "Evaluation deleted successfully"}
