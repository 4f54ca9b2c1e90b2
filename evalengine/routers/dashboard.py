from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from evalengine.config import settings
from evalengine.database import get_db
from evalengine.core.actor import Actor
from evalengine.core.auth import get_current_actor
from evalengine.models.evaluation import Evaluation
from evalengine.schemas.dashboard import DashboardStatsResponse, RecentActivity, UpcomingEvaluation
from evalengine.schemas.evaluation import DueStatusResponse
from evalengine.services.due_dates import classify
from evalengine.services.queries import dashboard_stats

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

def _activity(evaluation: Evaluation) -> RecentActivity:
    evaluator = evaluation.evaluator.display_name if evaluation.evaluator else "Unknown"
    employee = evaluation.employee.display_name if evaluation.employee else "Unknown Employee"
    status = evaluation.status.value.replace("_", " ")
    return RecentActivity(
        id=evaluation.id,
        type=evaluation.status,
        description=f"{evaluator} updated the evaluation for {employee} ({status})",
        date=evaluation.updated_at,
    )

@router.get("/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    now = datetime.now(timezone.utc)
    stats = await dashboard_stats(
        db,
        actor,
        now=now,
        upcoming_limit=settings.DASHBOARD_UPCOMING_LIMIT,
        due_soon_days=settings.DUE_SOON_DAYS,
    )

    return DashboardStatsResponse(
        pending_evaluations=stats.pending_evaluations,
        overdue_evaluations=stats.overdue_evaluations,
        completed_this_quarter=stats.completed_this_quarter,
        completed_last_30_days=stats.completed_last_30_days,
        upcoming_evaluations=[
            UpcomingEvaluation(
                id=e.id,
                employee_name=e.employee.display_name if e.employee else "Unknown Employee",
                template_name=e.template_name or "No Template",
                scheduled_date=e.scheduled_date,
                due=DueStatusResponse.model_validate(
                    classify(e.scheduled_date, now, settings.DUE_SOON_DAYS)
                ),
            )
            for e in stats.upcoming_evaluations
        ],
        recent_activity=[_activity(e) for e in stats.recent_activity],
    )
