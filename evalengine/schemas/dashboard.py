from pydantic import BaseModel
from datetime import date, datetime
from typing import List, Optional
from evalengine.models.evaluation import EvaluationStatus
from evalengine.schemas.evaluation import DueStatusResponse

class UpcomingEvaluation(BaseModel):
    id: int
    employee_name: str
    template_name: str
    scheduled_date: date
    due: DueStatusResponse

class RecentActivity(BaseModel):
    id: int
    type: EvaluationStatus
    description: str
    date: Optional[datetime]

class DashboardStatsResponse(BaseModel):
    pending_evaluations: int
    overdue_evaluations: int
    completed_this_quarter: int
    completed_last_30_days: int
    upcoming_evaluations: List[UpcomingEvaluation]
    recent_activity: List[RecentActivity] = []
