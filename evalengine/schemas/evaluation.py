from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from evalengine.models.evaluation import EvaluationStatus
from evalengine.services.due_dates import DueBucket
from evalengine.services.lifecycle import Transition

class AttachmentRef(BaseModel):
    id: str
    name: Optional[str] = None
    url: Optional[str] = None

class RatingEntry(BaseModel):
    rating: Optional[float] = None
    comment: str = ""
    attachments: List[AttachmentRef] = Field(default_factory=list)

class EvaluationCreate(BaseModel):
    employee_ids: List[int] = Field(..., min_length=1)
    template_id: int
    scheduled_date: date

class CreationResultItem(BaseModel):
    employee_id: int
    status: str  # created, blocked, not_found, forbidden
    evaluation_id: Optional[int] = None
    detail: Optional[str] = None

    model_config = {"from_attributes": True}

class EvaluationCreateResponse(BaseModel):
    created: int
    failed: int
    results: List[CreationResultItem]

class EvaluationUpdate(BaseModel):
    # Explicit verb; omit it to save a draft without changing status
    transition: Optional[Transition] = None
    ratings: Optional[Dict[str, RatingEntry]] = None
    review_session_date: Optional[datetime] = None
    overall_comments: Optional[str] = None
    development_plan: Optional[str] = None

class AcknowledgeRequest(BaseModel):
    notes: Optional[str] = None
    signature: Optional[str] = Field(None, max_length=200)

class DueStatusResponse(BaseModel):
    label: str
    bucket: DueBucket
    days: int

    model_config = {"from_attributes": True}

class AcknowledgementResponse(BaseModel):
    acknowledged: bool
    date: Optional[datetime]
    notes: Optional[str]
    signature: Optional[str]

class EvaluationSummary(BaseModel):
    id: int
    employee_id: int
    employee_name: Optional[str]
    evaluator_id: int
    evaluator_name: Optional[str]
    department: Optional[str]
    template_id: int
    template_name: str
    status: EvaluationStatus
    scheduled_date: date
    review_session_date: Optional[datetime]
    completed_date: Optional[datetime]
    overall_score: Optional[float]
    acknowledged: bool
    due: Optional[DueStatusResponse]  # None once completed

class EvaluationListResponse(BaseModel):
    total: int
    evaluations: List[EvaluationSummary]

class EvaluationDetail(EvaluationSummary):
    template_snapshot: Dict[str, Any]
    self_evaluation: Dict[str, RatingEntry]
    manager_evaluation: Dict[str, RatingEntry]
    overall_comments: Optional[str]
    development_plan: Optional[str]
    section_scores: Optional[Dict[str, float]]
    score_percentage: Optional[float]
    acknowledgement: Optional[AcknowledgementResponse]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

class EligibleEmployee(BaseModel):
    id: int
    name: Optional[str]
    position: Optional[str]
    department: Optional[str]
    manager_id: Optional[int]
    suggested_date: Optional[date] = None
    blocking_evaluation_id: Optional[int] = None

class EligibilityResponse(BaseModel):
    available: List[EligibleEmployee]
    blocked: List[EligibleEmployee]
