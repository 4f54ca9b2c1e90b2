# evalengine/models/evaluation.py
import enum
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Float, Date, DateTime, ForeignKey, JSON, Enum,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from evalengine.database import Base

class EvaluationStatus(str, enum.Enum):
    PENDING_SELF_EVALUATION = "pending_self_evaluation"
    PENDING_MANAGER_REVIEW = "pending_manager_review"
    IN_REVIEW_SESSION = "in_review_session"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return STATUS_ORDER.index(self)

STATUS_ORDER = [
    EvaluationStatus.PENDING_SELF_EVALUATION,
    EvaluationStatus.PENDING_MANAGER_REVIEW,
    EvaluationStatus.IN_REVIEW_SESSION,
    EvaluationStatus.COMPLETED,
]

class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    evaluator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True, index=True)

    # Frozen copy of sections/criteria/scales taken at creation
    template_snapshot = Column(JSON, nullable=False)
    template_name = Column(String, nullable=False)

    status = Column(
        Enum(EvaluationStatus, name="evaluation_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EvaluationStatus.PENDING_SELF_EVALUATION,
    )
    scheduled_date = Column(Date, nullable=False)
    review_session_date = Column(DateTime(timezone=True), nullable=True)
    completed_date = Column(DateTime(timezone=True), nullable=True)

    # criterion id -> {"rating": float | None, "comment": str, "attachments": [...]}
    self_evaluation = Column(JSON, nullable=False, default=dict)
    manager_evaluation = Column(JSON, nullable=False, default=dict)
    overall_comments = Column(Text, nullable=True)
    development_plan = Column(Text, nullable=True)

    overall_score = Column(Float, nullable=True)
    section_scores = Column(JSON, nullable=True)
    score_percentage = Column(Float, nullable=True)

    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    acknowledgement_notes = Column(Text, nullable=True)
    acknowledgement_signature = Column(String, nullable=True)

    # employee_id while active, NULL once completed and acknowledged
    active_employee_id = Column(Integer, nullable=True)

    # Bumped on every write; guards read-modify-write of the JSON columns
    version = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id], lazy="selectin")
    evaluator = relationship("User", foreign_keys=[evaluator_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("active_employee_id", name="uq_evaluation_active_employee"),
    )

    @property
    def is_active(self) -> bool:
        return not (self.status == EvaluationStatus.COMPLETED and self.acknowledged)

class EvaluationView(Base):
    __tablename__ = "evaluation_views"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(Integer, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    viewed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("evaluation_id", "user_id", name="uq_evaluation_view_user"),)
