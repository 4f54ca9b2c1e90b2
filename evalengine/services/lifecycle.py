# evalengine/services/lifecycle.py
import copy
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from evalengine.core.actor import Actor
from evalengine.core.errors import AuthorizationError, InvalidStateError, ValidationError
from evalengine.models.evaluation import Evaluation, EvaluationStatus
from evalengine.services import evaluation_store
from evalengine.services.scoring import compute_overall_score

logger = logging.getLogger(__name__)


class Transition(str, enum.Enum):
    SUBMIT_SELF_EVALUATION = "submit_self_evaluation"
    SCHEDULE_REVIEW_SESSION = "schedule_review_session"
    COMPLETE_REVIEW = "complete_review"
    ACKNOWLEDGE = "acknowledge"


class Party(str, enum.Enum):
    EMPLOYEE = "employee"
    EVALUATOR = "evaluator"


@dataclass(frozen=True)
class TransitionRule:
    source: EvaluationStatus
    target: EvaluationStatus
    party: Party


TRANSITIONS: Dict[Transition, TransitionRule] = {
    Transition.SUBMIT_SELF_EVALUATION: TransitionRule(
        EvaluationStatus.PENDING_SELF_EVALUATION, EvaluationStatus.PENDING_MANAGER_REVIEW, Party.EMPLOYEE
    ),
    Transition.SCHEDULE_REVIEW_SESSION: TransitionRule(
        EvaluationStatus.PENDING_MANAGER_REVIEW, EvaluationStatus.IN_REVIEW_SESSION, Party.EVALUATOR
    ),
    Transition.COMPLETE_REVIEW: TransitionRule(
        EvaluationStatus.IN_REVIEW_SESSION, EvaluationStatus.COMPLETED, Party.EVALUATOR
    ),
    # Acknowledgement is a flag on a completed evaluation, not a new status
    Transition.ACKNOWLEDGE: TransitionRule(
        EvaluationStatus.COMPLETED, EvaluationStatus.COMPLETED, Party.EMPLOYEE
    ),
}

MANAGER_DRAFT_STATES = (EvaluationStatus.PENDING_MANAGER_REVIEW, EvaluationStatus.IN_REVIEW_SESSION)

PAYLOAD_FIELDS = (
    "ratings", "review_session_date", "overall_comments", "development_plan", "notes", "signature",
)

ACCEPTED_FIELDS = {
    Transition.SUBMIT_SELF_EVALUATION: {"ratings"},
    Transition.SCHEDULE_REVIEW_SESSION: {"review_session_date"},
    Transition.COMPLETE_REVIEW: {"ratings", "overall_comments", "development_plan"},
    Transition.ACKNOWLEDGE: {"notes", "signature"},
    None: {"ratings", "overall_comments", "development_plan"},
}


@dataclass
class TransitionRequest:
    transition: Optional[Transition] = None
    ratings: Optional[Dict[str, Dict[str, Any]]] = None
    review_session_date: Optional[datetime] = None
    overall_comments: Optional[str] = None
    development_plan: Optional[str] = None
    notes: Optional[str] = None
    signature: Optional[str] = None


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_entry(entry: Any) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        entry = {"rating": entry}
    return {
        "rating": entry.get("rating"),
        "comment": entry.get("comment") or "",
        "attachments": list(entry.get("attachments") or []),
    }


def merge_ratings(existing: Optional[Dict[str, Any]], updates: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = copy.deepcopy(existing or {})
    for criterion_id, entry in (updates or {}).items():
        merged[str(criterion_id)] = _normalize_entry(entry)
    return merged


def missing_required(snapshot: Dict[str, Any], ratings: Dict[str, Any]) -> List[str]:
    """Required criteria that still lack an answer.

    Rated criteria need a rating; criteria without a grading scale are
    free-text and need a comment instead.
    """
    missing = []
    for section in snapshot.get("sections") or []:
        for criterion in section.get("criteria") or []:
            if not criterion.get("required", True):
                continue
            criterion_id = str(criterion.get("id"))
            entry = ratings.get(criterion_id) or {}
            if criterion.get("grading_scale"):
                filled = entry.get("rating") is not None
            else:
                filled = bool((entry.get("comment") or "").strip())
            if not filled:
                missing.append(criterion_id)
    return missing


def _is_party(actor: Actor, evaluation: Evaluation, party: Party) -> bool:
    if party == Party.EMPLOYEE:
        return actor.id == evaluation.employee_id
    return actor.id == evaluation.evaluator_id


def _authorize(actor: Actor, evaluation: Evaluation, party: Party) -> None:
    if not _is_party(actor, evaluation, party):
        if party == Party.EMPLOYEE:
            raise AuthorizationError("Only the evaluated employee can do this", evaluation_id=evaluation.id)
        raise AuthorizationError("Only the assigned evaluator can do this", evaluation_id=evaluation.id)


def _reject_unused_fields(request: TransitionRequest) -> None:
    accepted = ACCEPTED_FIELDS[request.transition]
    unused = [name for name in PAYLOAD_FIELDS if name not in accepted and getattr(request, name) is not None]
    if unused:
        action = request.transition.value if request.transition else "A draft save"
        raise ValidationError(f"{action} does not accept: {', '.join(unused)}", fields=unused)


def _invalid_state(evaluation: Evaluation, transition: Optional[Transition]) -> InvalidStateError:
    return InvalidStateError(
        f"Evaluation is {evaluation.status.value}",
        evaluation_id=evaluation.id,
        status=evaluation.status.value,
        transition=transition.value if transition else None,
    )


def _plan_submit_self(evaluation: Evaluation, request: TransitionRequest, now: datetime) -> Dict[str, Any]:
    ratings = merge_ratings(evaluation.self_evaluation, request.ratings)
    missing = missing_required(evaluation.template_snapshot, ratings)
    if missing:
        raise ValidationError("Self-evaluation is incomplete", missing_criteria=missing)
    return {
        "status": EvaluationStatus.PENDING_MANAGER_REVIEW,
        "self_evaluation": ratings,
    }


def _plan_schedule_review(evaluation: Evaluation, request: TransitionRequest, now: datetime) -> Dict[str, Any]:
    session_date = _utc(request.review_session_date)
    if session_date is None:
        raise ValidationError("Review session date is required")
    if session_date.date() < now.date():
        raise ValidationError("Review session date cannot be in the past")
    return {
        "status": EvaluationStatus.IN_REVIEW_SESSION,
        "review_session_date": session_date,
    }


def _plan_complete(evaluation: Evaluation, request: TransitionRequest, now: datetime) -> Dict[str, Any]:
    ratings = merge_ratings(evaluation.manager_evaluation, request.ratings)
    missing = missing_required(evaluation.template_snapshot, ratings)
    if missing:
        raise ValidationError("Manager review is incomplete", missing_criteria=missing)
    scores = compute_overall_score(ratings, evaluation.template_snapshot)
    values = {
        "status": EvaluationStatus.COMPLETED,
        "manager_evaluation": ratings,
        "completed_date": now,
        "review_session_date": evaluation.review_session_date or now,
        "overall_score": scores.overall,
        "section_scores": scores.by_section,
        "score_percentage": scores.percentage,
    }
    if request.overall_comments is not None:
        values["overall_comments"] = request.overall_comments
    if request.development_plan is not None:
        values["development_plan"] = request.development_plan
    return values


_PLANNERS = {
    Transition.SUBMIT_SELF_EVALUATION: _plan_submit_self,
    Transition.SCHEDULE_REVIEW_SESSION: _plan_schedule_review,
    Transition.COMPLETE_REVIEW: _plan_complete,
}


def _already_applied(evaluation: Evaluation, request: TransitionRequest) -> bool:
    """True when the stored record already reflects this exact request."""
    if request.transition == Transition.SUBMIT_SELF_EVALUATION:
        return merge_ratings(evaluation.self_evaluation, request.ratings) == (evaluation.self_evaluation or {})
    if request.transition == Transition.SCHEDULE_REVIEW_SESSION:
        return _utc(request.review_session_date) == _utc(evaluation.review_session_date)
    if request.transition == Transition.COMPLETE_REVIEW:
        if merge_ratings(evaluation.manager_evaluation, request.ratings) != (evaluation.manager_evaluation or {}):
            return False
        if request.overall_comments is not None and request.overall_comments != evaluation.overall_comments:
            return False
        if request.development_plan is not None and request.development_plan != evaluation.development_plan:
            return False
        return True
    return False


def _plan_acknowledge(evaluation: Evaluation, request: TransitionRequest, now: datetime) -> Optional[Dict[str, Any]]:
    if evaluation.status != EvaluationStatus.COMPLETED:
        raise _invalid_state(evaluation, Transition.ACKNOWLEDGE)
    if evaluation.acknowledged:
        # First acknowledgement wins; later ones leave the record as is
        return None
    return {
        "acknowledged": True,
        "acknowledged_at": now,
        "acknowledgement_notes": request.notes,
        "acknowledgement_signature": request.signature,
        "active_employee_id": None,
    }


def _plan_draft(evaluation: Evaluation, actor: Actor, request: TransitionRequest) -> Optional[Dict[str, Any]]:
    if request.review_session_date is not None:
        raise ValidationError("Scheduling a review session requires the schedule_review_session transition")
    _reject_unused_fields(request)

    if _is_party(actor, evaluation, Party.EMPLOYEE):
        if evaluation.status != EvaluationStatus.PENDING_SELF_EVALUATION:
            raise _invalid_state(evaluation, None)
        if request.overall_comments is not None or request.development_plan is not None:
            raise AuthorizationError("Only the assigned evaluator can write review comments")
        if request.ratings is None:
            return None
        return {"self_evaluation": merge_ratings(evaluation.self_evaluation, request.ratings)}

    if _is_party(actor, evaluation, Party.EVALUATOR):
        if evaluation.status not in MANAGER_DRAFT_STATES:
            raise _invalid_state(evaluation, None)
        values: Dict[str, Any] = {}
        if request.ratings is not None:
            values["manager_evaluation"] = merge_ratings(evaluation.manager_evaluation, request.ratings)
        if request.overall_comments is not None:
            values["overall_comments"] = request.overall_comments
        if request.development_plan is not None:
            values["development_plan"] = request.development_plan
        return values or None

    raise AuthorizationError("Not your evaluation", evaluation_id=evaluation.id)


def plan_transition(
    evaluation: Evaluation, actor: Actor, request: TransitionRequest, now: datetime
) -> Optional[Dict[str, Any]]:
    """Validate ``request`` against the evaluation and return the column values to write.

    Returns None when there is nothing to write (an idempotent repeat or
    an empty draft). Never mutates ``evaluation``.
    """
    if request.transition is None:
        return _plan_draft(evaluation, actor, request)

    rule = TRANSITIONS[request.transition]
    _authorize(actor, evaluation, rule.party)
    _reject_unused_fields(request)

    if request.transition == Transition.ACKNOWLEDGE:
        return _plan_acknowledge(evaluation, request, now)

    if evaluation.status == rule.target:
        if _already_applied(evaluation, request):
            return None
        raise _invalid_state(evaluation, request.transition)
    if evaluation.status != rule.source:
        raise _invalid_state(evaluation, request.transition)
    return _PLANNERS[request.transition](evaluation, request, now)


async def apply_transition(
    db: AsyncSession,
    actor: Actor,
    evaluation_id: int,
    request: TransitionRequest,
    now: Optional[datetime] = None,
) -> Evaluation:
    now = _utc(now) or datetime.now(timezone.utc)
    evaluation = await evaluation_store.get_evaluation(db, evaluation_id, refresh=True)
    values = plan_transition(evaluation, actor, request, now)
    if values is None:
        return evaluation

    acknowledging = request.transition == Transition.ACKNOWLEDGE
    expected = evaluation.status
    version = evaluation.version
    swapped = await evaluation_store.compare_and_swap(
        db, evaluation_id, expected, values,
        require_unacknowledged=acknowledging,
        expected_version=version,
    )
    if not swapped:
        current = await evaluation_store.get_evaluation(db, evaluation_id, refresh=True)
        if acknowledging and current.acknowledged:
            return current
        logger.warning(
            "Concurrent update on evaluation %s: read %s v%s, found %s v%s",
            evaluation_id, expected.value, version, current.status.value, current.version,
        )
        if current.status == expected:
            raise InvalidStateError(
                "Evaluation was changed by someone else; reload and try again",
                evaluation_id=evaluation_id,
                status=current.status.value,
                transition=request.transition.value if request.transition else None,
            )
        raise _invalid_state(current, request.transition)

    logger.info(
        "Evaluation %s: %s by %s",
        evaluation_id, request.transition.value if request.transition else "draft saved", actor.id,
    )
    return await evaluation_store.get_evaluation(db, evaluation_id, refresh=True)


async def acknowledge(
    db: AsyncSession,
    actor: Actor,
    evaluation_id: int,
    notes: Optional[str] = None,
    signature: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Evaluation:
    request = TransitionRequest(transition=Transition.ACKNOWLEDGE, notes=notes, signature=signature)
    return await apply_transition(db, actor, evaluation_id, request, now=now)
