# evalengine/services/eligibility.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from evalengine.core.actor import Actor
from evalengine.models.evaluation import EvaluationStatus

logger = logging.getLogger(__name__)


@dataclass
class EligibilityResult:
    available: List[Any] = field(default_factory=list)
    blocked: List[Any] = field(default_factory=list)
    # employee id -> id of the evaluation blocking them
    blocking_evaluations: Dict[int, Any] = field(default_factory=dict)


def is_blocking(evaluation: Any) -> bool:
    """Completed evaluations keep blocking until the employee acknowledges them."""
    status = getattr(evaluation, "status", None)
    if status != EvaluationStatus.COMPLETED:
        return True
    return not getattr(evaluation, "acknowledged", False)


def _active_by_employee(active_evaluations: Iterable[Any]) -> Dict[int, Any]:
    active = {}
    for evaluation in active_evaluations:
        employee_id = getattr(evaluation, "employee_id", None)
        if employee_id is None or getattr(evaluation, "id", None) is None:
            logger.warning("Skipping malformed evaluation record: %r", evaluation)
            continue
        if is_blocking(evaluation):
            active.setdefault(employee_id, evaluation.id)
    return active


def resolve_eligible(
    actor: Actor,
    roster: Iterable[Any],
    active_evaluations: Iterable[Any],
    my_team_only: bool = False,
) -> EligibilityResult:
    """Work out which employees ``actor`` may start a new evaluation for.

    Only employees of the actor's store are considered. Line managers
    see their direct reports; directors see the whole store, or their
    direct reports when ``my_team_only`` is set. Anyone else
    sees nobody. Employees with unfinished business (an evaluation that
    is not both completed and acknowledged) land in ``blocked``.
    Malformed rows are dropped so one bad record never hides the rest of
    the team.
    """
    result = EligibilityResult()
    if not actor.can_create_evaluations:
        return result

    active = _active_by_employee(active_evaluations)
    reports_only = actor.is_line_manager or my_team_only

    for employee in roster:
        employee_id = getattr(employee, "id", None)
        if employee_id is None:
            logger.warning("Skipping roster entry without an id: %r", employee)
            continue
        if employee_id == actor.id or not actor.in_store(employee):
            continue
        if reports_only and getattr(employee, "manager_id", None) != actor.id:
            continue

        if employee_id in active:
            result.blocked.append(employee)
            result.blocking_evaluations[employee_id] = active[employee_id]
        else:
            result.available.append(employee)
    return result
