# evalengine/services/scoring.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class ScoreBreakdown:
    overall: Optional[float]
    by_section: Dict[str, float] = field(default_factory=dict)
    percentage: Optional[float] = None


def _rating_value(entry: Any) -> Optional[float]:
    if isinstance(entry, dict):
        entry = entry.get("rating")
    if entry is None or isinstance(entry, bool):
        return None
    try:
        return float(entry)
    except (TypeError, ValueError):
        return None


def _scale_max(scale: dict) -> Optional[float]:
    values = [g.get("value") for g in scale.get("grades") or [] if g.get("value") is not None]
    return max(values) if values else None


def compute_overall_score(ratings: Dict[str, Any], template: Dict[str, Any]) -> ScoreBreakdown:
    """Average the evaluator's ratings against a template snapshot.

    A section's score is the mean of its rated criteria; the overall score
    is the flat mean over every rated criterion (not a mean of section
    means). Unrated criteria and criteria without a grading scale do not
    count toward any denominator. Bounds are not checked here.
    """
    ratings = ratings or {}
    all_values = []
    by_section: Dict[str, float] = {}
    total_score = 0.0
    total_possible = 0.0

    for section in template.get("sections") or []:
        section_values = []
        for criterion in section.get("criteria") or []:
            scale = criterion.get("grading_scale")
            if not scale:
                continue
            value = _rating_value(ratings.get(str(criterion.get("id"))))
            if value is None:
                continue
            section_values.append(value)
            scale_max = _scale_max(scale)
            if scale_max:
                total_score += value
                total_possible += scale_max
        if section_values:
            by_section[str(section.get("id"))] = sum(section_values) / len(section_values)
            all_values.extend(section_values)

    if not all_values:
        logger.debug("No rated criteria in template %s", template.get("id"))
        return ScoreBreakdown(overall=None, by_section={}, percentage=None)

    percentage = round(total_score / total_possible * 100) if total_possible else None
    return ScoreBreakdown(
        overall=sum(all_values) / len(all_values),
        by_section=by_section,
        percentage=percentage,
    )
