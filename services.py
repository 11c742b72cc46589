"""Service layer joining the analytic engines to SQLite persistence.

The engines are pure; everything here that touches storage goes through
``db``. Errors are raised as :class:`engines.validation.EngineError`
subclasses and translated to HTTP responses by ``app``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

import db
from engines.assessment import recommended_course_ids, referrals_needed, score_assessment
from engines.education import analyze_education
from engines.nutrition import analyze_nutrition, generate_recommendations
from engines.scoring import ScoringMethod
from engines.suggestions import generate_suggestions
from engines.validation import InvalidInputError, NotFoundError, UnauthorizedError
from schemas import (
    AssessmentResponse,
    AssessmentResult,
    EducationOverview,
    EducationRecord,
    NutritionAnalysisResponse,
    NutritionOverview,
    NutritionRecommendation,
    NutritionRecord,
    PerformanceAnalysisResponse,
    Suggestion,
)
from scoring_config import ScoringConfig, get_scoring_config

logger = logging.getLogger(__name__)


def _require_child(child_id: str, parent_id: Optional[str] = None) -> dict:
    child = db.get_child(child_id)
    if child is None:
        raise NotFoundError(f"Child {child_id} not found", code="CHILD_NOT_FOUND")
    if parent_id is not None and child["parent_id"] != parent_id:
        raise UnauthorizedError(f"Child {child_id} does not belong to parent {parent_id}")
    return child


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


def process_assessment(
    responses: Iterable[AssessmentResponse],
    child_id: str,
    parent_id: str,
    method: ScoringMethod | str = ScoringMethod.WEIGHTED_AVERAGE,
    config: Optional[ScoringConfig] = None,
) -> AssessmentResult:
    """Score, store and act on one questionnaire submission.

    The result is appended to the child's history before recommended courses
    are assigned; a failure while assigning courses is logged and the stored
    result is still returned.
    """

    resolved = ScoringMethod.parse(method)
    _require_child(child_id, parent_id)

    responses = list(responses)
    questions = db.get_active_questions(response.question_id for response in responses)
    if not questions:
        raise InvalidInputError("No valid questions found", code="INVALID_QUESTIONS")

    result = score_assessment(
        responses,
        questions,
        resolved,
        config=config or get_scoring_config(),
        conducted_by=parent_id,
    )
    db.append_assessment_result(child_id, result)

    course_ids = recommended_course_ids(result)
    added = 0
    if course_ids:
        try:
            added = db.add_child_courses(child_id, course_ids)
        except sqlite3.Error:
            logger.exception("Failed to assign courses %s to child %s", course_ids, child_id)

    logger.info(
        "Processed assessment %s for child %s (method=%s, courses_added=%d, referrals=%d)",
        result.assessment_id,
        child_id,
        resolved.value,
        added,
        referrals_needed(result),
    )
    return result


def list_assessments(child_id: str, parent_id: Optional[str] = None) -> List[AssessmentResult]:
    _require_child(child_id, parent_id)
    return db.list_assessment_results(child_id)


def get_assessment(child_id: str, assessment_id: str, parent_id: Optional[str] = None) -> AssessmentResult:
    _require_child(child_id, parent_id)
    result = db.get_assessment_result(child_id, assessment_id)
    if result is None:
        raise NotFoundError(f"Assessment {assessment_id} not found", code="ASSESSMENT_NOT_FOUND")
    return result


def get_latest_assessment(child_id: str, parent_id: Optional[str] = None) -> AssessmentResult:
    history = list_assessments(child_id, parent_id)
    if not history:
        raise NotFoundError(f"No assessments recorded for child {child_id}", code="ASSESSMENT_NOT_FOUND")
    return history[-1]


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------


def add_grade_record(
    child_id: str,
    record: EducationRecord,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
    now: Optional[datetime] = None,
) -> EducationOverview:
    """Append a grade record and regenerate the child's suggestions wholesale."""

    _require_child(child_id, parent_id)
    db.append_education_record(child_id, record)
    records = db.list_education_records(child_id)
    suggestions = generate_suggestions(records, (config or get_scoring_config()).education, now=now)
    db.replace_education_suggestions(child_id, suggestions)
    logger.info("Stored %s grade record for child %s (%d suggestions)", record.grade_year, child_id, len(suggestions))
    return EducationOverview(child_id=child_id, records=records, suggestions=suggestions)


def get_performance_analysis(
    child_id: str,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
) -> PerformanceAnalysisResponse:
    _require_child(child_id, parent_id)
    records = db.list_education_records(child_id)
    if not records:
        return PerformanceAnalysisResponse(
            child_id=child_id,
            has_data=False,
            message="No academic records found for analysis",
        )

    analysis = analyze_education(records, (config or get_scoring_config()).education)
    return PerformanceAnalysisResponse(
        child_id=child_id,
        has_data=True,
        analysis=analysis,
        record_count=len(records),
        latest_grade=records[-1].grade_year,
        suggestions=db.list_education_suggestions(child_id),
    )


def regenerate_suggestions(
    child_id: str,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
    now: Optional[datetime] = None,
) -> List[Suggestion]:
    _require_child(child_id, parent_id)
    records = db.list_education_records(child_id)
    if not records:
        raise NotFoundError(f"No academic records found for child {child_id}", code="NO_RECORDS")
    suggestions = generate_suggestions(records, (config or get_scoring_config()).education, now=now)
    db.replace_education_suggestions(child_id, suggestions)
    return suggestions


# ---------------------------------------------------------------------------
# Nutrition
# ---------------------------------------------------------------------------


def add_nutrition_entry(
    child_id: str,
    record: NutritionRecord,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
    now: Optional[datetime] = None,
) -> NutritionOverview:
    _require_child(child_id, parent_id)
    db.append_nutrition_record(child_id, record)
    records = db.list_nutrition_records(child_id)
    recommendations = generate_recommendations(records, (config or get_scoring_config()).nutrition, now=now)
    db.replace_nutrition_recommendations(child_id, recommendations)
    logger.info("Stored nutrition record for child %s (%d recommendations)", child_id, len(recommendations))
    return NutritionOverview(child_id=child_id, records=records, recommendations=recommendations)


def get_nutrition_analysis(
    child_id: str,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
) -> NutritionAnalysisResponse:
    _require_child(child_id, parent_id)
    records = db.list_nutrition_records(child_id)
    if not records:
        return NutritionAnalysisResponse(
            child_id=child_id,
            has_data=False,
            message="No nutrition records found for analysis",
        )

    latest = records[-1]
    return NutritionAnalysisResponse(
        child_id=child_id,
        has_data=True,
        analysis=analyze_nutrition(latest, (config or get_scoring_config()).nutrition),
        record_count=len(records),
        latest_measurement=latest.physical_measurement,
        recommendations=db.list_nutrition_recommendations(child_id),
    )


def regenerate_recommendations(
    child_id: str,
    *,
    parent_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
    now: Optional[datetime] = None,
) -> List[NutritionRecommendation]:
    _require_child(child_id, parent_id)
    records = db.list_nutrition_records(child_id)
    if not records:
        raise NotFoundError(f"No nutrition records found for child {child_id}", code="NO_RECORDS")
    recommendations = generate_recommendations(records, (config or get_scoring_config()).nutrition, now=now)
    db.replace_nutrition_recommendations(child_id, recommendations)
    return recommendations
