# app.py — Child development analytics API
# - Questionnaire scoring with severity tiers, course assignment and referrals
# - Academic trend analysis with study suggestions
# - Nutrition analysis with diet/habit recommendations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException

import db
import services
from engines.severity import classify_severity
from engines.validation import EngineError
from schemas import (
    AssessmentRequest,
    AssessmentResult,
    ChildBody,
    EducationOverview,
    EducationRecord,
    NutritionAnalysisResponse,
    NutritionOverview,
    NutritionRecommendation,
    NutritionRecord,
    PerformanceAnalysisResponse,
    Question,
    SeverityRequest,
    SeverityResponse,
    Suggestion,
)
from scoring_config import get_scoring_config

logger = logging.getLogger(__name__)


def _apply_log_level() -> None:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        logger.warning("Unknown LOG_LEVEL %r; keeping INFO", level_name)
        level = logging.INFO
    logging.getLogger().setLevel(level)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        # Validate environment variables first
        from env_validation import validate_environment
        validate_environment()

        _apply_log_level()
        db.init()
        config = get_scoring_config()
        logger.info("Scoring configuration loaded with %d issues", len(config.issues))
        yield
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="Child Development Analytics", version="1.0.0", lifespan=_lifespan)


def _http_error(exc: EngineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@app.get("/")
def root():
    return {"status": "ok", "service": "child-development-analytics"}


@app.post("/questions", response_model=Question)
def upsert_question(body: Question):
    db.upsert_question(body)
    return body


@app.post("/children", response_model=ChildBody)
def register_child(body: ChildBody):
    db.upsert_child(body.child_id, body.parent_id, body.name)
    return body


# -------------- assessments --------------
@app.post("/assessments", response_model=AssessmentResult)
def submit_assessment(body: AssessmentRequest):
    try:
        return services.process_assessment(body.responses, body.child_id, body.parent_id, body.method)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.get("/children/{child_id}/assessments", response_model=List[AssessmentResult])
def list_assessments(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.list_assessments(child_id, parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.get("/children/{child_id}/assessments/latest", response_model=AssessmentResult)
def latest_assessment(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.get_latest_assessment(child_id, parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.get("/children/{child_id}/assessments/{assessment_id}", response_model=AssessmentResult)
def get_assessment(child_id: str, assessment_id: str, parent_id: Optional[str] = None):
    try:
        return services.get_assessment(child_id, assessment_id, parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.post("/severity/classify", response_model=SeverityResponse)
def classify(body: SeverityRequest):
    try:
        severity = classify_severity(body.issue_id, body.score, body.method, get_scoring_config())
    except EngineError as exc:
        raise _http_error(exc) from exc
    return SeverityResponse(issue_id=body.issue_id, method=body.method, severity=severity)


# -------------- education --------------
@app.post("/children/{child_id}/education/records", response_model=EducationOverview)
def add_education_record(child_id: str, body: EducationRecord, parent_id: Optional[str] = None):
    try:
        return services.add_grade_record(child_id, body, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.get("/children/{child_id}/education/analysis", response_model=PerformanceAnalysisResponse)
def education_analysis(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.get_performance_analysis(child_id, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.post("/children/{child_id}/education/suggestions/regenerate", response_model=List[Suggestion])
def regenerate_education_suggestions(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.regenerate_suggestions(child_id, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


# -------------- nutrition --------------
@app.post("/children/{child_id}/nutrition/records", response_model=NutritionOverview)
def add_nutrition_record(child_id: str, body: NutritionRecord, parent_id: Optional[str] = None):
    try:
        return services.add_nutrition_entry(child_id, body, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.get("/children/{child_id}/nutrition/analysis", response_model=NutritionAnalysisResponse)
def nutrition_analysis(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.get_nutrition_analysis(child_id, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc


@app.post(
    "/children/{child_id}/nutrition/recommendations/regenerate",
    response_model=List[NutritionRecommendation],
)
def regenerate_nutrition_recommendations(child_id: str, parent_id: Optional[str] = None):
    try:
        return services.regenerate_recommendations(child_id, parent_id=parent_id)
    except EngineError as exc:
        raise _http_error(exc) from exc
