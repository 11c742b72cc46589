"""Pydantic schemas for assessment, education and nutrition data."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "Severity",
    "IssueWeightage",
    "Question",
    "AssessmentResponse",
    "ProfessionalReferral",
    "IssueResult",
    "Recommendation",
    "AssessmentMetadata",
    "AssessmentResult",
    "SubjectGrade",
    "EducationRecord",
    "Suggestion",
    "EducationAnalysis",
    "PhysicalMeasurement",
    "EatingHabits",
    "NutritionRecord",
    "NutritionRecommendation",
    "NutritionAnalysis",
    "ChildBody",
    "AssessmentRequest",
    "SeverityRequest",
    "SeverityResponse",
    "EducationOverview",
    "PerformanceAnalysisResponse",
    "NutritionOverview",
    "NutritionAnalysisResponse",
]

Severity = Literal["normal", "borderline", "clinical"]
Trend = Literal["improving", "declining", "stable"]
BmiCategory = Literal["underweight", "normal_weight", "overweight", "obese"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Questionnaire assessment
# ---------------------------------------------------------------------------

class IssueWeightage(BaseModel):
    issue_id: str = Field(min_length=1)
    issue_name: str = Field(min_length=1)
    weightage: float = Field(ge=0.0, le=100.0)


class Question(BaseModel):
    id: str = Field(min_length=1)
    question_text: str | None = None
    question_type: Literal["mcq", "rating", "boolean", "text", "multiselect"] = Field(
        default="rating",
        description="Only numeric answers contribute to scoring; text answers are normally dropped.",
    )
    category: str | None = None
    issue_weightages: list[IssueWeightage] = Field(min_length=1)
    is_active: bool = True

    @field_validator("issue_weightages")
    @classmethod
    def _unique_issue_ids(cls, value: list[IssueWeightage]) -> list[IssueWeightage]:
        seen: set[str] = set()
        for weightage in value:
            if weightage.issue_id in seen:
                raise ValueError(f"Duplicate issue id in weightages: {weightage.issue_id}")
            seen.add(weightage.issue_id)
        return value


class AssessmentResponse(BaseModel):
    question_id: str
    answer: Any = Field(
        default=None,
        description="Numeric answer; values that do not parse to a finite number are ignored.",
    )


class ProfessionalReferral(BaseModel):
    required: bool = True
    contact_details: Dict[str, str] = Field(default_factory=dict)


class IssueResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue_id: str
    issue_name: str
    score: float
    normalized_score: float = Field(ge=0.0, le=100.0)
    severity: Severity
    t_score: float | None = None
    recommended_course_id: str | None = None
    professional_referral: ProfessionalReferral | None = None


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    text: str
    priority: Literal["low", "medium", "high", "critical"]


class AssessmentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_questions: int
    confidence: int
    risk_indicators: list[str] = Field(default_factory=list)


class AssessmentResult(BaseModel):
    """Immutable outcome of one questionnaire assessment."""

    model_config = ConfigDict(frozen=True)

    assessment_id: str
    method: str
    assessment_date: datetime = Field(default_factory=_utcnow)
    conducted_by: str | None = None
    issues: list[IssueResult] = Field(default_factory=list)
    primary_concerns: list[str] = Field(default_factory=list)
    overall_summary: str
    recommendations: list[Recommendation] = Field(default_factory=list)
    metadata: AssessmentMetadata


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------

class SubjectGrade(BaseModel):
    subject: str = Field(min_length=1)
    marks: float = Field(ge=0.0, le=100.0)

    @field_validator("subject")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("subject must not be blank")
        return stripped


class EducationRecord(BaseModel):
    grade_year: str = Field(
        min_length=1,
        description="Caller supplied chronological label; ordering is by list position.",
    )
    subjects: list[SubjectGrade] = Field(min_length=1)
    recorded_at: datetime = Field(default_factory=_utcnow)


class Suggestion(BaseModel):
    subject: str
    suggestion: str
    priority: Literal["low", "medium", "high"]
    type: Literal["performance", "trend", "consistency", "strategic"]
    created_at: datetime = Field(default_factory=_utcnow)


class EducationAnalysis(BaseModel):
    current_average: float = 0.0
    trend: Trend = "stable"
    trend_strength: float = 0.0
    subjects_needing_attention: list[str] = Field(default_factory=list)
    top_performing_subjects: list[str] = Field(default_factory=list)
    overall_gpa: float = Field(default=0.0, ge=0.0, le=4.0)
    consistency_score: float = Field(default=0.0, ge=0.0, le=100.0)


# ---------------------------------------------------------------------------
# Nutrition
# ---------------------------------------------------------------------------

class PhysicalMeasurement(BaseModel):
    height_cm: float = Field(gt=0.0, le=250.0)
    weight_kg: float = Field(gt=0.0, le=200.0)
    measurement_date: datetime | None = None


class EatingHabits(BaseModel):
    eats_breakfast_regularly: bool
    drinks_enough_water: bool
    eats_fruits_daily: bool
    eats_vegetables_daily: bool
    limits_junk_food: bool
    has_regular_meal_times: bool
    enjoys_variety_of_foods: bool
    eats_appropriate_portions: bool


class NutritionRecord(BaseModel):
    physical_measurement: PhysicalMeasurement
    eating_habits: EatingHabits
    notes: str | None = Field(default=None, max_length=500)
    recorded_at: datetime = Field(default_factory=_utcnow)


class NutritionRecommendation(BaseModel):
    category: Literal["diet", "exercise", "habits", "medical"]
    recommendation: str
    priority: Literal["low", "medium", "high", "critical"]
    target_area: str
    created_at: datetime = Field(default_factory=_utcnow)


class NutritionAnalysis(BaseModel):
    bmi: float
    bmi_category: BmiCategory
    health_score: float
    healthy_habits_score: float
    is_healthy_weight: bool


# ---------------------------------------------------------------------------
# Request / response bodies
# ---------------------------------------------------------------------------

class ChildBody(BaseModel):
    child_id: str = Field(min_length=1)
    parent_id: str = Field(min_length=1)
    name: str | None = None


class AssessmentRequest(BaseModel):
    child_id: str
    parent_id: str
    responses: list[AssessmentResponse] = Field(min_length=1)
    method: str = "weighted_average"


class SeverityRequest(BaseModel):
    issue_id: str
    score: float
    method: str = "weighted_average"


class SeverityResponse(BaseModel):
    issue_id: str
    method: str
    severity: Severity


class EducationOverview(BaseModel):
    child_id: str
    records: list[EducationRecord] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)


class PerformanceAnalysisResponse(BaseModel):
    child_id: str
    has_data: bool
    message: str | None = None
    analysis: EducationAnalysis | None = None
    record_count: int = 0
    latest_grade: str | None = None
    suggestions: list[Suggestion] = Field(default_factory=list)


class NutritionOverview(BaseModel):
    child_id: str
    records: list[NutritionRecord] = Field(default_factory=list)
    recommendations: list[NutritionRecommendation] = Field(default_factory=list)


class NutritionAnalysisResponse(BaseModel):
    child_id: str
    has_data: bool
    message: str | None = None
    analysis: NutritionAnalysis | None = None
    record_count: int = 0
    latest_measurement: PhysicalMeasurement | None = None
    recommendations: list[NutritionRecommendation] = Field(default_factory=list)
