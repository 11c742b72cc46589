"""Assemble questionnaire scores into an immutable assessment result."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Sequence
from uuid import uuid4

from engines.scoring import IssueScore, ScoreAggregator, ScoringMethod, round_half_up
from engines.severity import BORDERLINE, CLINICAL, NORMAL, SeverityClassifier
from engines.validation import InvalidInputError
from schemas import (
    AssessmentMetadata,
    AssessmentResponse,
    AssessmentResult,
    IssueResult,
    ProfessionalReferral,
    Question,
    Recommendation,
)
from scoring_config import DEFAULT_SCORING_CONFIG, IssueDefinition, ScoringConfig

_CONFIDENCE_STEPS = ((50, 95), (30, 85), (20, 75), (10, 65))


def calculate_confidence(total_questions: int) -> int:
    """Heuristic reliability estimate from the number of questions answered."""

    for minimum, confidence in _CONFIDENCE_STEPS:
        if total_questions >= minimum:
            return confidence
    return 50


def generate_overall_summary(issues: Sequence[IssueResult]) -> str:
    clinical_count = sum(1 for issue in issues if issue.severity == CLINICAL)
    borderline_count = sum(1 for issue in issues if issue.severity == BORDERLINE)

    if clinical_count > 0:
        return (
            f"Assessment indicates {clinical_count} clinical concern(s) requiring immediate attention. "
            "Professional consultation is strongly recommended."
        )
    if borderline_count > 0:
        return (
            f"Assessment shows {borderline_count} borderline concern(s). "
            "Professional evaluation is recommended for comprehensive support."
        )
    return (
        "Assessment results are within normal ranges. Recommended courses have been assigned "
        "to support continued healthy development."
    )


def _referral(definition: IssueDefinition) -> ProfessionalReferral:
    details = asdict(definition.professional) if definition.professional else {}
    return ProfessionalReferral(required=True, contact_details=details)


class AssessmentResultBuilder:
    """Turn aggregated issue scores into an :class:`AssessmentResult`."""

    def __init__(self, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> None:
        self.config = config
        self.classifier = SeverityClassifier(config)

    def build_issue(self, entry: IssueScore, method: ScoringMethod) -> IssueResult:
        severity = self.classifier.classify(entry.issue_id, entry.score, method)
        definition = self.config.issue(entry.issue_id)

        course_id = None
        referral = None
        if definition is not None and severity == NORMAL:
            course_id = definition.recommended_course_id
        if definition is not None and severity == BORDERLINE:
            referral = _referral(definition)

        return IssueResult(
            issue_id=entry.issue_id,
            issue_name=entry.issue_name,
            score=round_half_up(entry.score),
            normalized_score=round_half_up(entry.normalized_score),
            severity=severity,
            t_score=round_half_up(entry.t_score) if entry.t_score is not None else None,
            recommended_course_id=course_id,
            professional_referral=referral,
        )

    def build(
        self,
        issue_scores: Mapping[str, IssueScore],
        method: ScoringMethod | str,
        *,
        total_questions: int,
        conducted_by: Optional[str] = None,
        assessment_id: Optional[str] = None,
        assessment_date: Optional[datetime] = None,
    ) -> AssessmentResult:
        resolved = ScoringMethod.parse(method)
        issues: List[IssueResult] = []
        primary_concerns: List[str] = []
        recommendations: List[Recommendation] = []

        for entry in issue_scores.values():
            issue = self.build_issue(entry, resolved)
            if issue.severity == BORDERLINE:
                primary_concerns.append(issue.issue_name)
                recommendations.append(
                    Recommendation(
                        category=issue.issue_name,
                        text=f"Professional consultation recommended for {issue.issue_name}",
                        priority="high",
                    )
                )
            elif issue.severity == CLINICAL:
                primary_concerns.append(issue.issue_name)
                recommendations.append(
                    Recommendation(
                        category=issue.issue_name,
                        text=f"Immediate professional intervention recommended for {issue.issue_name}",
                        priority="critical",
                    )
                )
            issues.append(issue)

        # list.sort is stable, so equal scores keep their insertion order.
        issues.sort(key=lambda issue: issue.score, reverse=True)

        return AssessmentResult(
            assessment_id=assessment_id or str(uuid4()),
            method=resolved.value,
            assessment_date=assessment_date or datetime.now(timezone.utc),
            conducted_by=conducted_by,
            issues=issues,
            primary_concerns=primary_concerns,
            overall_summary=generate_overall_summary(issues),
            recommendations=recommendations,
            metadata=AssessmentMetadata(
                total_questions=total_questions,
                confidence=calculate_confidence(total_questions),
                risk_indicators=list(primary_concerns),
            ),
        )


def score_assessment(
    responses: Iterable[AssessmentResponse],
    questions_by_id: Mapping[str, Question],
    method: ScoringMethod | str = ScoringMethod.WEIGHTED_AVERAGE,
    *,
    config: Optional[ScoringConfig] = None,
    conducted_by: Optional[str] = None,
) -> AssessmentResult:
    """Score questionnaire ``responses`` against the active ``questions_by_id``.

    Raises :class:`InvalidMethodError` for an unknown ``method`` and
    :class:`InvalidInputError` when no response refers to a known question.
    """

    config = config or DEFAULT_SCORING_CONFIG
    resolved = ScoringMethod.parse(method)
    responses = list(responses)

    answered = {response.question_id for response in responses if response.question_id in questions_by_id}
    if not answered:
        raise InvalidInputError("No valid questions found", code="INVALID_QUESTIONS")

    issue_scores = ScoreAggregator(config).aggregate(responses, questions_by_id, resolved)
    return AssessmentResultBuilder(config).build(
        issue_scores,
        resolved,
        total_questions=len(answered),
        conducted_by=conducted_by,
    )


def recommended_course_ids(result: AssessmentResult) -> List[str]:
    """Course ids attached to ``normal`` issues, without duplicates."""

    course_ids: List[str] = []
    for issue in result.issues:
        if issue.severity == NORMAL and issue.recommended_course_id and issue.recommended_course_id not in course_ids:
            course_ids.append(issue.recommended_course_id)
    return course_ids


def referrals_needed(result: AssessmentResult) -> int:
    return sum(
        1 for issue in result.issues
        if issue.professional_referral is not None and issue.professional_referral.required
    )
