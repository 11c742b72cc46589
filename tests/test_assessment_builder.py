import math
from datetime import datetime, timezone

import pytest

from engines.assessment import (
    AssessmentResultBuilder,
    calculate_confidence,
    generate_overall_summary,
    recommended_course_ids,
    referrals_needed,
    score_assessment,
)
from engines.scoring import IssueScore, ScoringMethod
from engines.validation import InvalidInputError, InvalidMethodError
from schemas import AssessmentResponse, AssessmentResult, IssueResult


@pytest.fixture
def questions(make_question):
    return {
        "q_worry": make_question("q_worry", ("anxiety", "Anxiety", 80)),
        "q_mood": make_question("q_mood", ("depression", "Depression", 90)),
        "q_focus": make_question("q_focus", ("adhd", "ADHD", 85)),
    }


def _responses(**answers):
    return [AssessmentResponse(question_id=qid, answer=value) for qid, value in answers.items()]


@pytest.mark.parametrize(
    "total, expected",
    [(0, 50), (9, 50), (10, 65), (19, 65), (20, 75), (30, 85), (49, 85), (50, 95), (120, 95)],
)
def test_calculate_confidence(total, expected):
    assert calculate_confidence(total) == expected


def _issue(issue_id, severity, score=10.0):
    return IssueResult(issue_id=issue_id, issue_name=issue_id, score=score, normalized_score=score, severity=severity)


def test_summary_prefers_clinical_over_everything_else():
    summary = generate_overall_summary(
        [_issue("a", "normal"), _issue("b", "borderline"), _issue("c", "clinical"), _issue("d", "borderline")]
    )
    assert summary.startswith("Assessment indicates 1 clinical concern(s)")


def test_summary_borderline_and_normal():
    borderline = generate_overall_summary([_issue("a", "borderline"), _issue("b", "borderline"), _issue("c", "normal")])
    assert borderline.startswith("Assessment shows 2 borderline concern(s).")
    assert generate_overall_summary([_issue("a", "normal")]).startswith("Assessment results are within normal ranges.")
    assert generate_overall_summary([]).startswith("Assessment results are within normal ranges.")


def test_anxiety_example(make_question):
    questions = {"q1": make_question("q1", ("anxiety", 80))}
    result = score_assessment([AssessmentResponse(question_id="q1", answer=4)], questions, "weighted_average")

    [issue] = result.issues
    assert issue.issue_id == "anxiety"
    assert issue.score == 4
    assert issue.normalized_score == 4
    assert issue.severity == "normal"
    assert issue.recommended_course_id == "507f1f77bcf86cd799439021"


def test_mixed_severities_build_concerns_recommendations_and_referrals(questions):
    result = score_assessment(
        _responses(q_worry=80, q_mood=50, q_focus=10),
        questions,
        ScoringMethod.WEIGHTED_AVERAGE,
        conducted_by="parent-1",
    )

    assert [issue.issue_id for issue in result.issues] == ["anxiety", "depression", "adhd"]
    assert [issue.severity for issue in result.issues] == ["clinical", "borderline", "normal"]
    assert result.primary_concerns == ["Anxiety", "Depression"]
    assert result.metadata.risk_indicators == ["Anxiety", "Depression"]
    assert result.metadata.total_questions == 3
    assert result.metadata.confidence == 50
    assert result.conducted_by == "parent-1"
    assert result.method == "weighted_average"

    assert [(rec.priority, rec.text) for rec in result.recommendations] == [
        ("critical", "Immediate professional intervention recommended for Anxiety"),
        ("high", "Professional consultation recommended for Depression"),
    ]
    assert result.overall_summary.startswith("Assessment indicates 1 clinical concern(s)")

    anxiety, depression, adhd = result.issues
    assert anxiety.professional_referral is None
    assert anxiety.recommended_course_id is None
    assert depression.professional_referral.required is True
    assert depression.professional_referral.contact_details["name"] == "Dr. Michael Chen"
    assert depression.recommended_course_id is None
    assert adhd.recommended_course_id == "507f1f77bcf86cd799439023"
    assert adhd.professional_referral is None

    assert recommended_course_ids(result) == ["507f1f77bcf86cd799439023"]
    assert referrals_needed(result) == 1


def test_issues_sorted_by_score_with_stable_ties():
    builder = AssessmentResultBuilder()
    scores = {
        "ocd": IssueScore("ocd", "OCD", score=20.0, normalized_score=20.0),
        "adhd": IssueScore("adhd", "ADHD", score=30.0, normalized_score=30.0),
        "anxiety": IssueScore("anxiety", "Anxiety", score=20.0, normalized_score=20.0),
    }
    result = builder.build(scores, "weighted_average", total_questions=12)

    assert [issue.issue_id for issue in result.issues] == ["adhd", "ocd", "anxiety"]
    assert result.metadata.confidence == 65


def test_builder_uses_supplied_id_and_date():
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)
    result = AssessmentResultBuilder().build(
        {}, "t_score_weighted", total_questions=1, assessment_id="fixed-id", assessment_date=when
    )

    assert result.assessment_id == "fixed-id"
    assert result.assessment_date == when
    assert result.issues == []
    assert result.overall_summary.startswith("Assessment results are within normal ranges.")


def test_unconfigured_issue_is_normal_without_course_or_referral(make_question):
    questions = {"q1": make_question("q1", ("sleep", "Sleep", 50))}
    result = score_assessment([AssessmentResponse(question_id="q1", answer=99)], questions)

    [issue] = result.issues
    assert issue.severity == "normal"
    assert issue.recommended_course_id is None
    assert issue.professional_referral is None
    assert recommended_course_ids(result) == []


def test_t_score_result_reports_t_score(questions):
    result = score_assessment(_responses(q_worry=72), questions, "t_score_non_weighted")

    [issue] = result.issues
    assert issue.t_score == pytest.approx(72.0)
    assert issue.severity == "clinical"


def test_duplicate_responses_count_once_toward_total(questions):
    result = score_assessment(_responses(q_worry=10) + _responses(q_worry=20), questions)
    assert result.metadata.total_questions == 1


def test_no_known_questions_is_invalid_input(questions):
    with pytest.raises(InvalidInputError) as excinfo:
        score_assessment(_responses(ghost=10), questions)
    assert excinfo.value.code == "INVALID_QUESTIONS"


def test_method_checked_before_questions():
    with pytest.raises(InvalidMethodError):
        score_assessment([], {}, "average")


@pytest.mark.parametrize("method", list(ScoringMethod))
def test_very_large_answer_scores_end_to_end(make_question, method):
    result = score_assessment(
        [AssessmentResponse(question_id="q1", answer=1e30)],
        {"q1": make_question("q1", ("anxiety", 80))},
        method,
    )

    [issue] = result.issues
    assert math.isfinite(issue.score)
    assert issue.normalized_score == 100.0
    assert issue.severity == "clinical"


@pytest.mark.parametrize("method", list(ScoringMethod))
def test_overflowing_issue_is_dropped_and_result_round_trips(make_question, method):
    questions = {
        "q1": make_question("q1", ("anxiety", 100)),
        "q2": make_question("q2", ("anxiety", 100)),
        "q3": make_question("q3", ("adhd", 50)),
    }
    responses = [
        AssessmentResponse(question_id="q1", answer=1e308),
        AssessmentResponse(question_id="q2", answer=1e308),
        AssessmentResponse(question_id="q3", answer=5),
    ]

    result = score_assessment(responses, questions, method)
    restored = AssessmentResult.model_validate_json(result.model_dump_json())

    assert [issue.issue_id for issue in result.issues] == ["adhd"]
    assert restored.issues == result.issues
    assert result.metadata.total_questions == 3
