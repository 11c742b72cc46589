import logging
import sqlite3
from datetime import datetime, timezone

import pytest

import db
import services
from engines.nutrition import HABIT_FIELDS
from engines.validation import InvalidInputError, InvalidMethodError, NotFoundError, UnauthorizedError
from schemas import (
    AssessmentResponse,
    EatingHabits,
    EducationRecord,
    NutritionRecord,
    PhysicalMeasurement,
    SubjectGrade,
)

NOW = datetime(2024, 9, 1, tzinfo=timezone.utc)


@pytest.fixture
def seeded(temp_db, make_question):
    db.upsert_child("child-1", "parent-1", "Mia")
    db.upsert_question(make_question("q_worry", ("anxiety", "Anxiety", 80)))
    db.upsert_question(make_question("q_mood", ("depression", "Depression", 90)))
    db.upsert_question(make_question("q_focus", ("adhd", "ADHD", 85)))
    db.upsert_question(make_question("q_retired", ("ocd", "OCD", 50), active=False))
    return "child-1"


def _responses(**answers):
    return [AssessmentResponse(question_id=qid, answer=value) for qid, value in answers.items()]


def _grades(label, **marks):
    return EducationRecord(
        grade_year=label,
        subjects=[SubjectGrade(subject=name, marks=value) for name, value in marks.items()],
    )


def _nutrition(height_cm, weight_kg, *missing):
    return NutritionRecord(
        physical_measurement=PhysicalMeasurement(height_cm=height_cm, weight_kg=weight_kg),
        eating_habits=EatingHabits(**{name: name not in missing for name in HABIT_FIELDS}),
    )


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


def test_process_assessment_stores_result_and_assigns_courses(seeded, caplog):
    with caplog.at_level(logging.INFO, logger="services"):
        result = services.process_assessment(
            _responses(q_worry=10, q_mood=50, q_focus=20), seeded, "parent-1", "weighted_average"
        )

    assert result.conducted_by == "parent-1"
    assert [issue.severity for issue in result.issues] == ["borderline", "normal", "normal"]
    assert services.get_latest_assessment(seeded) == result
    assert services.get_assessment(seeded, result.assessment_id) == result
    assert set(db.list_child_courses(seeded)) == {"507f1f77bcf86cd799439021", "507f1f77bcf86cd799439023"}
    assert "referrals=1" in caplog.text


def test_courses_are_unioned_across_assessments(seeded):
    services.process_assessment(_responses(q_worry=10), seeded, "parent-1")
    services.process_assessment(_responses(q_worry=5, q_focus=5), seeded, "parent-1")

    assert db.list_child_courses(seeded) == ["507f1f77bcf86cd799439021", "507f1f77bcf86cd799439023"]
    assert len(services.list_assessments(seeded)) == 2


def test_course_assignment_failure_keeps_result(seeded, monkeypatch, caplog):
    def _fail(child_id, course_ids):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(db, "add_child_courses", _fail)

    with caplog.at_level(logging.ERROR, logger="services"):
        result = services.process_assessment(_responses(q_worry=10), seeded, "parent-1")

    assert result.issues[0].recommended_course_id == "507f1f77bcf86cd799439021"
    assert services.get_latest_assessment(seeded).assessment_id == result.assessment_id
    assert "Failed to assign courses" in caplog.text


def test_unknown_child(seeded):
    with pytest.raises(NotFoundError) as excinfo:
        services.process_assessment(_responses(q_worry=10), "ghost", "parent-1")
    assert excinfo.value.code == "CHILD_NOT_FOUND"


def test_wrong_parent(seeded):
    with pytest.raises(UnauthorizedError) as excinfo:
        services.process_assessment(_responses(q_worry=10), seeded, "parent-2")
    assert excinfo.value.status_code == 403


def test_only_inactive_or_unknown_questions(seeded):
    with pytest.raises(InvalidInputError) as excinfo:
        services.process_assessment(_responses(q_retired=10, q_ghost=5), seeded, "parent-1")
    assert excinfo.value.code == "INVALID_QUESTIONS"
    assert services.list_assessments(seeded) == []


def test_invalid_method_is_reported_first(temp_db):
    with pytest.raises(InvalidMethodError):
        services.process_assessment(_responses(q_worry=10), "ghost", "parent-1", "mean")


def test_missing_assessment(seeded):
    with pytest.raises(NotFoundError) as excinfo:
        services.get_latest_assessment(seeded)
    assert excinfo.value.code == "ASSESSMENT_NOT_FOUND"

    with pytest.raises(NotFoundError):
        services.get_assessment(seeded, "nope")


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------


def test_grade_records_regenerate_suggestions(seeded):
    services.add_grade_record(seeded, _grades("Grade 5", Math=70, Science=68, English=75), now=NOW)
    overview = services.add_grade_record(seeded, _grades("Grade 6", Math=85, Science=82, English=90), now=NOW)

    assert [record.grade_year for record in overview.records] == ["Grade 5", "Grade 6"]
    assert [item.subject for item in overview.suggestions] == ["Overall Performance"]

    report = services.get_performance_analysis(seeded)
    assert report.has_data is True
    assert report.record_count == 2
    assert report.latest_grade == "Grade 6"
    assert report.analysis.trend == "improving"
    assert report.suggestions == overview.suggestions


def test_performance_analysis_without_records(seeded):
    report = services.get_performance_analysis(seeded)

    assert report.has_data is False
    assert report.analysis is None
    assert report.message


def test_regenerate_suggestions(seeded):
    with pytest.raises(NotFoundError) as excinfo:
        services.regenerate_suggestions(seeded)
    assert excinfo.value.code == "NO_RECORDS"

    services.add_grade_record(seeded, _grades("T1", Math=40, Art=95), now=NOW)
    suggestions = services.regenerate_suggestions(seeded, now=NOW)

    assert [item.subject for item in suggestions] == ["Math", "Strategic Planning"]
    assert db.list_education_suggestions(seeded) == suggestions


def test_education_checks_parent(seeded):
    with pytest.raises(UnauthorizedError):
        services.add_grade_record(seeded, _grades("T1", Math=40), parent_id="parent-2")


# ---------------------------------------------------------------------------
# Nutrition
# ---------------------------------------------------------------------------


def test_nutrition_entry_and_analysis(seeded):
    services.add_nutrition_entry(seeded, _nutrition(140, 35), now=NOW)
    overview = services.add_nutrition_entry(seeded, _nutrition(140, 42, "drinks_enough_water"), now=NOW)

    assert len(overview.records) == 2
    assert [item.target_area for item in overview.recommendations] == [
        "BMI Monitoring",
        "Hydration",
        "Positive Reinforcement",
    ]

    report = services.get_nutrition_analysis(seeded)
    assert report.has_data is True
    assert report.record_count == 2
    assert report.analysis.bmi == 21.4
    assert report.analysis.bmi_category == "normal_weight"
    assert report.latest_measurement.weight_kg == 42
    assert report.recommendations == overview.recommendations


def test_nutrition_without_records(seeded):
    assert services.get_nutrition_analysis(seeded).has_data is False
    with pytest.raises(NotFoundError) as excinfo:
        services.regenerate_recommendations(seeded)
    assert excinfo.value.code == "NO_RECORDS"


def test_regenerate_recommendations(seeded):
    services.add_nutrition_entry(seeded, _nutrition(140, 60), now=NOW)
    recommendations = services.regenerate_recommendations(seeded, now=NOW)

    assert [item.priority for item in recommendations[:2]] == ["critical", "critical"]
    assert db.list_nutrition_recommendations(seeded) == recommendations
