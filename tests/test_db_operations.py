"""Test cases for db operations."""

import sqlite3
from datetime import datetime, timezone

import pytest

import db
from engines.assessment import score_assessment
from schemas import (
    AssessmentResponse,
    EatingHabits,
    EducationRecord,
    NutritionRecommendation,
    NutritionRecord,
    PhysicalMeasurement,
    SubjectGrade,
    Suggestion,
)


def _result(questions, answer=10):
    return score_assessment([AssessmentResponse(question_id="q1", answer=answer)], questions)


@pytest.fixture
def child(temp_db):
    db.upsert_child("child-1", "parent-1", "Mia")
    return "child-1"


def test_child_upsert_and_lookup(temp_db):
    assert db.get_child("nobody") is None

    db.upsert_child("child-1", "parent-1", "Mia")
    db.upsert_child("child-1", "parent-1")

    assert db.get_child("child-1") == {"child_id": "child-1", "parent_id": "parent-1", "name": "Mia"}


def test_active_questions_only(temp_db, make_question):
    db.upsert_question(make_question("q1", ("anxiety", 80)))
    db.upsert_question(make_question("q2", ("ocd", 50), active=False))

    found = db.get_active_questions(["q1", "q2", "q3"])

    assert list(found) == ["q1"]
    assert found["q1"].issue_weightages[0].weightage == 80
    assert db.get_active_questions([]) == {}


def test_question_upsert_can_deactivate(temp_db, make_question):
    db.upsert_question(make_question("q1", ("anxiety", 80)))
    db.upsert_question(make_question("q1", ("anxiety", 80), active=False))

    assert db.get_active_questions(["q1"]) == {}


def test_assessment_results_are_appended_in_order(child, make_question):
    questions = {"q1": make_question("q1", ("anxiety", 80))}
    first = _result(questions, 10)
    second = _result(questions, 90)

    db.append_assessment_result(child, first)
    db.append_assessment_result(child, second)

    history = db.list_assessment_results(child)
    assert [item.assessment_id for item in history] == [first.assessment_id, second.assessment_id]
    assert history[1].issues[0].severity == "clinical"
    assert db.get_assessment_result(child, first.assessment_id) == first
    assert db.get_assessment_result("other-child", first.assessment_id) is None


def test_assessment_ids_cannot_be_rewritten(child, make_question):
    result = _result({"q1": make_question("q1", ("anxiety", 80))})
    db.append_assessment_result(child, result)

    with pytest.raises(sqlite3.IntegrityError):
        db.append_assessment_result(child, result)


def test_results_require_known_child(temp_db, make_question):
    result = _result({"q1": make_question("q1", ("anxiety", 80))})

    with pytest.raises(sqlite3.IntegrityError):
        db.append_assessment_result("ghost", result)


def test_child_courses_union(child):
    assert db.add_child_courses(child, ["c1", "c2"]) == 2
    assert db.add_child_courses(child, ["c2", "c3"]) == 1
    assert db.add_child_courses(child, []) == 0

    assert db.list_child_courses(child) == ["c1", "c2", "c3"]


def test_education_records_and_suggestions(child):
    db.append_education_record(child, EducationRecord(grade_year="T1", subjects=[SubjectGrade(subject="Math", marks=70)]))
    db.append_education_record(child, EducationRecord(grade_year="T2", subjects=[SubjectGrade(subject="Math", marks=80)]))

    assert [record.grade_year for record in db.list_education_records(child)] == ["T1", "T2"]

    first = [Suggestion(subject="Math", suggestion="a", priority="high", type="performance")]
    second = [
        Suggestion(subject="Overall Performance", suggestion="b", priority="low", type="trend"),
        Suggestion(subject="Advanced Learning", suggestion="c", priority="low", type="strategic"),
    ]
    db.replace_education_suggestions(child, first)
    db.replace_education_suggestions(child, second)

    assert [item.suggestion for item in db.list_education_suggestions(child)] == ["b", "c"]


def test_nutrition_records_and_recommendations(child):
    habits = EatingHabits(
        eats_breakfast_regularly=True,
        drinks_enough_water=True,
        eats_fruits_daily=False,
        eats_vegetables_daily=True,
        limits_junk_food=True,
        has_regular_meal_times=True,
        enjoys_variety_of_foods=True,
        eats_appropriate_portions=True,
    )
    record = NutritionRecord(
        physical_measurement=PhysicalMeasurement(
            height_cm=140, weight_kg=35, measurement_date=datetime(2024, 3, 1, tzinfo=timezone.utc)
        ),
        eating_habits=habits,
        notes="after holidays",
    )
    db.append_nutrition_record(child, record)

    [stored] = db.list_nutrition_records(child)
    assert stored == record

    db.replace_nutrition_recommendations(
        child,
        [NutritionRecommendation(category="diet", recommendation="eat fruit", priority="high", target_area="Fruits & Vegetables")],
    )
    db.replace_nutrition_recommendations(child, [])
    assert db.list_nutrition_recommendations(child) == []


def test_transaction_rolls_back_on_error(temp_db):
    with pytest.raises(RuntimeError):
        with db._pool.transaction() as con:
            con.execute("INSERT INTO children (child_id, parent_id) VALUES (?, ?)", ("child-x", "parent-x"))
            raise RuntimeError("boom")

    assert db.get_child("child-x") is None
