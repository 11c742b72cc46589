import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from db_pool import SQLiteConnectionPool
from schemas import (
    AssessmentResult,
    EducationRecord,
    NutritionRecommendation,
    NutritionRecord,
    Question,
    Suggestion,
)

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "data.db")

# Initialize connection pool
_pool = SQLiteConnectionPool(DB_PATH, max_connections=10)


def _conn():
    """Return a context manager for acquiring a pooled SQLite connection."""
    return _pool.get_connection()


def _exec(sql: str, params: Iterable = ()):
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        con.commit()
        return cur


def _query(sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        return cur.fetchall()


def _dump(model) -> str:
    return json.dumps(model.model_dump(mode="json"))


def init():
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    with _conn() as con:
        con.executescript(
            """
            PRAGMA foreign_keys = ON;

            CREATE TABLE IF NOT EXISTS questions (
              id           TEXT PRIMARY KEY,
              payload      TEXT NOT NULL,
              is_active    INTEGER NOT NULL DEFAULT 1,
              updated_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS children (
              child_id     TEXT PRIMARY KEY,
              parent_id    TEXT NOT NULL,
              name         TEXT,
              created_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_children_parent ON children(parent_id);

            CREATE TABLE IF NOT EXISTS assessment_results (
              id             INTEGER PRIMARY KEY AUTOINCREMENT,
              assessment_id  TEXT NOT NULL UNIQUE,
              child_id       TEXT NOT NULL REFERENCES children(child_id),
              method         TEXT NOT NULL,
              payload        TEXT NOT NULL,
              created_at     TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_assessment_child ON assessment_results(child_id);

            CREATE TABLE IF NOT EXISTS child_courses (
              child_id     TEXT NOT NULL REFERENCES children(child_id),
              course_id    TEXT NOT NULL,
              assigned_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
              PRIMARY KEY (child_id, course_id)
            );

            CREATE TABLE IF NOT EXISTS education_records (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              child_id     TEXT NOT NULL REFERENCES children(child_id),
              grade_year   TEXT NOT NULL,
              payload      TEXT NOT NULL,
              recorded_at  TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_education_child ON education_records(child_id);

            CREATE TABLE IF NOT EXISTS education_suggestions (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              child_id     TEXT NOT NULL REFERENCES children(child_id),
              payload      TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_suggestions_child ON education_suggestions(child_id);

            CREATE TABLE IF NOT EXISTS nutrition_records (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              child_id     TEXT NOT NULL REFERENCES children(child_id),
              payload      TEXT NOT NULL,
              recorded_at  TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nutrition_child ON nutrition_records(child_id);

            CREATE TABLE IF NOT EXISTS nutrition_recommendations (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              child_id     TEXT NOT NULL REFERENCES children(child_id),
              payload      TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nutrition_recs_child ON nutrition_recommendations(child_id);
            """
        )
        con.commit()
    logger.info("Database initialised at %s", DB_PATH)


# -------------- questions --------------
def upsert_question(question: Question) -> None:
    _exec(
        """
        INSERT INTO questions (id, payload, is_active, updated_at)
        VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(id) DO UPDATE SET
            payload = excluded.payload,
            is_active = excluded.is_active,
            updated_at = CURRENT_TIMESTAMP
        """,
        (question.id, _dump(question), 1 if question.is_active else 0),
    )


def get_active_questions(question_ids: Iterable[str]) -> Dict[str, Question]:
    """Return active questions among ``question_ids`` keyed by id."""
    ids = sorted({qid for qid in question_ids if qid})
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = _query(
        f"SELECT id, payload FROM questions WHERE is_active = 1 AND id IN ({placeholders})",
        ids,
    )
    return {row["id"]: Question.model_validate_json(row["payload"]) for row in rows}


# -------------- children --------------
def upsert_child(child_id: str, parent_id: str, name: Optional[str] = None) -> None:
    _exec(
        """
        INSERT INTO children (child_id, parent_id, name)
        VALUES (?, ?, ?)
        ON CONFLICT(child_id) DO UPDATE SET
            parent_id = excluded.parent_id,
            name = COALESCE(excluded.name, children.name)
        """,
        (child_id, parent_id, name),
    )


def get_child(child_id: str) -> Optional[Dict[str, Any]]:
    rows = _query("SELECT child_id, parent_id, name FROM children WHERE child_id = ?", (child_id,))
    if not rows:
        return None
    return dict(rows[0])


# -------------- assessments --------------
def append_assessment_result(child_id: str, result: AssessmentResult) -> None:
    """Append ``result`` to the child's history; stored results are never updated."""
    _exec(
        """
        INSERT INTO assessment_results (assessment_id, child_id, method, payload)
        VALUES (?, ?, ?, ?)
        """,
        (result.assessment_id, child_id, result.method, _dump(result)),
    )


def list_assessment_results(child_id: str) -> List[AssessmentResult]:
    rows = _query(
        "SELECT payload FROM assessment_results WHERE child_id = ? ORDER BY id",
        (child_id,),
    )
    return [AssessmentResult.model_validate_json(row["payload"]) for row in rows]


def get_assessment_result(child_id: str, assessment_id: str) -> Optional[AssessmentResult]:
    rows = _query(
        "SELECT payload FROM assessment_results WHERE child_id = ? AND assessment_id = ?",
        (child_id, assessment_id),
    )
    if not rows:
        return None
    return AssessmentResult.model_validate_json(rows[0]["payload"])


def add_child_courses(child_id: str, course_ids: Sequence[str]) -> int:
    """Union ``course_ids`` into the child's course set; return how many were new.

    Each row is an ``INSERT OR IGNORE`` against the ``(child_id, course_id)``
    key, so concurrent assessments for one child cannot lose each other's
    courses.
    """
    added = 0
    with _pool.transaction() as con:
        for course_id in course_ids:
            cur = con.execute(
                "INSERT OR IGNORE INTO child_courses (child_id, course_id) VALUES (?, ?)",
                (child_id, course_id),
            )
            added += cur.rowcount
    return added


def list_child_courses(child_id: str) -> List[str]:
    rows = _query(
        "SELECT course_id FROM child_courses WHERE child_id = ? ORDER BY assigned_at, rowid",
        (child_id,),
    )
    return [row["course_id"] for row in rows]


# -------------- education --------------
def append_education_record(child_id: str, record: EducationRecord) -> None:
    _exec(
        """
        INSERT INTO education_records (child_id, grade_year, payload, recorded_at)
        VALUES (?, ?, ?, ?)
        """,
        (child_id, record.grade_year, _dump(record), record.recorded_at.isoformat()),
    )


def list_education_records(child_id: str) -> List[EducationRecord]:
    """Records in insertion order (oldest first)."""
    rows = _query(
        "SELECT payload FROM education_records WHERE child_id = ? ORDER BY id",
        (child_id,),
    )
    return [EducationRecord.model_validate_json(row["payload"]) for row in rows]


def replace_education_suggestions(child_id: str, suggestions: Sequence[Suggestion]) -> None:
    with _pool.transaction() as con:
        con.execute("DELETE FROM education_suggestions WHERE child_id = ?", (child_id,))
        con.executemany(
            "INSERT INTO education_suggestions (child_id, payload) VALUES (?, ?)",
            [(child_id, _dump(suggestion)) for suggestion in suggestions],
        )


def list_education_suggestions(child_id: str) -> List[Suggestion]:
    rows = _query(
        "SELECT payload FROM education_suggestions WHERE child_id = ? ORDER BY id",
        (child_id,),
    )
    return [Suggestion.model_validate_json(row["payload"]) for row in rows]


# -------------- nutrition --------------
def append_nutrition_record(child_id: str, record: NutritionRecord) -> None:
    _exec(
        "INSERT INTO nutrition_records (child_id, payload, recorded_at) VALUES (?, ?, ?)",
        (child_id, _dump(record), record.recorded_at.isoformat()),
    )


def list_nutrition_records(child_id: str) -> List[NutritionRecord]:
    rows = _query(
        "SELECT payload FROM nutrition_records WHERE child_id = ? ORDER BY id",
        (child_id,),
    )
    return [NutritionRecord.model_validate_json(row["payload"]) for row in rows]


def replace_nutrition_recommendations(child_id: str, recommendations: Sequence[NutritionRecommendation]) -> None:
    with _pool.transaction() as con:
        con.execute("DELETE FROM nutrition_recommendations WHERE child_id = ?", (child_id,))
        con.executemany(
            "INSERT INTO nutrition_recommendations (child_id, payload) VALUES (?, ?)",
            [(child_id, _dump(item)) for item in recommendations],
        )


def list_nutrition_recommendations(child_id: str) -> List[NutritionRecommendation]:
    rows = _query(
        "SELECT payload FROM nutrition_recommendations WHERE child_id = ? ORDER BY id",
        (child_id,),
    )
    return [NutritionRecommendation.model_validate_json(row["payload"]) for row in rows]
