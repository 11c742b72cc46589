import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schemas import IssueWeightage, Question


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    import db

    db_path = tmp_path / "test.db"
    monkeypatch.setattr(db, "DB_PATH", str(db_path))

    # Reset the connection pool for each test
    previous_pool = db._pool
    db._pool = db.SQLiteConnectionPool(str(db_path), max_connections=10)
    db.init()
    yield str(db_path)
    db._pool.close_all()
    db._pool = previous_pool


@pytest.fixture
def make_question():
    def _make(question_id, *weights, active=True):
        """``weights`` are ``(issue_id, weightage)`` or ``(issue_id, issue_name, weightage)`` tuples."""
        entries = []
        for weight in weights:
            if len(weight) == 2:
                issue_id, weightage = weight
                issue_name = issue_id.replace("_", " ").title()
            else:
                issue_id, issue_name, weightage = weight
            entries.append(IssueWeightage(issue_id=issue_id, issue_name=issue_name, weightage=weightage))
        return Question(id=question_id, issue_weightages=entries, is_active=active)

    return _make
