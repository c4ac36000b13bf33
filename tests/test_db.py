"""Tests for database initialization, connections and transactions."""
import sqlite3

import pytest

from chart_tutor.db import init_db, get_connection, transaction
from chart_tutor.errors import NotFound, StorageError


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "lessons", "questions", "quiz_attempts", "quiz_attempt_answers",
        "mastery_scores", "review_queue", "user_lesson_progress",
        "drills", "drill_attempts",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_init_db_creates_parent_directory(tmp_path):
    db_path = str(tmp_path / "nested" / "tutor.db")
    init_db(db_path)
    assert (tmp_path / "nested" / "tutor.db").exists()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Candles')")
    row = conn.execute("SELECT id, title FROM lessons WHERE id = 1").fetchone()
    assert row["title"] == "Candles"
    conn.close()


def test_mastery_is_unique_per_user_and_lesson(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Candles')")
    conn.execute(
        "INSERT INTO mastery_scores (user_id, lesson_id, score, updated_at) VALUES (1, 1, 50, 'now')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO mastery_scores (user_id, lesson_id, score, updated_at) VALUES (1, 1, 60, 'now')"
        )
    conn.close()


def test_transaction_commits(tmp_db):
    init_db(tmp_db)
    with transaction(tmp_db) as conn:
        conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Candles')")
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 1
    conn.close()


def test_transaction_wraps_sqlite_errors(tmp_db):
    init_db(tmp_db)
    with pytest.raises(StorageError):
        with transaction(tmp_db) as conn:
            conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Candles')")
            conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Again')")
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 0
    conn.close()


def test_transaction_rolls_back_domain_errors(tmp_db):
    init_db(tmp_db)
    with pytest.raises(NotFound):
        with transaction(tmp_db) as conn:
            conn.execute("INSERT INTO lessons (id, title) VALUES (1, 'Candles')")
            raise NotFound("drill 9")
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 0
    conn.close()
