"""Database initialization, connection and transaction management."""
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from chart_tutor.errors import StorageError

DEFAULT_DB_PATH = os.environ.get(
    "CHART_TUTOR_DB", str(Path.home() / ".chart_tutor" / "tutor.db")
)
BUSY_TIMEOUT = 10.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS lessons (
    id INTEGER PRIMARY KEY,
    level INTEGER NOT NULL DEFAULT 0,
    order_num INTEGER NOT NULL DEFAULT 0,
    title TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    lesson_id INTEGER NOT NULL REFERENCES lessons(id),
    kind TEXT NOT NULL,
    prompt TEXT NOT NULL,
    options TEXT DEFAULT '[]',
    correct_answer TEXT NOT NULL,
    explanation TEXT DEFAULT '',
    order_num INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS quiz_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    lesson_id INTEGER NOT NULL REFERENCES lessons(id),
    score INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    correct_count INTEGER NOT NULL,
    passed INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user_lesson
    ON quiz_attempts(user_id, lesson_id, created_at);

CREATE TABLE IF NOT EXISTS quiz_attempt_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    attempt_id INTEGER NOT NULL REFERENCES quiz_attempts(id),
    question_id INTEGER NOT NULL REFERENCES questions(id),
    user_answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS mastery_scores (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    lesson_id INTEGER NOT NULL REFERENCES lessons(id),
    score INTEGER NOT NULL,
    attempts_count INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, lesson_id)
);

CREATE TABLE IF NOT EXISTS review_queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    lesson_id INTEGER NOT NULL REFERENCES lessons(id),
    question_id INTEGER NOT NULL REFERENCES questions(id),
    next_review_date TEXT NOT NULL,
    interval_days INTEGER NOT NULL DEFAULT 1,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    updated_at TEXT,
    UNIQUE(user_id, question_id)
);

CREATE INDEX IF NOT EXISTS idx_review_queue_due
    ON review_queue(user_id, next_review_date);

CREATE TABLE IF NOT EXISTS user_lesson_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    lesson_id INTEGER NOT NULL REFERENCES lessons(id),
    status TEXT NOT NULL DEFAULT 'not_started',
    completed_at TEXT,
    UNIQUE(user_id, lesson_id)
);

CREATE TABLE IF NOT EXISTS drills (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    level_required INTEGER NOT NULL DEFAULT 0,
    difficulty TEXT DEFAULT 'easy',
    tags TEXT DEFAULT '[]',
    chart_data TEXT NOT NULL,
    answer_set TEXT NOT NULL,
    hint1 TEXT,
    hint2 TEXT,
    explanation TEXT DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS drill_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    drill_id INTEGER NOT NULL REFERENCES drills(id),
    user_input TEXT NOT NULL,
    score INTEGER NOT NULL,
    feedback TEXT NOT NULL,
    hints_used INTEGER NOT NULL DEFAULT 0,
    revealed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


@contextmanager
def transaction(db_path: str = DEFAULT_DB_PATH):
    """Yield a connection holding the write lock for one unit of work.

    ``BEGIN IMMEDIATE`` takes SQLite's reserved lock up front, so two
    submissions for the same user serialize their read-modify-write
    sequences instead of interleaving. Everything written inside the block
    is committed together or rolled back together.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("Rolled back transaction on {}: {}", db_path, exc)
        raise StorageError(str(exc)) from exc
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
