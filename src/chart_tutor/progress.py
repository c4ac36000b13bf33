"""Lesson completion tracking and per-user progress summary."""
import sqlite3
from datetime import date, datetime

from chart_tutor.db import get_connection
from chart_tutor.scheduler import count_due


def mark_lesson_completed(
    conn: sqlite3.Connection, user_id: int, lesson_id: int, now: datetime | None = None
) -> None:
    completed_at = (now or datetime.now()).isoformat()
    conn.execute(
        """INSERT INTO user_lesson_progress (user_id, lesson_id, status, completed_at)
        VALUES (?, ?, 'completed', ?)
        ON CONFLICT(user_id, lesson_id) DO UPDATE SET status='completed', completed_at=excluded.completed_at""",
        (user_id, lesson_id, completed_at),
    )


def get_progress(db_path: str, user_id: int, today: date | None = None) -> dict:
    today = today or date.today()
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT l.id, l.title, l.level,
            COALESCE(p.status, 'not_started') as status,
            COALESCE(ms.score, 0) as mastery_score,
            p.completed_at
        FROM lessons l
        LEFT JOIN user_lesson_progress p ON p.lesson_id = l.id AND p.user_id = ?
        LEFT JOIN mastery_scores ms ON ms.lesson_id = l.id AND ms.user_id = ?
        ORDER BY l.level, l.order_num, l.id""",
        (user_id, user_id),
    ).fetchall()
    review_due = count_due(conn, user_id, today)
    conn.close()
    return {
        "lessons": [dict(r) for r in rows],
        "review_due_count": review_due,
    }
