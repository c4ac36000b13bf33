"""Per-lesson mastery tracking from recent quiz attempts."""
import sqlite3
from datetime import datetime

from loguru import logger

from chart_tutor.models import MasteryScore
from chart_tutor.scoring import round_half_up

MASTERY_WINDOW = 3
WEAK_THRESHOLD = 70


def rolling_mastery(scores: list[int]) -> int:
    """Mean of the most recent attempt scores, rounded half away from zero.

    Older attempts drop out of the window entirely; mastery is frozen, not
    decayed, when a learner stops taking quizzes.
    """
    window = list(scores)[:MASTERY_WINDOW]
    if not window:
        raise ValueError("at least one attempt score is required")
    return round_half_up(sum(window) / len(window))


def recent_attempt_scores(
    conn: sqlite3.Connection, user_id: int, lesson_id: int, limit: int = MASTERY_WINDOW
) -> list[int]:
    rows = conn.execute(
        """SELECT score FROM quiz_attempts
        WHERE user_id = ? AND lesson_id = ?
        ORDER BY created_at DESC, id DESC LIMIT ?""",
        (user_id, lesson_id, limit),
    ).fetchall()
    return [r["score"] for r in rows]


def update_mastery(
    conn: sqlite3.Connection,
    user_id: int,
    lesson_id: int,
    latest_scores: list[int],
    now: datetime | None = None,
) -> MasteryScore:
    """Recompute and upsert the lesson's mastery from the attempt window."""
    score = rolling_mastery(latest_scores)
    updated_at = (now or datetime.now()).isoformat()
    conn.execute(
        """INSERT INTO mastery_scores (user_id, lesson_id, score, attempts_count, updated_at)
        VALUES (?, ?, ?, 1, ?)
        ON CONFLICT(user_id, lesson_id) DO UPDATE SET
            score = excluded.score,
            attempts_count = mastery_scores.attempts_count + 1,
            updated_at = excluded.updated_at""",
        (user_id, lesson_id, score, updated_at),
    )
    mastery = get_mastery(conn, user_id, lesson_id)
    logger.info(
        "Mastery for user {} lesson {} is now {} ({} updates)",
        user_id, lesson_id, mastery.score, mastery.attempts_count,
    )
    return mastery


def get_mastery(conn: sqlite3.Connection, user_id: int, lesson_id: int) -> MasteryScore | None:
    row = conn.execute(
        "SELECT * FROM mastery_scores WHERE user_id = ? AND lesson_id = ?",
        (user_id, lesson_id),
    ).fetchone()
    if row is None:
        return None
    return MasteryScore(
        user_id=row["user_id"],
        lesson_id=row["lesson_id"],
        score=row["score"],
        attempts_count=row["attempts_count"],
        updated_at=row["updated_at"],
    )


def get_weak_lessons(
    conn: sqlite3.Connection, user_id: int, threshold: int = WEAK_THRESHOLD
) -> list[dict]:
    """Lessons where mastery is below threshold (sorted weakest first)."""
    rows = conn.execute(
        """SELECT l.id, l.title, l.level, ms.score
        FROM mastery_scores ms
        JOIN lessons l ON l.id = ms.lesson_id
        WHERE ms.user_id = ? AND ms.score < ?
        ORDER BY ms.score ASC, l.level, l.order_num""",
        (user_id, threshold),
    ).fetchall()
    return [
        {"lesson_id": r["id"], "title": r["title"], "level": r["level"], "score": r["score"]}
        for r in rows
    ]
