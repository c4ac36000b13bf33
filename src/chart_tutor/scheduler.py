"""Review queue scheduling with a simplified SM-2 interval ladder."""
import sqlite3
from dataclasses import replace
from datetime import date, datetime, timedelta

from loguru import logger

from chart_tutor.errors import NotFound
from chart_tutor.models import ReviewEntry, ReviewState
from chart_tutor.scoring import round_half_up

DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 3.0
EASE_BONUS = 0.1
EASE_PENALTY = 0.2


def next_schedule(interval_days: int, ease_factor: float, is_correct: bool) -> dict:
    """Calculate the next interval and ease from a binary correctness signal.

    Correct answers climb a fixed 1 -> 3 -> 7 day ladder before the ease
    factor takes over; any miss drops the card back to a one day interval.

    Args:
        interval_days: Current interval in days (>= 1)
        ease_factor: Current ease factor, within [1.3, 3.0]
        is_correct: Whether the learner answered correctly

    Returns:
        Dict with updated interval and ease_factor.
    """
    if is_correct:
        if interval_days == 1:
            new_interval = 3
        elif interval_days <= 3:
            new_interval = 7
        else:
            # Uses the ease factor from before this review
            new_interval = round_half_up(interval_days * ease_factor)
        new_ef = min(MAX_EASE, ease_factor + EASE_BONUS)
    else:
        new_interval = 1
        new_ef = max(MIN_EASE, ease_factor - EASE_PENALTY)

    return {
        "interval": max(1, new_interval),
        "ease_factor": round(new_ef, 2),
    }


def grade(entry: ReviewEntry, is_correct: bool, today: date) -> ReviewEntry:
    """Return a rescheduled copy of ``entry``; the input is left untouched."""
    updated = next_schedule(entry.interval_days, entry.ease_factor, is_correct)
    return replace(
        entry,
        interval_days=updated["interval"],
        ease_factor=updated["ease_factor"],
        next_review_date=today + timedelta(days=updated["interval"]),
    )


def review_state(entry: ReviewEntry | None, today: date) -> ReviewState:
    if entry is None:
        return ReviewState.NEW
    if entry.next_review_date <= today:
        return ReviewState.DUE
    return ReviewState.SCHEDULED


def get_entry(conn: sqlite3.Connection, user_id: int, question_id: int) -> ReviewEntry | None:
    row = conn.execute(
        "SELECT * FROM review_queue WHERE user_id = ? AND question_id = ?",
        (user_id, question_id),
    ).fetchone()
    return ReviewEntry.from_row(row) if row else None


def enqueue_if_absent(
    conn: sqlite3.Connection,
    user_id: int,
    lesson_id: int,
    question_id: int,
    today: date,
    now: datetime | None = None,
) -> ReviewEntry:
    """Queue a missed question for tomorrow unless it is already queued.

    An entry already in flight keeps its interval and ease; seeing the
    question again through another path never resets it.
    """
    cursor = conn.execute(
        """INSERT INTO review_queue
        (user_id, lesson_id, question_id, next_review_date, interval_days, ease_factor, updated_at)
        VALUES (?, ?, ?, ?, 1, ?, ?)
        ON CONFLICT(user_id, question_id) DO NOTHING""",
        (
            user_id, lesson_id, question_id,
            (today + timedelta(days=1)).isoformat(), DEFAULT_EASE,
            (now or datetime.now()).isoformat(),
        ),
    )
    if cursor.rowcount:
        logger.info("Queued question {} for user {} (lesson {})", question_id, user_id, lesson_id)
    return get_entry(conn, user_id, question_id)


def grade_entry(
    conn: sqlite3.Connection,
    user_id: int,
    queue_id: int,
    question_id: int,
    is_correct: bool,
    today: date,
    now: datetime | None = None,
) -> ReviewEntry:
    """Reschedule one of the user's queue entries. Last write wins.

    The entry must belong to ``user_id`` and hold ``question_id``; anything
    else is reported as ``NotFound``.
    """
    row = conn.execute(
        "SELECT * FROM review_queue WHERE id = ? AND user_id = ? AND question_id = ?",
        (queue_id, user_id, question_id),
    ).fetchone()
    if row is None:
        raise NotFound(f"Review entry {queue_id} for question {question_id} not found")
    updated = grade(ReviewEntry.from_row(row), is_correct, today)
    conn.execute(
        """UPDATE review_queue SET next_review_date=?, interval_days=?, ease_factor=?, updated_at=?
        WHERE id=?""",
        (
            updated.next_review_date.isoformat(), updated.interval_days, updated.ease_factor,
            (now or datetime.now()).isoformat(), queue_id,
        ),
    )
    logger.info(
        "Rescheduled entry {} for user {}: interval {} -> {}, next review {}",
        queue_id, user_id, row["interval_days"], updated.interval_days, updated.next_review_date,
    )
    return updated


def get_due_entries(conn: sqlite3.Connection, user_id: int, today: date) -> list[ReviewEntry]:
    """Entries due on or before ``today``, oldest due first."""
    rows = conn.execute(
        """SELECT * FROM review_queue
        WHERE user_id = ? AND next_review_date <= ?
        ORDER BY next_review_date ASC, id ASC""",
        (user_id, today.isoformat()),
    ).fetchall()
    return [ReviewEntry.from_row(r) for r in rows]


def count_due(conn: sqlite3.Connection, user_id: int, today: date) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM review_queue WHERE user_id = ? AND next_review_date <= ?",
        (user_id, today.isoformat()),
    ).fetchone()[0]
