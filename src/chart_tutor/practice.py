"""Daily practice sessions built from the review queue and weak lessons."""
import json
import random
from datetime import date, datetime
from itertools import groupby

from loguru import logger

from chart_tutor.catalog import get_question
from chart_tutor.db import get_connection, transaction
from chart_tutor.errors import ValidationError
from chart_tutor.mastery import WEAK_THRESHOLD
from chart_tutor.scheduler import (
    DEFAULT_EASE, enqueue_if_absent, get_due_entries, get_entry, grade_entry, review_state,
)
from chart_tutor.scoring import answers_match, percent

DAILY_QUOTA = 5


def _due_questions(conn, user_id: int, today: date) -> list[dict]:
    entries = {e.queue_id: e for e in get_due_entries(conn, user_id, today)}
    if not entries:
        return []
    rows = conn.execute(
        f"""SELECT rq.id as queue_id, q.id as question_id, q.kind, q.prompt, q.options,
            l.id as lesson_id, l.title as lesson_title
        FROM review_queue rq
        JOIN questions q ON q.id = rq.question_id
        JOIN lessons l ON l.id = rq.lesson_id
        WHERE rq.id IN ({",".join("?" * len(entries))})""",
        list(entries),
    ).fetchall()
    by_id = {r["queue_id"]: r for r in rows}
    questions = []
    for queue_id, entry in entries.items():
        row = by_id.get(queue_id)
        if row is None:
            continue
        questions.append({
            **dict(row),
            "options": json.loads(row["options"] or "[]"),
            "interval_days": entry.interval_days,
            "ease_factor": entry.ease_factor,
            "next_review_date": entry.next_review_date.isoformat(),
            "review_state": review_state(entry, today).value,
        })
    return questions


def _backfill_candidates(conn, user_id: int, exclude: set, rng: random.Random) -> list[dict]:
    """Questions from weak lessons, weakest first, shuffled within equal mastery."""
    rows = conn.execute(
        """SELECT q.id as question_id, q.kind, q.prompt, q.options,
            l.id as lesson_id, l.title as lesson_title, ms.score as mastery_score
        FROM questions q
        JOIN lessons l ON l.id = q.lesson_id
        JOIN mastery_scores ms ON ms.lesson_id = l.id AND ms.user_id = ?
        WHERE ms.score < ?
        ORDER BY ms.score ASC, q.id ASC""",
        (user_id, WEAK_THRESHOLD),
    ).fetchall()
    candidates = []
    for _, group in groupby((dict(r) for r in rows if r["question_id"] not in exclude),
                            key=lambda r: r["mastery_score"]):
        group = list(group)
        rng.shuffle(group)
        candidates.extend(group)
    return candidates


def build_daily_session(
    db_path: str,
    user_id: int,
    today: date | None = None,
    quota: int = DAILY_QUOTA,
    rng: random.Random | None = None,
) -> dict:
    """Assemble up to ``quota`` questions: due reviews first, then backfill.

    Backfilled questions carry ``queue_id=None`` so the submission knows
    there is no queue entry to reschedule. Answers are never included.
    """
    if quota < 0:
        raise ValidationError("quota must not be negative")
    today = today or date.today()
    rng = rng or random.Random()

    conn = get_connection(db_path)
    due = _due_questions(conn, user_id, today)
    selected = due[:quota]
    if len(selected) < quota:
        exclude = {q["question_id"] for q in selected}
        for candidate in _backfill_candidates(conn, user_id, exclude, rng)[:quota - len(selected)]:
            selected.append({
                "queue_id": None,
                "question_id": candidate["question_id"],
                "kind": candidate["kind"],
                "prompt": candidate["prompt"],
                "options": json.loads(candidate["options"] or "[]"),
                "lesson_id": candidate["lesson_id"],
                "lesson_title": candidate["lesson_title"],
                "interval_days": 1,
                "ease_factor": DEFAULT_EASE,
                "next_review_date": None,
                "review_state": review_state(
                    get_entry(conn, user_id, candidate["question_id"]), today
                ).value,
            })
    conn.close()

    logger.debug("Built session for user {}: {} due, {} selected", user_id, len(due), len(selected))
    return {"questions": selected, "total_due": len(due), "date": today.isoformat()}


def submit_daily_session(
    db_path: str,
    user_id: int,
    answers: list[dict],
    today: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Grade a practice session and reschedule the review queue.

    Each answer is ``{"question_id": int, "queue_id": int | None, "answer": str}``.
    Queued questions are regraded on their entry, which must be the entry
    for that question; a missed backfill question is queued for tomorrow. Mastery is left alone: only quizzes move it.
    """
    if not answers:
        raise ValidationError("answers must contain at least one entry")
    today = today or date.today()

    results = []
    with transaction(db_path) as conn:
        for a in answers:
            question = get_question(conn, a.get("question_id"))
            if question is None:
                logger.warning("Skipping answer for unknown question {}", a.get("question_id"))
                continue
            is_correct = answers_match(question.correct_answer, a.get("answer"))
            results.append({
                "question_id": question.id,
                "is_correct": is_correct,
                "correct_answer": question.correct_answer,
                "explanation": question.explanation,
            })
            queue_id = a.get("queue_id")
            if queue_id is not None:
                grade_entry(conn, user_id, queue_id, question.id, is_correct, today, now)
            elif not is_correct:
                enqueue_if_absent(conn, user_id, question.lesson_id, question.id, today, now)

    correct_count = sum(1 for r in results if r["is_correct"])
    return {
        "score": percent(correct_count, len(results)),
        "correct_count": correct_count,
        "total": len(results),
        "results": results,
    }
