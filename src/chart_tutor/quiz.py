"""Quiz grading: scores a lesson quiz, updates mastery and queues misses."""
from datetime import date, datetime

from loguru import logger

from chart_tutor.catalog import get_lesson_questions, public_question
from chart_tutor.db import get_connection, transaction
from chart_tutor.errors import NotFound, ValidationError
from chart_tutor.mastery import recent_attempt_scores, update_mastery
from chart_tutor.models import QuizAttempt
from chart_tutor.progress import mark_lesson_completed
from chart_tutor.scheduler import enqueue_if_absent
from chart_tutor.scoring import answers_match, percent

PASS_THRESHOLD = 70
HISTORY_LIMIT = 10


def get_quiz_questions(db_path: str, lesson_id: int) -> list[dict]:
    """Questions for an unsolved quiz, without answers or explanations."""
    conn = get_connection(db_path)
    questions = get_lesson_questions(conn, lesson_id)
    conn.close()
    if not questions:
        raise NotFound(f"No questions found for lesson {lesson_id}")
    return [public_question(q) for q in questions]


def submit_quiz(
    db_path: str,
    user_id: int,
    lesson_id: int,
    answers: list[dict],
    today: date | None = None,
    now: datetime | None = None,
) -> dict:
    """Grade a quiz submission and apply all of its side effects atomically.

    ``answers`` is a list of ``{"question_id": int, "answer": str}``. Answers
    for questions outside the lesson are ignored, as is any repeat answer to
    a question already graded in this submission. The score is taken over
    every question in the lesson, so unanswered questions count as misses.
    """
    if not answers:
        raise ValidationError("answers must contain at least one entry")
    today = today or date.today()
    now = now or datetime.now()

    with transaction(db_path) as conn:
        questions = {q.id: q for q in get_lesson_questions(conn, lesson_id)}
        if not questions:
            raise NotFound(f"No questions found for lesson {lesson_id}")

        results = []
        seen = set()
        for a in answers:
            q = questions.get(a.get("question_id"))
            if q is None:
                logger.warning("Ignoring answer for unknown question {} in lesson {}",
                               a.get("question_id"), lesson_id)
                continue
            if q.id in seen:
                continue
            seen.add(q.id)
            user_answer = a.get("answer") or ""
            results.append({
                "question_id": q.id,
                "user_answer": user_answer,
                "correct_answer": q.correct_answer,
                "is_correct": answers_match(q.correct_answer, user_answer),
                "explanation": q.explanation,
            })

        correct_count = sum(1 for r in results if r["is_correct"])
        total = len(questions)
        score = percent(correct_count, total)
        passed = score >= PASS_THRESHOLD

        cursor = conn.execute(
            """INSERT INTO quiz_attempts
            (user_id, lesson_id, score, total_questions, correct_count, passed, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user_id, lesson_id, score, total, correct_count, int(passed), now.isoformat()),
        )
        attempt_id = cursor.lastrowid
        conn.executemany(
            """INSERT INTO quiz_attempt_answers (attempt_id, question_id, user_answer, is_correct)
            VALUES (?, ?, ?, ?)""",
            [(attempt_id, r["question_id"], r["user_answer"], int(r["is_correct"])) for r in results],
        )

        mastery = update_mastery(
            conn, user_id, lesson_id, recent_attempt_scores(conn, user_id, lesson_id), now
        )
        # Completion is recorded on every submission, passing or not.
        mark_lesson_completed(conn, user_id, lesson_id, now)

        if not passed:
            for r in results:
                if not r["is_correct"]:
                    enqueue_if_absent(conn, user_id, lesson_id, r["question_id"], today, now)

    logger.info(
        "User {} scored {} on lesson {} ({}/{}, passed={})",
        user_id, score, lesson_id, correct_count, total, passed,
    )
    return {
        "score": score,
        "passed": passed,
        "correct_count": correct_count,
        "total": total,
        "mastery_score": mastery.score,
        "results": results,
    }


def get_quiz_history(
    db_path: str, user_id: int, lesson_id: int, limit: int = HISTORY_LIMIT
) -> list[QuizAttempt]:
    """Most recent attempts first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT * FROM quiz_attempts
        WHERE user_id = ? AND lesson_id = ?
        ORDER BY created_at DESC, id DESC LIMIT ?""",
        (user_id, lesson_id, limit),
    ).fetchall()
    conn.close()
    return [
        QuizAttempt(
            id=r["id"],
            user_id=r["user_id"],
            lesson_id=r["lesson_id"],
            score=r["score"],
            total_questions=r["total_questions"],
            correct_count=r["correct_count"],
            passed=bool(r["passed"]),
            created_at=r["created_at"],
        )
        for r in rows
    ]
