"""Chart drills: delivery, grading and attempt history."""
import json
from datetime import datetime

from loguru import logger

from chart_tutor import geometry
from chart_tutor.catalog import get_drill_record
from chart_tutor.charts import price_range
from chart_tutor.db import get_connection, transaction
from chart_tutor.errors import NotFound, ValidationError
from chart_tutor.models import DrillAttempt

MAX_HINTS = 2


def list_drills(db_path: str, user_id: int) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT d.id, d.title, d.description, d.level_required, d.difficulty, d.tags,
            (SELECT COUNT(*) FROM drill_attempts da
             WHERE da.drill_id = d.id AND da.user_id = ?) as attempt_count,
            (SELECT da.score FROM drill_attempts da
             WHERE da.drill_id = d.id AND da.user_id = ?
             ORDER BY da.created_at DESC, da.id DESC LIMIT 1) as last_score
        FROM drills d ORDER BY d.level_required, d.id""",
        (user_id, user_id),
    ).fetchall()
    conn.close()
    return [{**dict(r), "tags": json.loads(r["tags"] or "[]")} for r in rows]


def get_last_attempt(conn, user_id: int, drill_id: int) -> DrillAttempt | None:
    row = conn.execute(
        """SELECT * FROM drill_attempts WHERE drill_id = ? AND user_id = ?
        ORDER BY created_at DESC, id DESC LIMIT 1""",
        (drill_id, user_id),
    ).fetchone()
    if row is None:
        return None
    return DrillAttempt(
        id=row["id"],
        user_id=row["user_id"],
        drill_id=row["drill_id"],
        user_input=json.loads(row["user_input"]),
        score=row["score"],
        feedback=json.loads(row["feedback"]),
        hints_used=row["hints_used"],
        revealed=bool(row["revealed"]),
        created_at=row["created_at"],
    )


def get_drill(db_path: str, drill_id: int, user_id: int) -> dict:
    """Drill for display plus the user's most recent attempt.

    The answer set and explanation stay hidden until the user has submitted
    at least once. Hints are always included; the client decides when to
    show them.
    """
    conn = get_connection(db_path)
    drill = get_drill_record(conn, drill_id)
    if drill is None:
        conn.close()
        raise NotFound(f"Drill {drill_id} not found")
    last = get_last_attempt(conn, user_id, drill_id)
    conn.close()

    payload = {
        "id": drill.id,
        "title": drill.title,
        "description": drill.description,
        "level_required": drill.level_required,
        "difficulty": drill.difficulty,
        "tags": drill.tags,
        "chart_data": drill.chart_data,
        "price_range": price_range(drill.chart_data),
        "hint1": drill.hint1,
        "hint2": drill.hint2,
    }
    if last is not None:
        payload["answer_set"] = drill.answer_set()
        payload["explanation"] = drill.explanation
    return {"drill": payload, "last_attempt": last}


def submit_drill(
    db_path: str,
    user_id: int,
    drill_id: int,
    user_input: dict,
    hints_used: int = 0,
    revealed: bool = False,
    now: datetime | None = None,
) -> dict:
    """Grade a drill submission and record the attempt.

    Hint and reveal state are recorded as reported by the client and do
    not affect the score; nothing checks that both hints came before a
    reveal.
    """
    if not isinstance(hints_used, int) or not 0 <= hints_used <= MAX_HINTS:
        raise ValidationError(f"hints_used must be between 0 and {MAX_HINTS}")
    user_zones, user_points = geometry.parse_user_input(user_input)

    with transaction(db_path) as conn:
        drill = get_drill_record(conn, drill_id)
        if drill is None:
            raise NotFound(f"Drill {drill_id} not found")
        result = geometry.grade(drill.answer_zones, drill.answer_points, user_zones, user_points)
        feedback = [f.to_dict() for f in result.feedback]
        conn.execute(
            """INSERT INTO drill_attempts
            (user_id, drill_id, user_input, score, feedback, hints_used, revealed, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                user_id, drill_id,
                json.dumps({"zones": [z.to_dict() for z in user_zones],
                            "points": [p.to_dict() for p in user_points]}),
                result.score, json.dumps(feedback), hints_used, int(revealed),
                (now or datetime.now()).isoformat(),
            ),
        )

    logger.info(
        "User {} scored {} on drill {} ({}/{}, hints={}, revealed={})",
        user_id, result.score, drill_id, result.correct_count, result.total_count,
        hints_used, revealed,
    )
    return {
        "score": result.score,
        "correct_elements": result.correct_count,
        "total_elements": result.total_count,
        "feedback": feedback,
        "answer_set": drill.answer_set(),
        "assisted": bool(revealed),
    }
