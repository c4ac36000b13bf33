"""Read-only access to lessons, questions and drills."""
import json
import sqlite3

from chart_tutor.models import Drill, Point, Question, QuestionKind, Zone


def list_lessons(conn: sqlite3.Connection) -> list[dict]:
    rows = conn.execute("SELECT * FROM lessons ORDER BY level, order_num, id").fetchall()
    return [dict(r) for r in rows]


def get_lesson(conn: sqlite3.Connection, lesson_id: int) -> dict | None:
    row = conn.execute("SELECT * FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
    return dict(row) if row else None


def _question(row) -> Question:
    return Question(
        id=row["id"],
        lesson_id=row["lesson_id"],
        kind=QuestionKind(row["kind"]),
        prompt=row["prompt"],
        correct_answer=row["correct_answer"],
        explanation=row["explanation"] or "",
        options=json.loads(row["options"] or "[]"),
        order_num=row["order_num"],
    )


def get_lesson_questions(conn: sqlite3.Connection, lesson_id: int) -> list[Question]:
    rows = conn.execute(
        "SELECT * FROM questions WHERE lesson_id = ? ORDER BY order_num, id", (lesson_id,)
    ).fetchall()
    return [_question(r) for r in rows]


def get_question(conn: sqlite3.Connection, question_id: int) -> Question | None:
    row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    return _question(row) if row else None


def public_question(question: Question) -> dict:
    """Question as shown to a learner who has not answered it yet."""
    return {
        "question_id": question.id,
        "lesson_id": question.lesson_id,
        "kind": question.kind.value,
        "prompt": question.prompt,
        "options": question.options,
    }


def parse_answer_set(answer_set: dict) -> tuple[list[Zone], list[Point]]:
    zones = [
        Zone(z["type"], z["priceFrom"], z["priceTo"], z.get("tolerance"))
        for z in answer_set.get("zones") or []
    ]
    points = [
        Point(
            p["type"], p["price"], p.get("barIndex"), p.get("direction"),
            p.get("tolerance"), p.get("barTolerance"),
        )
        for p in answer_set.get("points") or []
    ]
    return zones, points


def get_drill_record(conn: sqlite3.Connection, drill_id: int) -> Drill | None:
    row = conn.execute("SELECT * FROM drills WHERE id = ?", (drill_id,)).fetchone()
    if row is None:
        return None
    answer_set = json.loads(row["answer_set"])
    zones, points = parse_answer_set(answer_set)
    return Drill(
        id=row["id"],
        title=row["title"],
        level_required=row["level_required"],
        chart_data=json.loads(row["chart_data"]),
        answer_zones=zones,
        answer_points=points,
        description=row["description"] or "",
        difficulty=row["difficulty"],
        tags=json.loads(row["tags"] or "[]"),
        answer_description=answer_set.get("description", ""),
        hint1=row["hint1"],
        hint2=row["hint2"],
        explanation=json.loads(row["explanation"] or "[]"),
    )
