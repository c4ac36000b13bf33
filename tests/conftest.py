import json
import pytest

from chart_tutor.db import init_db, get_connection


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


@pytest.fixture
def content_db(tmp_db):
    """Database with 4 lessons of 4 questions each and one support-zone drill.

    Question ids run 1-4 for lesson 1, 5-8 for lesson 2 and so on. Every
    correct answer is "a".
    """
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    for lesson_id in range(1, 5):
        conn.execute(
            "INSERT INTO lessons (id, level, order_num, title) VALUES (?, 0, ?, ?)",
            (lesson_id, lesson_id, f"Lesson {lesson_id}"),
        )
        for n in range(1, 5):
            conn.execute(
                """INSERT INTO questions
                (lesson_id, kind, prompt, options, correct_answer, explanation, order_num)
                VALUES (?, 'multiple_choice', ?, '["a", "b"]', 'a', 'Because a.', ?)""",
                (lesson_id, f"L{lesson_id} question {n}", n),
            )
    conn.execute(
        """INSERT INTO drills
        (id, title, level_required, chart_data, answer_set, hint1, hint2, explanation)
        VALUES (1, 'Mark the Support Zone', 0, ?, ?, 'Look low.', 'Around 100.', ?)""",
        (
            json.dumps([{"time": 0, "open": 105, "high": 112, "low": 99, "close": 104}]),
            json.dumps({
                "description": "Support at 100-110.",
                "zones": [{"type": "support", "priceFrom": 100, "priceTo": 110}],
                "points": [],
            }),
            json.dumps(["Buyers defended 100-110."]),
        ),
    )
    conn.commit()
    conn.close()
    return tmp_db


def correct(question_id):
    return {"question_id": question_id, "answer": "a"}


def wrong(question_id):
    return {"question_id": question_id, "answer": "b"}
