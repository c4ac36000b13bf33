import json

from chart_tutor.catalog import get_drill_record
from chart_tutor.charts import generate_ohlc
from chart_tutor.db import init_db, get_connection
from chart_tutor.seed import derive_answer_set, is_seeded, seed_all, seed_drills, seed_lessons


def test_seed_lessons(tmp_db):
    init_db(tmp_db)
    seed_lessons(tmp_db)
    conn = get_connection(tmp_db)
    lessons = conn.execute("SELECT * FROM lessons ORDER BY level, order_num").fetchall()
    assert len(lessons) == 4
    questions = conn.execute("SELECT * FROM questions").fetchall()
    assert len(questions) == 16
    # every correct answer is one of its options
    for q in questions:
        assert q["correct_answer"] in json.loads(q["options"])
    conn.close()


def test_is_seeded(tmp_db):
    init_db(tmp_db)
    assert not is_seeded(tmp_db)
    seed_lessons(tmp_db)
    assert is_seeded(tmp_db)


def test_seed_drills_builds_valid_answer_sets(tmp_db):
    init_db(tmp_db)
    seed_drills(tmp_db)
    conn = get_connection(tmp_db)
    ids = [r["id"] for r in conn.execute("SELECT id FROM drills ORDER BY id")]
    assert ids == [1, 2, 3, 4]
    for drill_id in ids:
        drill = get_drill_record(conn, drill_id)
        assert drill.chart_data
        assert drill.answer_zones or drill.answer_points
        assert drill.hint1 and drill.hint2
    conn.close()


def test_seeded_charts_are_reproducible(tmp_db):
    init_db(tmp_db)
    seed_drills(tmp_db)
    conn = get_connection(tmp_db)
    chart = json.loads(conn.execute("SELECT chart_data FROM drills WHERE id = 1").fetchone()[0])
    conn.close()
    assert chart == generate_ohlc(seed=9001, count=50, start=120, drift=-0.3, vol=2.0)


def test_derive_answer_set_resolves_extremes():
    candles = [
        {"time": 0, "open": 10, "high": 12, "low": 9, "close": 11},
        {"time": 1, "open": 11, "high": 15, "low": 10, "close": 14},
        {"time": 2, "open": 14, "high": 14.5, "low": 8, "close": 9},
        {"time": 3, "open": 9, "high": 11, "low": 8.5, "close": 10},
    ]
    answer = derive_answer_set(candles, {
        "zones": [{"type": "support", "derive": "bottom_zone", "pct": 0.25}],
        "points": [{"type": "swing_high", "derive": "max_high", "direction": "bullish"}],
    })
    assert answer["zones"][0]["priceFrom"] == 8
    assert answer["zones"][0]["priceTo"] == 9
    assert answer["points"][0]["price"] == 15
    assert answer["points"][0]["barIndex"] == 1
    assert answer["points"][0]["direction"] == "bullish"
    assert "swing_high at 15" in answer["description"]


def test_seed_all_idempotent(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    seed_all(tmp_db)  # second call should be no-op
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 4
    assert conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0] == 16
    assert conn.execute("SELECT COUNT(*) FROM drills").fetchone()[0] == 4
    conn.close()
