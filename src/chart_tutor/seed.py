"""Seed the database with lessons, questions and chart drills."""
import json
from pathlib import Path

from loguru import logger

from chart_tutor.charts import bottom_zone, extremes, generate_ohlc, top_zone
from chart_tutor.catalog import parse_answer_set
from chart_tutor.db import get_connection

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with lessons."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM lessons").fetchone()[0]
    conn.close()
    return count > 0


def seed_lessons(db_path: str) -> None:
    """Insert lessons and their questions from lessons.json."""
    data = json.loads((CONTENT_DIR / "lessons.json").read_text())
    conn = get_connection(db_path)
    for lesson in data["lessons"]:
        conn.execute(
            "INSERT OR IGNORE INTO lessons (id, level, order_num, title) VALUES (?, ?, ?, ?)",
            (lesson["id"], lesson["level"], lesson["order_num"], lesson["title"]),
        )
        for order, q in enumerate(lesson["questions"], 1):
            conn.execute(
                """INSERT INTO questions
                (lesson_id, kind, prompt, options, correct_answer, explanation, order_num)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (lesson["id"], q["kind"], q["prompt"], json.dumps(q.get("options", [])),
                 q["correct_answer"], q.get("explanation", ""), order),
            )
    conn.commit()
    conn.close()


def derive_answer_set(candles: list[dict], answer: dict) -> dict:
    """Resolve ``derive`` markers in a drill definition against its candles."""
    ext = extremes(candles)
    zones, points, notes = [], [], []
    for z in answer.get("zones", []):
        derive = bottom_zone if z["derive"] == "bottom_zone" else top_zone
        price_from, price_to = derive(candles, z.get("pct", 0.25))
        zones.append({"type": z["type"], "priceFrom": price_from, "priceTo": price_to,
                      "tolerance": z.get("tolerance")})
        notes.append(f"{z['type']} zone {price_from}-{price_to}")
    for p in answer.get("points", []):
        if p["derive"] == "max_high":
            price, bar = ext["max_high"], ext["max_high_idx"]
        else:
            price, bar = ext["min_low"], ext["min_low_idx"]
        point = {"type": p["type"], "price": price, "barIndex": bar,
                 "tolerance": p.get("tolerance"), "barTolerance": p.get("barTolerance")}
        if p.get("direction"):
            point["direction"] = p["direction"]
        points.append(point)
        notes.append(f"{p['type']} at {price} (bar {bar})")
    return {"description": "; ".join(notes) + ".", "zones": zones, "points": points}


def seed_drills(db_path: str) -> None:
    """Insert drills from drills.json with freshly generated, deterministic charts."""
    data = json.loads((CONTENT_DIR / "drills.json").read_text())
    conn = get_connection(db_path)
    for d in data["drills"]:
        candles = generate_ohlc(**d["chart"])
        answer_set = derive_answer_set(candles, d["answer"])
        parse_answer_set(answer_set)  # rejects malformed zones before insert
        conn.execute(
            """INSERT OR IGNORE INTO drills
            (id, title, description, level_required, difficulty, tags, chart_data, answer_set,
             hint1, hint2, explanation)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (d["id"], d["title"], d["description"], d["level_required"], d["difficulty"],
             json.dumps(d.get("tags", [])), json.dumps(candles), json.dumps(answer_set),
             d.get("hint1"), d.get("hint2"), json.dumps(d.get("explanation", []))),
        )
    conn.commit()
    conn.close()


def seed_all(db_path: str) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        return
    seed_lessons(db_path)
    seed_drills(db_path)
    logger.info("Seeded content into {}", db_path)
