# tests/test_scheduler.py
from datetime import date, datetime, timedelta

import pytest

from chart_tutor.db import get_connection
from chart_tutor.errors import NotFound
from chart_tutor.models import ReviewEntry, ReviewState
from chart_tutor.scheduler import (
    next_schedule, grade, review_state, enqueue_if_absent, grade_entry, get_entry,
    get_due_entries, count_due, MIN_EASE, MAX_EASE,
)

TODAY = date(2024, 3, 10)


def make_entry(interval=1, ease=2.5, due=TODAY):
    return ReviewEntry(
        queue_id=1, user_id=1, lesson_id=1, question_id=1,
        next_review_date=due, interval_days=interval, ease_factor=ease,
    )


def test_first_correct_moves_to_three_days():
    result = next_schedule(interval_days=1, ease_factor=2.5, is_correct=True)
    assert result["interval"] == 3
    assert result["ease_factor"] == 2.6


def test_second_correct_moves_to_seven_days():
    result = next_schedule(interval_days=3, ease_factor=2.6, is_correct=True)
    assert result["interval"] == 7


def test_interval_ladder_multiplies_by_pre_update_ease():
    """From 7 days with ease 2.5: round(7 * 2.5) = 18."""
    result = next_schedule(interval_days=7, ease_factor=2.5, is_correct=True)
    assert result["interval"] == 18
    assert result["ease_factor"] == 2.6


def test_incorrect_resets_interval_and_lowers_ease():
    result = next_schedule(interval_days=30, ease_factor=2.5, is_correct=False)
    assert result["interval"] == 1
    assert result["ease_factor"] == 2.3


def test_incorrect_grade_is_due_tomorrow_from_any_state():
    for interval in (1, 3, 7, 18, 120):
        updated = grade(make_entry(interval=interval, ease=2.0), is_correct=False, today=TODAY)
        assert updated.interval_days == 1
        assert updated.next_review_date == TODAY + timedelta(days=1)


def test_grade_sets_next_review_date_from_today():
    updated = grade(make_entry(interval=3), is_correct=True, today=TODAY)
    assert updated.next_review_date == TODAY + timedelta(days=7)


def test_grade_does_not_mutate_input():
    entry = make_entry()
    grade(entry, is_correct=True, today=TODAY)
    assert entry.interval_days == 1
    assert entry.ease_factor == 2.5


def test_ease_never_drops_below_minimum():
    entry = make_entry(ease=2.5)
    for _ in range(20):
        entry = grade(entry, is_correct=False, today=TODAY)
        assert MIN_EASE <= entry.ease_factor <= MAX_EASE
    assert entry.ease_factor == MIN_EASE


def test_ease_never_exceeds_maximum():
    entry = make_entry(ease=2.5)
    for _ in range(10):
        entry = grade(entry, is_correct=True, today=TODAY)
        assert MIN_EASE <= entry.ease_factor <= MAX_EASE
    assert entry.ease_factor == MAX_EASE


def test_ease_stays_bounded_for_mixed_sequences():
    entry = make_entry(ease=1.4)
    for i in range(50):
        entry = grade(entry, is_correct=(i % 3 != 0), today=TODAY)
        assert MIN_EASE <= entry.ease_factor <= MAX_EASE
        assert entry.interval_days >= 1


def test_review_state_classification():
    assert review_state(None, TODAY) == ReviewState.NEW
    assert review_state(make_entry(due=TODAY + timedelta(days=2)), TODAY) == ReviewState.SCHEDULED
    assert review_state(make_entry(due=TODAY), TODAY) == ReviewState.DUE
    assert review_state(make_entry(due=TODAY - timedelta(days=5)), TODAY) == ReviewState.DUE


def test_enqueue_if_absent_creates_default_entry(content_db):
    conn = get_connection(content_db)
    entry = enqueue_if_absent(conn, user_id=1, lesson_id=1, question_id=2, today=TODAY)
    conn.commit()
    assert entry.interval_days == 1
    assert entry.ease_factor == 2.5
    assert entry.next_review_date == TODAY + timedelta(days=1)
    conn.close()


def test_enqueue_if_absent_is_idempotent(content_db):
    conn = get_connection(content_db)
    first = enqueue_if_absent(conn, 1, 1, 2, TODAY)
    graded = grade_entry(conn, 1, first.queue_id, 2, True, TODAY)
    second = enqueue_if_absent(conn, 1, 1, 2, TODAY + timedelta(days=1))
    conn.commit()
    assert second.queue_id == first.queue_id
    # the in-flight review keeps its progress
    assert second.interval_days == graded.interval_days == 3
    rows = conn.execute("SELECT COUNT(*) FROM review_queue WHERE user_id = 1").fetchone()[0]
    assert rows == 1
    conn.close()


def test_enqueue_is_per_user(content_db):
    conn = get_connection(content_db)
    enqueue_if_absent(conn, 1, 1, 2, TODAY)
    enqueue_if_absent(conn, 2, 1, 2, TODAY)
    conn.commit()
    assert conn.execute("SELECT COUNT(*) FROM review_queue").fetchone()[0] == 2
    conn.close()


def test_grade_entry_rejects_other_users_entry(content_db):
    conn = get_connection(content_db)
    entry = enqueue_if_absent(conn, 1, 1, 2, TODAY)
    with pytest.raises(NotFound):
        grade_entry(conn, 2, entry.queue_id, 2, True, TODAY)
    conn.close()


def test_grade_entry_rejects_entry_for_another_question(content_db):
    conn = get_connection(content_db)
    entry = enqueue_if_absent(conn, 1, 1, 2, TODAY)
    with pytest.raises(NotFound):
        grade_entry(conn, 1, entry.queue_id, 3, True, TODAY)
    unchanged = get_entry(conn, 1, 2)
    assert unchanged.interval_days == 1
    conn.close()


def test_grade_entry_records_injected_time(content_db):
    conn = get_connection(content_db)
    entry = enqueue_if_absent(conn, 1, 1, 2, TODAY, now=datetime(2024, 3, 10, 8, 0))
    grade_entry(conn, 1, entry.queue_id, 2, True, TODAY, now=datetime(2024, 3, 10, 9, 30))
    row = conn.execute("SELECT updated_at FROM review_queue WHERE id = ?", (entry.queue_id,)).fetchone()
    assert row["updated_at"] == "2024-03-10T09:30:00"
    conn.close()


def test_grade_entry_unknown_queue_id(content_db):
    conn = get_connection(content_db)
    with pytest.raises(NotFound):
        grade_entry(conn, 1, 999, 1, True, TODAY)
    conn.close()


def test_due_entries_ordered_oldest_first_then_queue_id(content_db):
    conn = get_connection(content_db)
    yesterday = TODAY - timedelta(days=1)
    for qid in (3, 1, 2):
        enqueue_if_absent(conn, 1, 1, qid, yesterday - timedelta(days=1))
    # question 4 is two days overdue
    enqueue_if_absent(conn, 1, 1, 4, yesterday - timedelta(days=2))
    # question 5 is not due yet
    enqueue_if_absent(conn, 1, 2, 5, TODAY)
    conn.commit()
    due = get_due_entries(conn, 1, TODAY)
    assert [e.question_id for e in due] == [4, 3, 1, 2]
    assert [e.queue_id for e in due[1:]] == sorted(e.queue_id for e in due[1:])
    assert count_due(conn, 1, TODAY) == 4
    assert get_due_entries(conn, 2, TODAY) == []
    conn.close()
