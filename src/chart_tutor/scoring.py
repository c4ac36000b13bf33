"""Answer evaluation and score rounding shared by every grader."""
import math


def answers_match(correct: str, submitted: str | None) -> bool:
    """Case and whitespace insensitive exact match. No partial credit."""
    submitted = (submitted or "").lower().strip()
    if not submitted:
        return False
    return correct.lower().strip() == submitted


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def percent(correct: int, total: int) -> int:
    if total == 0:
        return 0
    return round_half_up(correct * 100 / total)
