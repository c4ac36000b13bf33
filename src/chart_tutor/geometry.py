"""Tolerance-based grading of zones and points marked on a chart."""
import math
from dataclasses import dataclass

from loguru import logger

from chart_tutor.errors import ValidationError
from chart_tutor.models import ElementFeedback, Point, Zone
from chart_tutor.scoring import percent

DEFAULT_PRICE_TOLERANCE = 3
DEFAULT_BAR_TOLERANCE = 5
OVERLAP_THRESHOLD = 0.5


@dataclass
class GradeResult:
    feedback: list[ElementFeedback]
    correct_count: int
    total_count: int
    score: int


def zone_overlap(user: Zone, answer: Zone) -> float:
    """Fraction of the answer zone's span covered by the user zone."""
    covered = min(user.price_to, answer.price_to) - max(user.price_from, answer.price_from)
    span = answer.price_to - answer.price_from
    if covered <= 0 or span <= 0:
        return 0.0
    return covered / span


def _zone_within_tolerance(user: Zone, answer: Zone) -> bool:
    tol = answer.tolerance if answer.tolerance is not None else DEFAULT_PRICE_TOLERANCE
    return (
        abs(user.price_from - answer.price_from) <= tol
        and abs(user.price_to - answer.price_to) <= tol
    )


def grade_zones(answer_zones: list[Zone], user_zones: list[Zone]) -> list[ElementFeedback]:
    feedback = []
    for i, ans in enumerate(answer_zones, 1):
        same_type = [u for u in user_zones if u.type == ans.type]
        correct = any(zone_overlap(u, ans) >= OVERLAP_THRESHOLD for u in same_type)
        if not correct:
            correct = any(_zone_within_tolerance(u, ans) for u in same_type)
        kind = ans.type.value
        if correct:
            explanation = (f"Your {kind} zone overlapped with the expected zone "
                           f"({ans.price_from}-{ans.price_to}).")
        else:
            explanation = f"The {kind} zone should be around {ans.price_from}-{ans.price_to}."
        feedback.append(ElementFeedback(f"{kind}_zone_{i}", correct, explanation))
    return feedback


def point_matches(user: Point, answer: Point) -> bool:
    if user.type != answer.type:
        return False
    price_tol = answer.tolerance if answer.tolerance is not None else DEFAULT_PRICE_TOLERANCE
    if abs(user.price - answer.price) > price_tol:
        return False
    # No bar index from the user means only price is checked
    if user.bar_index is not None and answer.bar_index is not None:
        bar_tol = answer.bar_tolerance if answer.bar_tolerance is not None else DEFAULT_BAR_TOLERANCE
        if abs(user.bar_index - answer.bar_index) > bar_tol:
            return False
    if answer.direction is not None and user.direction != answer.direction:
        return False
    return True


def grade_points(answer_points: list[Point], user_points: list[Point]) -> list[ElementFeedback]:
    feedback = []
    for i, ans in enumerate(answer_points, 1):
        correct = any(point_matches(u, ans) for u in user_points)
        kind = ans.type.value
        if correct:
            explanation = f"Your {kind} point is within the expected range."
        else:
            explanation = f"The {kind} was expected around price {ans.price} (bar ~{ans.bar_index})"
            if ans.direction is not None:
                explanation += f", direction: {ans.direction.value}"
            explanation += "."
        feedback.append(ElementFeedback(f"{kind}_point_{i}", correct, explanation))
    return feedback


def grade(
    answer_zones: list[Zone],
    answer_points: list[Point],
    user_zones: list[Zone],
    user_points: list[Point],
) -> GradeResult:
    """Grade every answer element independently and aggregate a percentage."""
    feedback = grade_zones(answer_zones, user_zones) + grade_points(answer_points, user_points)
    correct = sum(1 for f in feedback if f.correct)
    for f in feedback:
        logger.debug("{}: {}", f.element, "correct" if f.correct else "missed")
    return GradeResult(
        feedback=feedback,
        correct_count=correct,
        total_count=len(feedback),
        score=percent(correct, len(feedback)),
    )


def _price(value) -> float:
    price = float(value)
    if not math.isfinite(price):
        raise ValueError(f"price must be a finite number, got {value!r}")
    return price


def _bar_index(value) -> int:
    bar = float(value)
    if not math.isfinite(bar) or not bar.is_integer():
        raise ValueError(f"barIndex must be a whole number, got {value!r}")
    return int(bar)


def parse_user_input(user_input: dict) -> tuple[list[Zone], list[Point]]:
    """Build zones and points from a submission, rejecting malformed elements."""
    if not isinstance(user_input, dict):
        raise ValidationError("user_input must be an object with 'zones' and/or 'points'")
    try:
        zones = [
            Zone(z["type"], _price(z["priceFrom"]), _price(z["priceTo"]))
            for z in user_input.get("zones") or []
        ]
        points = [
            Point(
                p["type"],
                _price(p["price"]),
                _bar_index(p["barIndex"]) if p.get("barIndex") is not None else None,
                p.get("direction"),
            )
            for p in user_input.get("points") or []
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed drill input: {exc}") from exc
    return zones, points
