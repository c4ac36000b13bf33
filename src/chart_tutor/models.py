"""Data classes for the practice and grading domain model."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from chart_tutor.errors import ValidationError


class QuestionKind(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    VISUAL = "visual"


class ZoneType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"
    LIQUIDITY = "liquidity"
    ORDER_BLOCK = "order_block"


class PointType(str, Enum):
    SWING_HIGH = "swing_high"
    SWING_LOW = "swing_low"
    BOS = "bos"
    CHOCH = "choch"
    ENTRY = "entry"


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class ReviewState(str, Enum):
    """Lifecycle of a review entry, derived from its next review date."""
    NEW = "new"
    SCHEDULED = "scheduled"
    DUE = "due"


@dataclass
class Question:
    id: int
    lesson_id: int
    kind: QuestionKind
    prompt: str
    correct_answer: str
    explanation: str = ""
    options: list = field(default_factory=list)
    order_num: int = 0


@dataclass
class QuizAttempt:
    id: int
    user_id: int
    lesson_id: int
    score: int
    total_questions: int
    correct_count: int
    passed: bool
    created_at: str


@dataclass
class MasteryScore:
    user_id: int
    lesson_id: int
    score: int
    attempts_count: int = 1
    updated_at: Optional[str] = None


@dataclass
class ReviewEntry:
    queue_id: Optional[int]
    user_id: int
    lesson_id: int
    question_id: int
    next_review_date: date
    interval_days: int = 1
    ease_factor: float = 2.5

    @classmethod
    def from_row(cls, row) -> "ReviewEntry":
        return cls(
            queue_id=row["id"],
            user_id=row["user_id"],
            lesson_id=row["lesson_id"],
            question_id=row["question_id"],
            next_review_date=date.fromisoformat(row["next_review_date"]),
            interval_days=row["interval_days"],
            ease_factor=row["ease_factor"],
        )


@dataclass
class Zone:
    type: ZoneType
    price_from: float
    price_to: float
    tolerance: Optional[float] = None

    def __post_init__(self):
        self.type = ZoneType(self.type)
        if self.price_from >= self.price_to:
            raise ValidationError(
                f"{self.type.value} zone must have price_from < price_to "
                f"(got {self.price_from}-{self.price_to})"
            )

    def to_dict(self) -> dict:
        d = {"type": self.type.value, "priceFrom": self.price_from, "priceTo": self.price_to}
        if self.tolerance is not None:
            d["tolerance"] = self.tolerance
        return d


@dataclass
class Point:
    type: PointType
    price: float
    bar_index: Optional[int] = None
    direction: Optional[Direction] = None
    tolerance: Optional[float] = None
    bar_tolerance: Optional[int] = None

    def __post_init__(self):
        self.type = PointType(self.type)
        if self.direction is not None:
            self.direction = Direction(self.direction)

    def to_dict(self) -> dict:
        d = {"type": self.type.value, "price": self.price}
        if self.bar_index is not None:
            d["barIndex"] = self.bar_index
        if self.direction is not None:
            d["direction"] = self.direction.value
        if self.tolerance is not None:
            d["tolerance"] = self.tolerance
        if self.bar_tolerance is not None:
            d["barTolerance"] = self.bar_tolerance
        return d


@dataclass
class ElementFeedback:
    element: str
    correct: bool
    explanation: str

    def to_dict(self) -> dict:
        return {"element": self.element, "correct": self.correct, "explanation": self.explanation}


@dataclass
class Drill:
    id: int
    title: str
    level_required: int
    chart_data: list
    answer_zones: list
    answer_points: list
    description: str = ""
    difficulty: str = "easy"
    tags: list = field(default_factory=list)
    answer_description: str = ""
    hint1: Optional[str] = None
    hint2: Optional[str] = None
    explanation: list = field(default_factory=list)

    def answer_set(self) -> dict:
        return {
            "description": self.answer_description,
            "zones": [z.to_dict() for z in self.answer_zones],
            "points": [p.to_dict() for p in self.answer_points],
        }


@dataclass
class DrillAttempt:
    id: int
    user_id: int
    drill_id: int
    user_input: dict
    score: int
    feedback: list
    hints_used: int = 0
    revealed: bool = False
    created_at: Optional[str] = None
