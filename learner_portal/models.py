"""Typed records for the Supabase tables, validated at the read boundary.

Rows come back from PostgREST as loosely typed dicts. Each dataclass here has
a ``from_row`` constructor that coerces what it safely can (numeric strings,
null text, null booleans) and raises SchemaError for anything it cannot
trust (missing keys, negative prices, unknown enum values).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

LESSON_TYPES = ("video", "text", "quiz", "assignment", "download")
PAYMENT_STATUSES = ("pending", "completed")

T = TypeVar("T")


class SchemaError(ValueError):
    """A store row does not have the shape we expect."""


def _required(row: dict, key: str):
    if row.get(key) is None:
        raise SchemaError(f"missing required field '{key}'")
    return row[key]


def _text(row: dict, key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


def _number(row: dict, key: str, default: Optional[float] = None) -> float:
    value = row.get(key)
    if value is None:
        if default is None:
            raise SchemaError(f"missing required field '{key}'")
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"field '{key}' is not numeric: {value!r}") from e


def _flag(row: dict, key: str) -> bool:
    value = row.get(key)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes")
    return bool(value)


@dataclass
class Course:
    """One course; each published course is one week of the programme."""
    id: str
    title: str
    price: float
    currency: str = "NGN"
    description: str = ""
    short_description: str = ""
    is_published: bool = False
    created_at: str = ""
    image_url: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Course":
        price = _number(row, "price")
        if price < 0:
            raise SchemaError(f"course {row.get('id')} has negative price {price}")
        return cls(
            id=str(_required(row, "id")),
            title=_text(row, "title"),
            price=price,
            currency=_text(row, "currency") or "NGN",
            description=_text(row, "description"),
            short_description=_text(row, "short_description"),
            is_published=_flag(row, "is_published"),
            created_at=_text(row, "created_at"),
            image_url=_text(row, "image_url"),
        )

    @property
    def is_free(self) -> bool:
        return self.price == 0


@dataclass
class Lesson:
    id: str
    course_id: str
    title: str
    sort_order: int
    lesson_type: str = "text"
    content: str = ""
    video_url: str = ""
    download_url: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Lesson":
        lesson_type = _text(row, "lesson_type") or "text"
        if lesson_type not in LESSON_TYPES:
            raise SchemaError(f"lesson {row.get('id')} has unknown lesson_type '{lesson_type}'")
        return cls(
            id=str(_required(row, "id")),
            course_id=str(_required(row, "course_id")),
            title=_text(row, "title"),
            sort_order=int(_number(row, "sort_order", default=0)),
            lesson_type=lesson_type,
            content=_text(row, "content"),
            video_url=_text(row, "video_url"),
            download_url=_text(row, "download_url"),
        )


@dataclass
class Enrollment:
    user_id: str
    course_id: str
    payment_status: str = "pending"
    id: str = ""
    payment_provider: str = ""
    payment_reference: str = ""
    amount_paid: float = 0
    enrollment_date: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Enrollment":
        status = _text(row, "payment_status") or "pending"
        if status not in PAYMENT_STATUSES:
            raise SchemaError(f"enrollment {row.get('id')} has unknown payment_status '{status}'")
        return cls(
            id=_text(row, "id"),
            user_id=str(_required(row, "user_id")),
            course_id=str(_required(row, "course_id")),
            payment_status=status,
            payment_provider=_text(row, "payment_provider"),
            payment_reference=_text(row, "payment_reference"),
            amount_paid=_number(row, "amount_paid", default=0),
            enrollment_date=_text(row, "enrollment_date"),
        )

    @property
    def is_completed(self) -> bool:
        return self.payment_status == "completed"


@dataclass
class LessonProgress:
    user_id: str
    lesson_id: str
    completed: bool = False
    completed_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "LessonProgress":
        return cls(
            user_id=str(_required(row, "user_id")),
            lesson_id=str(_required(row, "lesson_id")),
            completed=_flag(row, "completed"),
            completed_at=_text(row, "completed_at"),
        )


@dataclass
class Profile:
    user_id: str
    onboarding_completed: bool = False
    full_name: str = ""
    email: str = ""
    phone: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        return cls(
            user_id=str(_required(row, "user_id")),
            onboarding_completed=_flag(row, "onboarding_completed"),
            full_name=_text(row, "full_name"),
            email=_text(row, "email"),
            phone=_text(row, "phone"),
        )

    def completion(self) -> int:
        """Profile completion meter shown on the dashboard (0-100)."""
        score = 0
        if self.full_name:
            score += 33
        if self.email:
            score += 33
        if self.phone:
            score += 34
        return score


@dataclass
class Week:
    """A course projected as a numbered week with its lock state."""
    number: int
    course: Course
    lessons: list[Lesson] = field(default_factory=list)
    is_locked: bool = True
    is_enrolled: bool = False
    is_completed: bool = False
    lock_reason: str = ""

    @property
    def title(self) -> str:
        return self.course.title

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "course_id": self.course.id,
            "title": self.title,
            "price": self.course.price,
            "currency": self.course.currency,
            "lessons": [
                {"id": l.id, "title": l.title, "lesson_type": l.lesson_type, "sort_order": l.sort_order}
                for l in self.lessons
            ],
            "is_locked": self.is_locked,
            "is_enrolled": self.is_enrolled,
            "is_completed": self.is_completed,
            "lock_reason": self.lock_reason,
        }


def parse_rows(rows: list[dict], parser: Callable[[dict], T], table: str) -> list[T]:
    """Parse listing rows, skipping (and logging) any that fail validation."""
    parsed = []
    for row in rows:
        try:
            parsed.append(parser(row))
        except SchemaError as e:
            logger.warning("Skipping malformed %s row: %s", table, e)
    return parsed
