"""Lesson progress: idempotent completion marks and completion percentages."""

import logging
from dataclasses import dataclass, field

from learner_portal import supabase_client as db
from learner_portal.models import Lesson, LessonProgress, parse_rows
from learner_portal.session import Session
from learner_portal.supabase_client import StoreError

logger = logging.getLogger(__name__)


@dataclass
class ProgressView:
    """The learner's completed lessons as currently known to this request."""
    user_id: str
    completed: set[str] = field(default_factory=set)

    def is_completed(self, lesson_id: str) -> bool:
        return lesson_id in self.completed


def completed_lesson_ids(progress: list[LessonProgress]) -> set[str]:
    return {p.lesson_id for p in progress if p.completed}


def completion_percent(lessons: list[Lesson], completed: set[str]) -> int:
    """Share of a course's lessons completed, 0-100. A course without lessons is 0."""
    if not lessons:
        return 0
    done = sum(1 for lesson in lessons if lesson.id in completed)
    return round(100 * done / len(lessons))


def is_fully_completed(lessons: list[Lesson], completed: set[str]) -> bool:
    """Every lesson done. An empty lesson list never counts as completed."""
    return bool(lessons) and all(lesson.id in completed for lesson in lessons)


def load_progress(session: Session) -> ProgressView:
    """Read the learner's progress rows. Read failures give an empty view."""
    try:
        rows = db.get_progress(session.user_id)
    except StoreError as e:
        logger.warning("Progress read failed for %s: %s", session.user_id, e)
        rows = []
    progress = parse_rows(rows, LessonProgress.from_row, "lesson_progress")
    return ProgressView(user_id=session.user_id, completed=completed_lesson_ids(progress))


def mark_complete(session: Session, lesson_id: str, view: ProgressView | None = None) -> dict:
    """Upsert a completion mark for (user, lesson).

    Safe to repeat: the upsert is keyed on (user_id, lesson_id) so a second
    call overwrites the same row. The view is only updated once the write
    has succeeded.
    """
    try:
        db.upsert_progress(session.user_id, lesson_id)
    except StoreError as e:
        logger.warning("Failed to mark lesson %s complete for %s: %s", lesson_id, session.user_id, e)
        return {"ok": False, "lesson_id": lesson_id, "message": "Failed to mark lesson complete"}

    if view is not None:
        view.completed.add(lesson_id)
    logger.info("Lesson %s completed by %s", lesson_id, session.user_id)
    return {"ok": True, "lesson_id": lesson_id, "message": "Lesson marked as complete!"}
