"""Course detail: a course with its ordered lessons and the learner's progress."""

import logging
import re

from learner_portal import supabase_client as db
from learner_portal.cache import QueryCache
from learner_portal.models import Course, Lesson, SchemaError, parse_rows
from learner_portal.services.progress import completion_percent, load_progress
from learner_portal.session import Session
from learner_portal.supabase_client import StoreError

logger = logging.getLogger(__name__)

_YOUTUBE_ID_PATTERNS = [
    r'(?:v=|/v/|youtu\.be/)([A-Za-z0-9_-]{11})',
    r'(?:embed/)([A-Za-z0-9_-]{11})',
]


def embed_url(url: str) -> str:
    """YouTube watch/short links become embed links; anything else is unchanged."""
    for p in _YOUTUBE_ID_PATTERNS:
        m = re.search(p, url or '')
        if m:
            return f"https://www.youtube.com/embed/{m.group(1)}"
    return url


def get_course(course_id: str) -> Course | None:
    """A single course, or None when it doesn't exist or can't be read."""
    try:
        row = db.get_course(course_id)
    except StoreError as e:
        logger.warning("Course read failed for %s: %s", course_id, e)
        return None
    if not row:
        return None
    try:
        return Course.from_row(row)
    except SchemaError as e:
        logger.warning("Malformed course %s: %s", course_id, e)
        return None


def get_course_lessons(cache: QueryCache, course_id: str) -> list[Lesson]:
    rows = cache.get(f"lessons:{course_id}", lambda: db.get_lessons(course_id))
    lessons = parse_rows(rows, Lesson.from_row, "lessons")
    return sorted(lessons, key=lambda l: (l.sort_order, l.id))


def course_completion(session: Session, cache: QueryCache, course_id: str) -> int:
    lessons = get_course_lessons(cache, course_id)
    return completion_percent(lessons, load_progress(session).completed)


def _lesson_dict(lesson: Lesson, completed: set[str]) -> dict:
    return {
        "id": lesson.id,
        "title": lesson.title,
        "lesson_type": lesson.lesson_type,
        "sort_order": lesson.sort_order,
        "content": lesson.content,
        "video_url": lesson.video_url,
        "embed_url": embed_url(lesson.video_url) if lesson.video_url else "",
        "download_url": lesson.download_url,
        "completed": lesson.id in completed,
    }


def get_course_detail(session: Session, cache: QueryCache, course_id: str) -> dict | None:
    """Everything the lesson player needs; None when the course isn't found."""
    course = get_course(course_id)
    if course is None:
        return None

    lessons = get_course_lessons(cache, course_id)
    view = load_progress(session)
    lesson_dicts = [_lesson_dict(l, view.completed) for l in lessons]

    return {
        "course": {
            "id": course.id,
            "title": course.title,
            "description": course.description,
            "price": course.price,
            "currency": course.currency,
        },
        "lessons": lesson_dicts,
        "active_lesson": lesson_dicts[0] if lesson_dicts else None,
        "completion_percent": completion_percent(lessons, view.completed),
    }
