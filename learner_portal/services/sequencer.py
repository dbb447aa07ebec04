"""Week sequencer: projects published courses into numbered, lockable weeks.

Rules:
  - Courses are ordered by created_at; week number is the 1-based position.
  - Week 1 is always open (the trial week).
  - Any later week opens with a completed enrollment for its course.
  - Week 2 also opens when its course is free or when week 1 is fully
    completed. Weeks 3+ open only through enrollment.
  - A week with no lessons is never completed, so it can't unlock week 2.
"""

import logging
from collections import defaultdict

from learner_portal import supabase_client as db
from learner_portal.cache import QueryCache
from learner_portal.models import Course, Enrollment, Lesson, Week, parse_rows
from learner_portal.services.progress import is_fully_completed, load_progress
from learner_portal.session import Session
from learner_portal.supabase_client import StoreError

logger = logging.getLogger(__name__)

NO_COURSES_MESSAGE = "No courses available yet. Check back soon!"
ENROLL_TO_UNLOCK = "Enroll to unlock"
COURSES_KEY = "courses:published"


def _week_order(course: Course) -> tuple:
    return (course.created_at, course.id)


def build_weeks(
    courses: list[Course],
    lessons: list[Lesson],
    enrollments: list[Enrollment],
    completed: set[str],
) -> list[Week]:
    """Pure access decision for every week. Never raises on empty inputs."""
    enrolled = {e.course_id for e in enrollments if e.is_completed}

    by_course: dict[str, list[Lesson]] = defaultdict(list)
    for lesson in lessons:
        by_course[lesson.course_id].append(lesson)

    weeks: list[Week] = []
    for number, course in enumerate(sorted(courses, key=_week_order), start=1):
        course_lessons = sorted(by_course.get(course.id, []), key=lambda l: (l.sort_order, l.id))
        is_enrolled = course.id in enrolled

        if number == 1 or is_enrolled:
            can_access = True
        elif number == 2:
            can_access = course.is_free or weeks[0].is_completed
        else:
            can_access = False

        if can_access:
            reason = ""
        elif number == 2:
            reason = f"Complete Week {number - 1} to unlock"
        else:
            reason = ENROLL_TO_UNLOCK

        weeks.append(Week(
            number=number,
            course=course,
            lessons=course_lessons,
            is_locked=not can_access,
            is_enrolled=is_enrolled,
            is_completed=is_fully_completed(course_lessons, completed),
            lock_reason=reason,
        ))
    return weeks


def load_courses(cache: QueryCache) -> list[Course]:
    rows = cache.get(COURSES_KEY, db.get_published_courses)
    return parse_rows(rows, Course.from_row, "courses")


def refresh_courses(cache: QueryCache) -> int:
    """Reload the published catalog ahead of the stale window. Returns the course count."""
    rows = cache.refresh(COURSES_KEY, db.get_published_courses)
    return len(rows)


def load_lessons(cache: QueryCache, course_ids: list[str]) -> list[Lesson]:
    if not course_ids:
        return []
    key = "lessons:" + ",".join(sorted(course_ids))
    rows = cache.get(key, lambda: db.get_lessons_for_courses(course_ids))
    return parse_rows(rows, Lesson.from_row, "lessons")


def load_enrollments(session: Session) -> list[Enrollment]:
    try:
        rows = db.get_enrollments(session.user_id)
    except StoreError as e:
        logger.warning("Enrollment read failed for %s: %s", session.user_id, e)
        rows = []
    return parse_rows(rows, Enrollment.from_row, "enrollments")


def get_weeks(session: Session, cache: QueryCache) -> list[Week]:
    """Ordered weeks with lock state for the signed-in learner."""
    courses = load_courses(cache)
    if not courses:
        return []
    lessons = load_lessons(cache, [c.id for c in courses])
    enrollments = load_enrollments(session)
    view = load_progress(session)
    return build_weeks(courses, lessons, enrollments, view.completed)
