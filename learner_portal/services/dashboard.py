"""Dashboard aggregation: profile meter, course cards and the week list."""

from learner_portal.cache import QueryCache
from learner_portal.services.sequencer import (
    NO_COURSES_MESSAGE,
    build_weeks,
    load_courses,
    load_enrollments,
    load_lessons,
)
from learner_portal.services.progress import load_progress
from learner_portal.session import Session


def get_dashboard(session: Session, cache: QueryCache) -> dict:
    courses = load_courses(cache)
    enrollments = load_enrollments(session)
    enrolled = {e.course_id for e in enrollments if e.is_completed}

    weeks = []
    if courses:
        lessons = load_lessons(cache, [c.id for c in courses])
        weeks = build_weeks(courses, lessons, enrollments, load_progress(session).completed)

    return {
        "user": session.summary(),
        "profile_completion": session.profile.completion() if session.profile else 0,
        "courses": [
            {
                "id": w.course.id,
                "title": w.course.title,
                "short_description": w.course.short_description,
                "image_url": w.course.image_url,
                "price": w.course.price,
                "currency": w.course.currency,
                "is_enrolled": w.course.id in enrolled,
            }
            for w in weeks
        ],
        "weeks": [w.to_dict() for w in weeks],
        "message": "" if weeks else NO_COURSES_MESSAGE,
    }
