"""Course routes: lesson player data, progress, mark-complete."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from learner_portal import supabase_client as db
from learner_portal.cache import QueryCache
from learner_portal.services.courses import (
    course_completion,
    get_course,
    get_course_detail,
    get_course_lessons,
)
from learner_portal.services.progress import completion_percent, load_progress, mark_complete
from learner_portal.session import Session
from learner_portal.supabase_client import StoreError
from learner_portal.routers.auth import onboarded_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/courses/{course_id}")
async def course_detail(request: Request, course_id: str,
                        session: Session = Depends(onboarded_session)):
    detail = await asyncio.to_thread(get_course_detail, session, request.app.state.cache, course_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return detail


def _course_progress(session: Session, cache: QueryCache, course_id: str) -> dict | None:
    if get_course(course_id) is None:
        return None
    return {"course_id": course_id, "completion_percent": course_completion(session, cache, course_id)}


@router.get("/courses/{course_id}/progress")
async def course_progress(request: Request, course_id: str,
                          session: Session = Depends(onboarded_session)):
    result = await asyncio.to_thread(_course_progress, session, request.app.state.cache, course_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return result


def _complete_lesson(session: Session, cache: QueryCache, lesson_id: str) -> dict:
    try:
        lesson = db.get_lesson(lesson_id)
    except StoreError as e:
        logger.warning("Lesson lookup failed for %s: %s", lesson_id, e)
        raise HTTPException(status_code=502, detail="Failed to mark lesson complete")
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")

    view = load_progress(session)
    result = mark_complete(session, lesson_id, view)
    if not result["ok"]:
        raise HTTPException(status_code=502, detail=result["message"])

    course_id = str(lesson.get("course_id", ""))
    result["course_id"] = course_id
    lessons = get_course_lessons(cache, course_id)
    result["completion_percent"] = completion_percent(lessons, view.completed)
    return result


@router.post("/lessons/{lesson_id}/complete")
async def lesson_complete(request: Request, lesson_id: str,
                          session: Session = Depends(onboarded_session)):
    return await asyncio.to_thread(_complete_lesson, session, request.app.state.cache, lesson_id)
