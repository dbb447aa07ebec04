"""Quiz routes: final assessment attempt for a course."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request

from learner_portal.services.courses import get_course
from learner_portal.services.quiz import QuizAttempt, QuizError
from learner_portal.session import Session
from learner_portal.routers.auth import onboarded_session

router = APIRouter(prefix="/api/courses/{course_id}/quiz")


def _attempt(request: Request, session: Session, course_id: str) -> QuizAttempt:
    attempt = request.app.state.quizzes.get(session.user_id, course_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="No quiz in progress")
    return attempt


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _payload(attempt: QuizAttempt, course_id: str) -> dict:
    state = attempt.state()
    state["course_id"] = course_id
    if attempt.is_complete:
        state["review"] = attempt.review()
    return state


@router.post("")
async def start_quiz(request: Request, course_id: str,
                     session: Session = Depends(onboarded_session)):
    """Open the quiz page: always a fresh attempt."""
    course = await asyncio.to_thread(get_course, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    attempt = request.app.state.quizzes.start(session.user_id, course_id)
    payload = _payload(attempt, course_id)
    payload["title"] = f"{course.title} - Final Assessment"
    return payload


@router.get("")
async def quiz_state(request: Request, course_id: str,
                     session: Session = Depends(onboarded_session)):
    return _payload(_attempt(request, session, course_id), course_id)


@router.post("/select")
async def select_answer(request: Request, course_id: str,
                        session: Session = Depends(onboarded_session)):
    body = await _json_body(request)
    attempt = _attempt(request, session, course_id)
    try:
        accepted = attempt.select(int(body.get("index", -1)))
    except (QuizError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"accepted": accepted, **_payload(attempt, course_id)}


@router.post("/submit")
async def submit_answer(request: Request, course_id: str,
                        session: Session = Depends(onboarded_session)):
    """Submit the pending answer. An ``index`` in the body selects it first."""
    attempt = _attempt(request, session, course_id)
    body = await _json_body(request)
    try:
        if body.get("index") is not None:
            attempt.select(int(body["index"]))
        result = attempt.submit()
    except (QuizError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {**result, **_payload(attempt, course_id)}


@router.post("/next")
async def next_question(request: Request, course_id: str,
                        session: Session = Depends(onboarded_session)):
    attempt = _attempt(request, session, course_id)
    try:
        attempt.next()
    except QuizError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _payload(attempt, course_id)


@router.post("/previous")
async def previous_question(request: Request, course_id: str,
                            session: Session = Depends(onboarded_session)):
    attempt = _attempt(request, session, course_id)
    attempt.previous()
    return _payload(attempt, course_id)


@router.post("/retake")
async def retake_quiz(request: Request, course_id: str,
                      session: Session = Depends(onboarded_session)):
    attempt = _attempt(request, session, course_id)
    attempt.retake()
    return _payload(attempt, course_id)
