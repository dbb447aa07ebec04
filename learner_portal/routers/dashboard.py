"""Dashboard routes: course cards, profile meter, week lock states."""

import asyncio

from fastapi import APIRouter, Depends, Request

from learner_portal.services.dashboard import get_dashboard
from learner_portal.services.sequencer import NO_COURSES_MESSAGE, get_weeks
from learner_portal.session import Session
from learner_portal.routers.auth import onboarded_session

router = APIRouter(prefix="/api")


@router.get("/dashboard")
async def dashboard(request: Request, session: Session = Depends(onboarded_session)):
    return await asyncio.to_thread(get_dashboard, session, request.app.state.cache)


@router.get("/weeks")
async def weeks(request: Request, session: Session = Depends(onboarded_session)):
    """Ordered weeks with isLocked / isEnrolled for the curriculum view."""
    result = await asyncio.to_thread(get_weeks, session, request.app.state.cache)
    return {
        "weeks": [w.to_dict() for w in result],
        "message": "" if result else NO_COURSES_MESSAGE,
    }
