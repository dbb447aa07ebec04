"""Auth routes: sign-up, sign-in, sign-out, session, onboarding flag.

Also provides the ``current_session`` / ``onboarded_session`` dependencies
every learner route uses.
"""

import asyncio
import logging
import re

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from learner_portal import session as sessions
from learner_portal.session import Session
from learner_portal.supabase_client import AuthFailure, StoreError

logger = logging.getLogger(__name__)

router = APIRouter()

# Basic email shape check
_EMAIL_RE = re.compile(r"^[^@\s]{1,64}@[^@\s]{1,255}$")
_MAX_NAME_LEN = 200
_MIN_PASSWORD_LEN = 6


def _bearer_token(authorization: str) -> str:
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return ""


async def current_session(authorization: str = Header("")) -> Session:
    """Resolve the Authorization header into a Session or 401."""
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authorization required")
    try:
        return await asyncio.to_thread(sessions.open_session, token)
    except AuthFailure as e:
        logger.info("Rejected access token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired session")


async def onboarded_session(session: Session = Depends(current_session)) -> Session:
    """Like current_session, but onboarding must be finished."""
    if not session.onboarding_completed:
        raise HTTPException(status_code=403, detail="Onboarding required")
    return session


def _validate_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    return email


def _validate_password(password: str) -> str:
    if not password or len(password) < _MIN_PASSWORD_LEN:
        raise HTTPException(status_code=400,
                            detail=f"Password must be at least {_MIN_PASSWORD_LEN} characters")
    return password


@router.post("/auth/signup")
async def signup(request: Request):
    body = await request.json()
    email = _validate_email(body.get("email", ""))
    password = _validate_password(body.get("password", ""))
    full_name = (body.get("full_name") or "").strip()[:_MAX_NAME_LEN]
    try:
        return await asyncio.to_thread(sessions.sign_up, email, password, full_name)
    except AuthFailure as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/auth/signin")
async def signin(request: Request):
    body = await request.json()
    email = _validate_email(body.get("email", ""))
    password = body.get("password", "")
    if not password:
        raise HTTPException(status_code=400, detail="Password required")
    try:
        session = await asyncio.to_thread(sessions.sign_in, email, password)
    except AuthFailure:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"access_token": session.access_token, **session.summary()}


@router.post("/auth/signout")
async def signout(session: Session = Depends(current_session)):
    try:
        await asyncio.to_thread(sessions.close_session, session)
    except AuthFailure as e:
        raise HTTPException(status_code=400, detail=f"Sign-out failed: {e}")
    return {"status": "signed_out"}


@router.get("/auth/session")
async def session_info(session: Session = Depends(current_session)):
    return session.summary()


@router.post("/onboarding/complete")
async def onboarding_complete(session: Session = Depends(current_session)):
    """The only protected route open before onboarding is finished."""
    try:
        await asyncio.to_thread(sessions.complete_onboarding, session)
    except StoreError as e:
        logger.warning("Onboarding write failed for %s: %s", session.user_id, e)
        raise HTTPException(status_code=502, detail="Could not save your profile. Please try again.")
    return session.summary()
