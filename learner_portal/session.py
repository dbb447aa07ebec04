"""Learner session: who is signed in, their profile, and onboarding state.

A Session is built when a user signs in (or presents an access token) and is
passed explicitly to every service call that needs the user. Signing out
tears it down.
"""

import logging
from dataclasses import dataclass

from learner_portal import supabase_client as db
from learner_portal.models import Profile, SchemaError
from learner_portal.supabase_client import AuthFailure, StoreError

logger = logging.getLogger(__name__)


@dataclass
class Session:
    user_id: str
    email: str
    access_token: str = ""
    profile: Profile | None = None
    closed: bool = False

    @property
    def onboarding_completed(self) -> bool:
        return bool(self.profile and self.profile.onboarding_completed)

    def summary(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "full_name": self.profile.full_name if self.profile else "",
            "onboarding_completed": self.onboarding_completed,
        }


def _load_profile(user_id: str) -> Profile | None:
    try:
        row = db.get_profile(user_id)
    except StoreError as e:
        logger.warning("Profile read failed for %s: %s", user_id, e)
        return None
    if not row:
        return None
    try:
        return Profile.from_row(row)
    except SchemaError as e:
        logger.warning("Malformed profile for %s: %s", user_id, e)
        return None


def open_session(access_token: str) -> Session:
    """Resolve an access token into a Session. Raises AuthFailure if invalid."""
    if not access_token:
        raise AuthFailure("Missing access token")
    user = db.get_user(access_token)
    if user is None:
        raise AuthFailure("Invalid or expired access token")
    session = Session(user_id=str(user.id), email=user.email or "", access_token=access_token)
    session.profile = _load_profile(session.user_id)
    return session


def sign_in(email: str, password: str) -> Session:
    response = db.sign_in(email, password)
    if not response or not response.session:
        raise AuthFailure("Invalid email or password")
    session = Session(
        user_id=str(response.user.id),
        email=response.user.email or email,
        access_token=response.session.access_token,
    )
    session.profile = _load_profile(session.user_id)
    logger.info("User %s signed in", session.user_id)
    return session


def sign_up(email: str, password: str, full_name: str = "") -> dict:
    """Register a user. Email confirmation may be required before sign-in."""
    response = db.sign_up(email, password, full_name)
    user = response.user if response else None
    if user is None:
        raise AuthFailure("Sign-up was not accepted")
    logger.info("User %s signed up", user.id)
    return {
        "user_id": str(user.id),
        "email": user.email or email,
        "confirmation_required": response.session is None,
    }


def close_session(session: Session) -> None:
    """Sign out: revoke the token and clear profile state."""
    if session.closed:
        return
    if session.access_token:
        db.sign_out(session.access_token)
    session.profile = None
    session.access_token = ""
    session.closed = True
    logger.info("User %s signed out", session.user_id)


def complete_onboarding(session: Session) -> Session:
    """Flag onboarding as done. Raises StoreError if the write is rejected."""
    db.upsert_profile(session.user_id, {"onboarding_completed": True})
    if session.profile is None:
        session.profile = Profile(user_id=session.user_id, email=session.email)
    session.profile.onboarding_completed = True
    logger.info("User %s completed onboarding", session.user_id)
    return session
