"""Supabase connection and query helpers for the course platform tables."""

import threading
from datetime import datetime, timezone

import httpx
from supabase import AuthError, Client, PostgrestAPIError, create_client

from learner_portal.config import SUPABASE_SERVICE_KEY, SUPABASE_URL

_client: Client | None = None
_client_lock = threading.Lock()


class StoreError(Exception):
    """A record-store call failed (network, permission, validation)."""


class AuthFailure(Exception):
    """Supabase Auth rejected a sign-in, sign-up or token."""


def get_client() -> Client:
    """Return the Supabase client singleton (thread-safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
                    raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
                _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _client


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def _table(name: str):
    """Return a table query builder."""
    return get_client().table(name)


def _execute(q, action: str, table: str):
    """Run a query, converting client failures into StoreError."""
    try:
        return q.execute()
    except (PostgrestAPIError, httpx.HTTPError) as e:
        raise StoreError(f"{action} on {table} failed: {e}") from e


def upsert(table: str, data: dict, on_conflict: str = "") -> dict:
    """Upsert a row and return it."""
    if on_conflict:
        q = _table(table).upsert(data, on_conflict=on_conflict)
    else:
        q = _table(table).upsert(data)
    result = _execute(q, "upsert", table)
    return result.data[0] if result.data else {}


def select(table: str, columns: str = "*", match: dict | None = None,
           in_: tuple[str, list] | None = None,
           order: str | None = None, order_desc: bool = False,
           limit: int | None = None) -> list[dict]:
    """Select rows with optional filtering and ordering."""
    q = _table(table).select(columns)
    if match:
        for k, v in match.items():
            q = q.eq(k, v)
    if in_:
        col, values = in_
        q = q.in_(col, list(values))
    if order:
        q = q.order(order, desc=order_desc)
    if limit:
        q = q.limit(limit)
    result = _execute(q, "select", table)
    return result.data or []


def select_one(table: str, columns: str = "*", match: dict | None = None) -> dict | None:
    """Select a single row. Missing rows are None, never an error."""
    rows = select(table, columns, match, limit=1)
    return rows[0] if rows else None


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------

def get_published_courses() -> list[dict]:
    """Published courses in week order."""
    return select("courses", match={"is_published": True}, order="created_at")


def get_course(course_id: str) -> dict | None:
    return select_one("courses", match={"id": course_id})


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------

def get_lessons(course_id: str) -> list[dict]:
    """Lessons of one course, by sort_order."""
    return select("lessons", match={"course_id": course_id}, order="sort_order")


def get_lessons_for_courses(course_ids: list[str]) -> list[dict]:
    """Lessons of several courses in one round trip."""
    if not course_ids:
        return []
    return select("lessons", in_=("course_id", course_ids), order="sort_order")


def get_lesson(lesson_id: str) -> dict | None:
    return select_one("lessons", match={"id": lesson_id})


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------

def get_enrollments(user_id: str) -> list[dict]:
    return select("enrollments", match={"user_id": user_id})


def get_enrollment(user_id: str, course_id: str) -> dict | None:
    return select_one("enrollments", match={"user_id": user_id, "course_id": course_id})


def upsert_enrollment(data: dict) -> dict:
    """Upsert an enrollment by (user_id, course_id)."""
    return upsert("enrollments", data, on_conflict="user_id,course_id")


# ---------------------------------------------------------------------------
# Lesson progress
# ---------------------------------------------------------------------------

def get_progress(user_id: str) -> list[dict]:
    return select("lesson_progress", match={"user_id": user_id})


def upsert_progress(user_id: str, lesson_id: str) -> dict:
    """Mark a lesson complete, keyed on (user_id, lesson_id)."""
    return upsert("lesson_progress", {
        "user_id": user_id,
        "lesson_id": lesson_id,
        "completed": True,
        "completed_at": datetime.now(timezone.utc).isoformat(),
    }, on_conflict="user_id,lesson_id")


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_profile(user_id: str) -> dict | None:
    return select_one("profiles", match={"user_id": user_id})


def upsert_profile(user_id: str, data: dict) -> dict:
    """Upsert a profile by user_id."""
    row = {**data, "user_id": user_id, "updated_at": datetime.now(timezone.utc).isoformat()}
    return upsert("profiles", row, on_conflict="user_id")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def _auth_client() -> Client:
    """A throwaway client so user sessions never land on the shared one."""
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)


def sign_up(email: str, password: str, full_name: str = ""):
    """Register a user; full_name goes into the auth user metadata."""
    try:
        return _auth_client().auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": {"full_name": full_name}},
        })
    except AuthError as e:
        raise AuthFailure(str(e)) from e


def sign_in(email: str, password: str):
    """Password sign-in. Returns the auth response (user + session)."""
    try:
        return _auth_client().auth.sign_in_with_password({"email": email, "password": password})
    except AuthError as e:
        raise AuthFailure(str(e)) from e


def get_user(access_token: str):
    """Resolve an access token to its auth user, or None."""
    try:
        response = get_client().auth.get_user(access_token)
    except AuthError as e:
        raise AuthFailure(str(e)) from e
    return response.user if response else None


def sign_out(access_token: str) -> None:
    """Revoke the session behind an access token."""
    try:
        get_client().auth.admin.sign_out(access_token)
    except AuthError as e:
        raise AuthFailure(str(e)) from e
