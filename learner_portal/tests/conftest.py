"""Shared fixtures for Learner Portal tests.

Provides:
- fake_db: patches supabase_client with an in-memory fake
- session / learner: a signed-in, onboarded Session
- client: sync TestClient wired to the FastAPI app, auth resolved from fake tokens
- row factories for courses, lessons, enrollments, progress and profiles
"""

import os
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

# Set env vars before any portal imports
os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "fake-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
os.environ.setdefault("PUBLIC_URL", "https://portal.example.com")


# ---------------------------------------------------------------------------
# In-memory fake Supabase
# ---------------------------------------------------------------------------

class FakeQueryResult:
    def __init__(self, data=None):
        self.data = data or []


class FakeQueryBuilder:
    """Mimics the supabase-py query builder chain."""

    def __init__(self, store, table_name):
        self._store = store
        self._table = table_name
        self._filters = []
        self._order_col = None
        self._order_desc = False
        self._limit_val = None
        self._upsert_data = None
        self._upsert_conflict = None

    def select(self, columns="*"):
        return self

    def upsert(self, data, on_conflict=None):
        self._upsert_data = data
        self._upsert_conflict = on_conflict
        return self

    def eq(self, col, val):
        self._filters.append(("eq", col, val))
        return self

    def in_(self, col, values):
        self._filters.append(("in", col, list(values)))
        return self

    def order(self, col, desc=False):
        self._order_col = col
        self._order_desc = desc
        return self

    def limit(self, n):
        self._limit_val = n
        return self

    def _match(self, row):
        for op, col, val in self._filters:
            row_val = row.get(col)
            if op == "eq" and row_val != val:
                return False
            if op == "in" and row_val not in val:
                return False
        return True

    def execute(self):
        table = self._store[self._table]

        if self._upsert_data is not None:
            row = dict(self._upsert_data)
            if self._upsert_conflict:
                conflict_cols = [c.strip() for c in self._upsert_conflict.split(",")]
                for existing in table:
                    if all(existing.get(c) == row.get(c) for c in conflict_cols):
                        existing.update(row)
                        return FakeQueryResult(data=[existing])
            row.setdefault("id", str(uuid.uuid4()))
            table.append(row)
            return FakeQueryResult(data=[row])

        # SELECT
        rows = [r for r in table if self._match(r)]
        if self._order_col:
            rows.sort(key=lambda r: r.get(self._order_col, ""), reverse=self._order_desc)
        if self._limit_val is not None:
            rows = rows[:self._limit_val]
        return FakeQueryResult(data=rows)


class FakeDB:
    """In-memory store keyed by table name."""

    def __init__(self):
        self.store = defaultdict(list)

    def table(self, name):
        return FakeQueryBuilder(self.store, name)


@pytest.fixture
def fake_db():
    """Provides a clean in-memory DB and patches supabase_client._table."""
    db = FakeDB()

    def fake_table(name):
        return FakeQueryBuilder(db.store, name)

    with patch("learner_portal.supabase_client._table", side_effect=fake_table):
        with patch("learner_portal.supabase_client.get_client", return_value=MagicMock()):
            yield db


@pytest.fixture(autouse=True)
def _clear_checkout_attempts():
    from learner_portal.services import enrollment
    enrollment._attempts.clear()
    yield
    enrollment._attempts.clear()


@pytest.fixture
def cache():
    """A listing cache that never sleeps and never goes stale on its own."""
    from learner_portal.cache import QueryCache
    return QueryCache(stale_seconds=300, retries=2, backoff_base=0.01, sleep=lambda s: None)


USER_ID = "user-1"
TOKEN = "token-user-1"


@pytest.fixture
def session():
    from learner_portal.models import Profile
    from learner_portal.session import Session
    return Session(
        user_id=USER_ID,
        email="learner@example.com",
        access_token=TOKEN,
        profile=Profile(user_id=USER_ID, onboarding_completed=True, full_name="Ada Learner",
                        email="learner@example.com"),
    )


def _fake_user(token):
    if token == TOKEN:
        return SimpleNamespace(id=USER_ID, email="learner@example.com")
    return None


@pytest.fixture
def client(fake_db, cache):
    """Sync test client for the FastAPI app with mocked DB and auth."""
    from contextlib import asynccontextmanager

    @asynccontextmanager
    async def noop_lifespan(app):
        yield

    with patch("learner_portal.supabase_client.get_user", side_effect=_fake_user):
        from learner_portal.app import create_app
        from fastapi.testclient import TestClient

        app = create_app()
        app.router.lifespan_context = noop_lifespan
        app.state.cache = cache

        with TestClient(app) as c:
            yield c


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_course(week=1, **overrides):
    defaults = {
        "id": f"course-{week}",
        "title": f"Week {week}",
        "description": "",
        "short_description": "",
        "price": 5000,
        "currency": "NGN",
        "is_published": True,
        "image_url": "",
        "created_at": (_BASE_TIME + timedelta(days=week)).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_lesson(course_id="course-1", sort_order=1, **overrides):
    defaults = {
        "id": f"{course_id}-lesson-{sort_order}",
        "course_id": course_id,
        "title": f"Lesson {sort_order}",
        "lesson_type": "text",
        "content": "",
        "video_url": "",
        "download_url": "",
        "sort_order": sort_order,
    }
    defaults.update(overrides)
    return defaults


def make_enrollment(course_id="course-1", user_id=USER_ID, **overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "course_id": course_id,
        "payment_status": "completed",
        "payment_provider": "paystack",
        "payment_reference": "ae-test",
        "amount_paid": 5000,
        "enrollment_date": datetime.now(timezone.utc).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_progress(lesson_id, user_id=USER_ID, **overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "lesson_id": lesson_id,
        "completed": True,
        "completed_at": datetime.now(timezone.utc).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_profile(user_id=USER_ID, **overrides):
    defaults = {
        "user_id": user_id,
        "full_name": "Ada Learner",
        "email": "learner@example.com",
        "phone": "",
        "onboarding_completed": True,
    }
    defaults.update(overrides)
    return defaults
