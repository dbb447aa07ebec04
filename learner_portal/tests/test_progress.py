"""Tests for lesson progress: completion marks and percentages."""

from unittest.mock import patch

from learner_portal.tests.conftest import make_course, make_lesson, make_progress


def _lessons(course_id, n):
    from learner_portal.models import Lesson
    return [Lesson.from_row(make_lesson(course_id, i)) for i in range(1, n + 1)]


class TestCompletionPercent:
    def test_no_lessons_is_zero(self):
        from learner_portal.services.progress import completion_percent
        assert completion_percent([], {"anything"}) == 0

    def test_rounds_to_nearest(self):
        from learner_portal.services.progress import completion_percent
        lessons = _lessons("course-1", 3)
        assert completion_percent(lessons, {"course-1-lesson-1"}) == 33
        assert completion_percent(lessons, {"course-1-lesson-1", "course-1-lesson-2"}) == 67

    def test_all_done_is_hundred(self):
        from learner_portal.services.progress import completion_percent
        lessons = _lessons("course-1", 2)
        assert completion_percent(lessons, {"course-1-lesson-1", "course-1-lesson-2"}) == 100

    def test_only_counts_this_course(self):
        from learner_portal.services.progress import completion_percent
        lessons = _lessons("course-1", 2)
        completed = {"course-2-lesson-1", "course-2-lesson-2", "course-1-lesson-1"}
        assert completion_percent(lessons, completed) == 50

    def test_fully_completed_needs_lessons(self):
        from learner_portal.services.progress import is_fully_completed
        assert is_fully_completed([], set()) is False
        assert is_fully_completed(_lessons("c", 1), {"c-lesson-1"}) is True


class TestMarkComplete:
    def test_writes_progress_row(self, fake_db, session):
        from learner_portal.services.progress import mark_complete
        result = mark_complete(session, "course-1-lesson-1")
        assert result["ok"] is True
        assert result["message"] == "Lesson marked as complete!"
        rows = fake_db.store["lesson_progress"]
        assert len(rows) == 1
        assert rows[0]["user_id"] == session.user_id
        assert rows[0]["completed"] is True

    def test_is_idempotent(self, fake_db, session):
        from learner_portal.services.progress import load_progress, mark_complete
        mark_complete(session, "course-1-lesson-1")
        mark_complete(session, "course-1-lesson-1")
        assert len(fake_db.store["lesson_progress"]) == 1
        assert load_progress(session).completed == {"course-1-lesson-1"}

    def test_updates_view_on_success(self, fake_db, session):
        from learner_portal.services.progress import load_progress, mark_complete
        view = load_progress(session)
        mark_complete(session, "course-1-lesson-2", view)
        assert view.is_completed("course-1-lesson-2")

    def test_failed_write_leaves_view_untouched(self, fake_db, session):
        from learner_portal.services.progress import load_progress, mark_complete
        from learner_portal.supabase_client import StoreError
        view = load_progress(session)
        with patch("learner_portal.supabase_client.upsert_progress", side_effect=StoreError("boom")):
            result = mark_complete(session, "course-1-lesson-1", view)
        assert result["ok"] is False
        assert result["message"] == "Failed to mark lesson complete"
        assert view.completed == set()


class TestLoadProgress:
    def test_ignores_incomplete_rows(self, fake_db, session):
        from learner_portal.services.progress import load_progress
        fake_db.store["lesson_progress"].extend([
            make_progress("a"),
            make_progress("b", completed=False),
            make_progress("c", user_id="other"),
        ])
        assert load_progress(session).completed == {"a"}

    def test_read_failure_gives_empty_view(self, fake_db, session):
        from learner_portal.services.progress import load_progress
        from learner_portal.supabase_client import StoreError
        with patch("learner_portal.supabase_client.get_progress", side_effect=StoreError("down")):
            view = load_progress(session)
        assert view.completed == set()


class TestCourseDetail:
    def test_lessons_ordered_with_completion(self, fake_db, cache, session):
        from learner_portal.services.courses import get_course_detail
        fake_db.store["courses"].append(make_course(1))
        fake_db.store["lessons"].extend([
            make_lesson("course-1", 2, video_url="https://youtu.be/dQw4w9WgXcQ"),
            make_lesson("course-1", 1),
        ])
        fake_db.store["lesson_progress"].append(make_progress("course-1-lesson-1"))

        detail = get_course_detail(session, cache, "course-1")

        assert [l["sort_order"] for l in detail["lessons"]] == [1, 2]
        assert detail["active_lesson"]["id"] == "course-1-lesson-1"
        assert detail["lessons"][0]["completed"] is True
        assert detail["lessons"][1]["embed_url"] == "https://www.youtube.com/embed/dQw4w9WgXcQ"
        assert detail["completion_percent"] == 50

    def test_missing_course_is_none(self, fake_db, cache, session):
        from learner_portal.services.courses import get_course_detail
        assert get_course_detail(session, cache, "nope") is None

    def test_course_without_lessons(self, fake_db, cache, session):
        from learner_portal.services.courses import get_course_detail
        fake_db.store["courses"].append(make_course(1))
        detail = get_course_detail(session, cache, "course-1")
        assert detail["lessons"] == []
        assert detail["active_lesson"] is None
        assert detail["completion_percent"] == 0


class TestEmbedUrl:
    def test_watch_link(self):
        from learner_portal.services.courses import embed_url
        assert embed_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ") == \
            "https://www.youtube.com/embed/dQw4w9WgXcQ"

    def test_other_links_unchanged(self):
        from learner_portal.services.courses import embed_url
        assert embed_url("https://vimeo.com/12345") == "https://vimeo.com/12345"
