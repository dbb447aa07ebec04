"""Tests for row validation at the store boundary."""

import pytest

from learner_portal.tests.conftest import make_course, make_enrollment, make_lesson, make_profile


class TestCourse:
    def test_parses_numeric_string_price(self):
        from learner_portal.models import Course
        course = Course.from_row(make_course(1, price="2500.00"))
        assert course.price == 2500.0
        assert not course.is_free

    def test_zero_price_is_free(self):
        from learner_portal.models import Course
        assert Course.from_row(make_course(1, price=0)).is_free

    def test_negative_price_rejected(self):
        from learner_portal.models import Course, SchemaError
        with pytest.raises(SchemaError):
            Course.from_row(make_course(1, price=-1))

    def test_missing_price_rejected(self):
        from learner_portal.models import Course, SchemaError
        row = make_course(1)
        del row["price"]
        with pytest.raises(SchemaError):
            Course.from_row(row)

    def test_null_text_becomes_empty(self):
        from learner_portal.models import Course
        course = Course.from_row(make_course(1, description=None, currency=None))
        assert course.description == ""
        assert course.currency == "NGN"


class TestLesson:
    def test_unknown_type_rejected(self):
        from learner_portal.models import Lesson, SchemaError
        with pytest.raises(SchemaError):
            Lesson.from_row(make_lesson(lesson_type="podcast"))

    def test_missing_course_rejected(self):
        from learner_portal.models import Lesson, SchemaError
        with pytest.raises(SchemaError):
            Lesson.from_row(make_lesson(course_id=None))

    def test_sort_order_defaults_to_zero(self):
        from learner_portal.models import Lesson
        assert Lesson.from_row(make_lesson(sort_order=None)).sort_order == 0


class TestEnrollment:
    def test_unknown_status_rejected(self):
        from learner_portal.models import Enrollment, SchemaError
        with pytest.raises(SchemaError):
            Enrollment.from_row(make_enrollment(payment_status="refunded"))

    def test_completed(self):
        from learner_portal.models import Enrollment
        assert Enrollment.from_row(make_enrollment()).is_completed


class TestProfile:
    def test_string_flag(self):
        from learner_portal.models import Profile
        assert Profile.from_row(make_profile(onboarding_completed="true")).onboarding_completed
        assert not Profile.from_row(make_profile(onboarding_completed=None)).onboarding_completed

    def test_completion_meter(self):
        from learner_portal.models import Profile
        assert Profile.from_row(make_profile(phone="")).completion() == 66
        assert Profile.from_row(make_profile(phone="+234")).completion() == 100
        assert Profile(user_id="u").completion() == 0


class TestParseRows:
    def test_skips_bad_rows(self):
        from learner_portal.models import Course, parse_rows
        rows = [make_course(1), make_course(2, price="free"), make_course(3)]
        parsed = parse_rows(rows, Course.from_row, "courses")
        assert [c.id for c in parsed] == ["course-1", "course-3"]
