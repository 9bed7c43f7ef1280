"""
Progress Aggregator Unit Tests

Tests for field fallbacks, derived course progress and user stats.
"""

import logging
from datetime import datetime, timezone

import pytest

from lessonsync.schemas.dashboard import QuizSummary
from lessonsync.services import aggregator


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestNormalizeLesson:
    """Tests for lesson normalization."""

    def test_camel_case_fields(self):
        lesson = aggregator.normalize_lesson(
            {"lessonId": 5, "lessonTitle": "Psalms", "progressPercentage": "40%", "isCompleted": False},
            position=2,
        )

        assert lesson.lesson_id == "5"
        assert lesson.title == "Psalms"
        assert lesson.progress == 40.0
        assert lesson.is_completed is False
        assert lesson.position == 2

    def test_nested_progress_block(self):
        lesson = aggregator.normalize_lesson({
            "lesson": {"id": 9, "title": "Vespers"},
            "progress": {"percentage": 100, "completed": True, "last_watched_at": "2024-05-01T08:00:00"},
        })

        assert lesson.lesson_id == "9"
        assert lesson.title == "Vespers"
        assert lesson.progress == 100.0
        assert lesson.is_completed is True
        # Naive timestamps are read as UTC
        assert lesson.last_accessed_at == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("status, expected", [("watched", True), ("Completed", True), ("in_progress", False)])
    def test_status_string_fallback(self, status, expected):
        """Verify the status string decides completion when no flag exists."""
        lesson = aggregator.normalize_lesson({"id": 1, "status": status})

        assert lesson.is_completed is expected

    def test_explicit_flag_beats_status(self):
        lesson = aggregator.normalize_lesson({"id": 1, "completed": False, "status": "done"})

        assert lesson.is_completed is False

    def test_missing_and_garbage_values_degrade(self):
        lesson = aggregator.normalize_lesson({"progress": "n/a", "lastAccessedAt": "yesterday"})

        assert lesson.lesson_id is None
        assert lesson.title == ""
        assert lesson.progress == 0.0
        assert lesson.is_completed is False
        assert lesson.last_accessed_at is None

    def test_progress_is_clamped(self):
        assert aggregator.normalize_lesson({"progress": 140}).progress == 100.0
        assert aggregator.normalize_lesson({"progress": -3}).progress == 0.0

    def test_epoch_milliseconds(self):
        lesson = aggregator.normalize_lesson({"lastAccessedAt": 1714550400000})

        assert lesson.last_accessed_at == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class TestResolveNextLesson:
    """Tests for the continue link."""

    def _lessons(self, *flags):
        return [
            aggregator.normalize_lesson({"id": index + 1, "isCompleted": flag}, position=index)
            for index, flag in enumerate(flags)
        ]

    def test_first_unfinished_lesson(self):
        link = aggregator.resolve_next_lesson("7", self._lessons(True, False, False))

        assert link.lesson_id == "2"
        assert link.url == "/courses/7/lessons/2"

    def test_all_finished_points_to_first(self):
        link = aggregator.resolve_next_lesson("7", self._lessons(True, True))

        assert link.lesson_id == "1"
        assert link.url == "/courses/7/lessons/1"

    def test_no_lessons_points_to_course(self):
        link = aggregator.resolve_next_lesson("7", [])

        assert link.lesson_id is None
        assert link.url == "/courses/7"

    def test_lesson_without_id_points_to_course(self):
        lessons = [aggregator.normalize_lesson({"title": "Untracked"})]

        assert aggregator.resolve_next_lesson("7", lessons).url == "/courses/7"


class TestNormalizeCourse:
    """Tests for per-course aggregation."""

    def test_derived_from_lessons(self):
        """Verify lessons at 100 and 50 give 75% with one completed."""
        course = aggregator.normalize_course(
            {
                "courseId": 1,
                "courseTitle": "Faith",
                "lessons": [
                    {"id": 11, "progress": 100, "isCompleted": True},
                    {"id": 12, "progress": 50, "isCompleted": False},
                ],
            },
            now=NOW,
        )

        assert course.total_lessons == 2
        assert course.completed_lessons == 1
        assert course.overall_progress == 75.0
        assert course.next_lesson.lesson_id == "12"

    def test_no_lessons_is_zero_progress(self):
        course = aggregator.normalize_course({"id": 3, "title": "Empty", "lessons": []}, now=NOW)

        assert course.total_lessons == 0
        assert course.completed_lessons == 0
        assert course.overall_progress == 0.0
        assert course.next_lesson.url == "/courses/3"

    def test_explicit_values_win(self):
        course = aggregator.normalize_course(
            {
                "course_id": 2,
                "course_title": "History",
                "total_lessons": 12,
                "completed_lessons": 7,
                "overall_progress": "58.3",
                "lessons": [{"id": 1, "progress": 10}],
            },
            now=NOW,
        )

        assert course.total_lessons == 12
        assert course.completed_lessons == 7
        assert course.overall_progress == 58.3

    def test_unparseable_progress_falls_back_to_mean(self):
        course = aggregator.normalize_course(
            {"id": 4, "progress": "unknown", "lessons": [{"id": 1, "progress": 20}, {"id": 2, "progress": 40}]},
            now=NOW,
        )

        assert course.overall_progress == 30.0

    def test_explicit_total_without_lessons(self):
        course = aggregator.normalize_course({"id": 5, "totalLessons": 8}, now=NOW)

        assert course.total_lessons == 8
        assert course.overall_progress == 0.0

    def test_title_default(self):
        course = aggregator.normalize_course({"id": 6}, now=NOW)

        assert course.course_title == aggregator.DEFAULT_COURSE_TITLE
        assert course.course_description is None
        assert course.category is None
        assert course.tags == []

    def test_search_fields(self):
        course = aggregator.normalize_course(
            {
                "course": {"id": 8, "title": "Vespers", "description": " Evening hymns "},
                "category": {"name": "Music"},
                "tags": ["chant", "", 3, "Byzantine"],
            },
            now=NOW,
        )

        assert course.course_description == "Evening hymns"
        assert course.category == "Music"
        assert course.tags == ["chant", "Byzantine"]

    def test_last_accessed_fallbacks(self):
        explicit = aggregator.normalize_course({"id": 1, "lastAccessed": "2024-04-20T12:00:00Z"}, now=NOW)
        from_lessons = aggregator.normalize_course(
            {"id": 2, "lessons": [
                {"id": 1, "lastAccessedAt": "2024-05-02T09:00:00Z"},
                {"id": 2, "lastAccessedAt": "2024-05-03T09:00:00Z"},
            ]},
            now=NOW,
        )
        unseen = aggregator.normalize_course({"id": 3}, now=NOW)

        assert explicit.last_accessed == datetime(2024, 4, 20, 12, 0, tzinfo=timezone.utc)
        assert from_lessons.last_accessed == datetime(2024, 5, 3, 9, 0, tzinfo=timezone.utc)
        assert unseen.last_accessed == NOW

    def test_non_list_lessons_are_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="lessonsync"):
            course = aggregator.normalize_course({"id": 1, "lessons": "oops"}, now=NOW)

        assert course.lessons == []
        assert "expected a list" in caplog.text

    def test_malformed_lesson_entries_are_skipped(self):
        course = aggregator.normalize_course(
            {"id": 1, "lessons": [None, {"id": 2, "progress": 60}, "x"]},
            now=NOW,
        )

        assert [lesson.lesson_id for lesson in course.lessons] == ["2"]
        assert course.lessons[0].position == 0


class TestQuizzes:
    """Tests for quiz averaging."""

    def test_average_excludes_quizzes_without_maximum(self):
        quizzes = [
            aggregator.normalize_quiz({"quizId": 1, "score": 8, "maxScore": 10}),
            aggregator.normalize_quiz({"quiz_id": 2, "score": 0, "max_score": 0}),
        ]

        assert aggregator.average_quiz_score(quizzes) == 80

    def test_average_rounds_half_up(self):
        quizzes = [QuizSummary(score=1, max_score=8), QuizSummary(score=1, max_score=8)]

        # 12.5 -> 13
        assert aggregator.average_quiz_score(quizzes) == 13

    def test_no_qualifying_quiz(self):
        assert aggregator.average_quiz_score([QuizSummary(score=5)]) is None
        assert aggregator.average_quiz_score([]) is None

    @pytest.mark.parametrize("value, expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.4, 2)])
    def test_round_half_up(self, value, expected):
        assert aggregator.round_half_up(value) == expected


class TestUserStats:
    """Tests for the learner summary."""

    def test_derived_counters(self):
        courses = aggregator.aggregate_courses(
            [
                {"id": 1, "lessons": [{"id": 1, "isCompleted": True}, {"id": 2, "isCompleted": True}]},
                {"id": 2, "completedLessons": 3},
            ],
            now=NOW,
        )
        quizzes = [QuizSummary(score=9, max_score=10)]

        stats = aggregator.aggregate_user_stats(courses, quizzes)

        assert stats.courses_enrolled == 2
        assert stats.lessons_completed == 5
        assert stats.quiz_attempts == 1
        assert stats.average_quiz_score == 90
        assert stats.level == 1
        assert stats.next_level_points == 1000

    def test_explicit_stats_block(self):
        stats = aggregator.aggregate_user_stats(
            [],
            [],
            {
                "totalCourses": 4,
                "completedLessons": 17,
                "quizAttempts": 6,
                "averageScore": 77.5,
                "timeSpent": 3725,
                "studyStreak": 5,
                "totalPoints": 1250,
                "level": "Level 3",
                "nextLevelXp": 1500,
            },
        )

        assert stats.courses_enrolled == 4
        assert stats.lessons_completed == 17
        assert stats.quiz_attempts == 6
        assert stats.average_quiz_score == 78
        assert stats.total_video_watch_time == 62
        assert stats.study_streak == 5
        assert stats.total_points_earned == 1250
        assert stats.level == 3
        assert stats.next_level_points == 1500

    def test_watch_minutes_beat_time_spent(self):
        stats = aggregator.aggregate_user_stats([], [], {"totalVideoWatchTime": 40, "timeSpent": 6000})

        assert stats.total_video_watch_time == 40

    def test_quiz_average_beats_explicit_average(self):
        stats = aggregator.aggregate_user_stats([], [QuizSummary(score=1, max_score=2)], {"averageScore": 99})

        assert stats.average_quiz_score == 50

    @pytest.mark.parametrize("level, expected", [(None, 1), ("beginner", 1), (0, 1), ("4", 4), (2.9, 2)])
    def test_level_parsing(self, level, expected):
        stats = aggregator.aggregate_user_stats([], [], {"level": level})

        assert stats.level == expected


class TestAggregateDashboard:
    """Tests for whole-listing aggregation."""

    def test_mixed_listing(self, sample_listing):
        snapshot = aggregator.aggregate_dashboard(sample_listing, now=NOW)
        first, second, third = snapshot.courses

        assert first.course_id == "1"
        assert first.overall_progress == 75.0
        assert first.completed_lessons == 1
        assert first.next_lesson.url == "/courses/1/lessons/12"

        assert second.course_title == "Church History"
        assert second.overall_progress == 58.3
        assert second.next_lesson.url == "/courses/2"

        assert third.course_id == "3"
        assert third.course_title == "Liturgical Music"
        assert third.overall_progress == 0.0
        assert third.last_accessed == NOW

        assert snapshot.stats.courses_enrolled == 3
        assert snapshot.stats.lessons_completed == 8
        assert snapshot.stats.quiz_attempts == 2
        assert snapshot.stats.average_quiz_score == 80

    def test_data_wrapper_is_unwrapped(self, sample_listing):
        snapshot = aggregator.aggregate_dashboard({"success": True, "data": sample_listing}, now=NOW)

        assert len(snapshot.courses) == 3

    def test_stats_block_is_used(self):
        listing = {"courses": [], "stats": {"studyStreak": 9, "level": 2}}

        snapshot = aggregator.aggregate_dashboard(listing, now=NOW)

        assert snapshot.stats.study_streak == 9
        assert snapshot.stats.level == 2

    def test_non_mapping_listing(self, caplog):
        with caplog.at_level(logging.WARNING, logger="lessonsync"):
            snapshot = aggregator.aggregate_dashboard(["not", "an", "object"])

        assert snapshot.courses == []
        assert snapshot.stats.courses_enrolled == 0
        assert "not an object" in caplog.text

    def test_malformed_entries_are_skipped(self):
        listing = {"courses": [42, {"id": 1}], "quizzes": ["bad", {"score": 3, "maxScore": 4}]}

        snapshot = aggregator.aggregate_dashboard(listing, now=NOW)

        assert [course.course_id for course in snapshot.courses] == ["1"]
        assert snapshot.stats.quiz_attempts == 1
        assert snapshot.stats.average_quiz_score == 75
