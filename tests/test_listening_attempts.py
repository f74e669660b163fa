"""
Tests for attempt lifecycle, review and the auto-submit sweep (in-memory store).
"""

from datetime import datetime, timedelta, timezone

import pytest

from bandscore_app.core.error_handlers import (
    AttemptClosedError,
    DataIntegrityError,
    NotFoundError,
    ValidationError,
)
from bandscore_app.modules.listening.services.attempt_service import AttemptService
from bandscore_app.modules.listening.services.auto_submit import auto_submit_expired
from bandscore_app.modules.listening.services.review_service import ReviewService
from bandscore_app.modules.listening.services.submission_service import SubmissionOrchestrator

from conftest import make_questions

USER_ID = 3


@pytest.fixture
def seeded(store):
    store.add_test(1, make_questions([
        (1, 'mcq', 'A'),
        (2, 'gap', ['colour', 'color']),
        (11, 'match', [['1', 'A'], ['2', 'B']]),
    ]), slug='cambridge-17-1')
    return store


class TestStartAttempt:

    def test_by_slug(self, seeded):
        attempt = AttemptService(seeded).start_attempt(USER_ID, test_slug='cambridge-17-1')
        assert attempt.status == 'in_progress'
        assert attempt.test_id == 1
        assert attempt.user_id == USER_ID

    def test_unknown_test(self, seeded):
        with pytest.raises(NotFoundError):
            AttemptService(seeded).start_attempt(USER_ID, test_id=99)

    def test_test_without_questions(self, store):
        store.add_test(2, [])
        with pytest.raises(DataIntegrityError):
            AttemptService(store).start_attempt(USER_ID, test_id=2)


class TestAutosave:

    def test_saves_answers_and_duration(self, seeded):
        seeded.add_attempt(5, USER_ID, 1)

        saved = AttemptService(seeded).autosave(
            USER_ID, 5, [{'questionNumber': 1, 'value': 'A'}, {'questionId': 102, 'value': 'color'}],
            duration_seconds=120,
        )

        assert saved == 2
        assert seeded.answers[5] == {101: 'A', 102: 'color'}
        assert seeded.attempts[5].duration_seconds == 120

    def test_rejected_once_terminal(self, seeded):
        seeded.add_attempt(5, USER_ID, 1, status='completed', raw_score=0, total_questions=3, band_score=4.0)

        with pytest.raises(AttemptClosedError) as excinfo:
            AttemptService(seeded).autosave(USER_ID, 5, [{'questionId': 101, 'value': 'A'}])

        assert excinfo.value.status_code == 409
        assert 5 not in seeded.answers

    def test_other_users_attempt(self, seeded):
        seeded.add_attempt(5, USER_ID + 1, 1)
        with pytest.raises(NotFoundError):
            AttemptService(seeded).autosave(USER_ID, 5, [])


class TestReview:

    def _submit(self, store):
        store.add_attempt(5, USER_ID, 1, duration_seconds=600)
        SubmissionOrchestrator(store).submit(USER_ID, 5, answers=[
            {'questionId': 101, 'value': 'A'},
            {'questionId': 102, 'value': 'colr'},
            {'questionId': 111, 'value': [['2', 'B'], ['1', 'A']]},
        ])

    def test_review_reveals_keys_after_submit(self, seeded):
        self._submit(seeded)

        review = ReviewService(seeded).get_attempt_review(USER_ID, 5)

        assert review['attempt']['rawScore'] == 2
        rows = {row['questionNumber']: row for row in review['questions']}
        assert rows[1]['isCorrect'] is True
        assert rows[2]['isCorrect'] is False
        assert rows[2]['correctAnswer'] == ['colour', 'color']
        assert rows[11]['sectionNumber'] == 2

    def test_review_hides_keys_while_in_progress(self, seeded):
        seeded.add_attempt(5, USER_ID, 1)
        review = ReviewService(seeded).get_attempt_review(USER_ID, 5)
        assert all('correctAnswer' not in row for row in review['questions'])

    def test_question_type_breakdown(self, seeded):
        self._submit(seeded)
        breakdown = ReviewService(seeded).question_type_breakdown(USER_ID, 5)
        assert breakdown == {
            'mcq': {'correct': 1, 'total': 1},
            'gap': {'correct': 0, 'total': 1},
            'match': {'correct': 1, 'total': 1},
        }

    def test_breakdown_requires_submitted_attempt(self, seeded):
        seeded.add_attempt(5, USER_ID, 1)
        with pytest.raises(ValidationError):
            ReviewService(seeded).question_type_breakdown(USER_ID, 5)

    def test_user_summary(self, seeded):
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        seeded.add_attempt(1, USER_ID, 1, status='completed', completed_at=now - timedelta(days=2),
                           raw_score=30, total_questions=40, band_score=7.0, duration_seconds=1700)
        seeded.add_attempt(2, USER_ID, 1, status='auto_submitted', completed_at=now,
                           raw_score=20, total_questions=40, band_score=5.5, duration_seconds=1800)
        seeded.add_attempt(3, USER_ID, 1)
        seeded.add_attempt(4, USER_ID + 1, 1, status='completed', completed_at=now, band_score=9.0)

        summary = ReviewService(seeded).get_user_summary(USER_ID)

        assert summary.total_attempts == 2
        assert summary.average_band == 6.25
        assert summary.best_band == 7.0
        assert summary.total_time_seconds == 3500
        assert [a.attempt_id for a in summary.recent_attempts] == [2, 1]

    def test_empty_summary(self, store):
        summary = ReviewService(store).get_user_summary(USER_ID)
        assert summary.to_dict()['averageBand'] is None
        assert summary.total_attempts == 0


class TestAutoSubmitSweep:

    def test_submits_only_expired_attempts(self, seeded):
        now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        seeded.add_attempt(1, USER_ID, 1, started_at=now - timedelta(minutes=45))
        seeded.add_attempt(2, USER_ID, 1, started_at=now - timedelta(minutes=5))
        seeded.answers[1] = {101: 'A'}

        submitted = auto_submit_expired(seeded, now=now, grace_seconds=30)

        assert submitted == [1]
        assert seeded.attempts[1].status == 'auto_submitted'
        assert seeded.attempts[1].raw_score == 1
        assert seeded.attempts[2].status == 'in_progress'

    def test_one_failure_does_not_stop_the_sweep(self, seeded):
        now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        seeded.add_test(2, make_questions([(1, 'essay', 'x')]))
        seeded.add_attempt(1, USER_ID, 2, started_at=now - timedelta(hours=1))
        seeded.add_attempt(2, USER_ID, 1, started_at=now - timedelta(hours=1))

        submitted = auto_submit_expired(seeded, now=now)

        assert submitted == [2]
        assert seeded.attempts[1].status == 'in_progress'
