import dataclasses
import os
import sys
import tempfile
from datetime import datetime, timezone

import pytest
from flask import g

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bandscore_app import create_app, db
from bandscore_app.core.config import Config
from bandscore_app.core.error_handlers import StorageError
from bandscore_app.models import ListeningQuestion, ListeningTest, User
from bandscore_app.modules.listening.logics.question_types import section_for_question_number
from bandscore_app.modules.listening.schemas import (
    AnswerRecordDTO,
    AttemptDTO,
    QuestionDTO,
    TestDTO,
)
from bandscore_app.modules.listening.services.attempt_store import AttemptStore


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    WTF_CSRF_ENABLED = False
    LOG_DIR = os.path.join(tempfile.gettempdir(), 'bandscore-test-logs')
    LISTENING_AUTO_SUBMIT_ENABLED = False


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def login_client(client, user_id):
    with client.session_transaction() as session:
        session['_user_id'] = str(user_id)
        session['_fresh'] = True
    # The app fixture keeps one app context pushed, so Flask-Login's cached
    # user on ``g`` would otherwise leak across requests.
    g.pop('_login_user', None)


@pytest.fixture
def login(client):
    def _login(user_id):
        login_client(client, user_id)
        return client
    return _login


@pytest.fixture
def make_user(app):
    def _make_user(username='candidate', role=User.ROLE_USER):
        user = User(username=username, email=f'{username}@example.com', user_role=role)
        user.set_password('password')
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_listening_test(app):
    """Create a test from ``[(number, type, answer_key), ...]``."""
    def _make_test(questions, slug='practice-1', duration_seconds=1800):
        test = ListeningTest(slug=slug, title=slug.replace('-', ' ').title(), duration_seconds=duration_seconds)
        db.session.add(test)
        db.session.flush()
        for number, question_type, answer_key in questions:
            db.session.add(ListeningQuestion(
                test_id=test.test_id,
                question_number=number,
                section_number=section_for_question_number(number),
                question_type=question_type,
                answer_key=answer_key,
            ))
        db.session.commit()
        return test
    return _make_test


# ── In-memory store ──────────────────────────────────────────────────


def make_questions(rows, first_id=100):
    """Build QuestionDTOs from ``[(number, type, answer_key), ...]``."""
    return [
        QuestionDTO(
            question_id=first_id + number,
            question_number=number,
            section_number=section_for_question_number(number),
            question_type=question_type,
            answer_key=answer_key,
        )
        for number, question_type, answer_key in rows
    ]


class FakeAttemptStore(AttemptStore):
    """
    Dict-backed store with the same staging semantics as the SQL one:
    answers are pending until ``commit`` or a successful ``update_attempt``.
    """

    def __init__(self):
        self.tests = {}
        self.questions = {}
        self.attempts = {}
        self.answers = {}
        self.records = {}
        self.pending = {}
        self.commits = 0
        self.discards = 0
        self.update_calls = 0
        self.fail_on = set()
        # Called once right before the next compare-and-swap
        self.before_update = None
        self._next_attempt_id = 1

    # helpers for tests

    def add_test(self, test_id, questions, duration_seconds=1800, slug=None):
        self.tests[test_id] = TestDTO(
            test_id=test_id,
            slug=slug or f'test-{test_id}',
            title=f'Test {test_id}',
            duration_seconds=duration_seconds,
        )
        self.questions[test_id] = list(questions)

    def add_attempt(self, attempt_id, user_id, test_id, status='in_progress', started_at=None, **fields):
        self.attempts[attempt_id] = AttemptDTO(
            attempt_id=attempt_id,
            user_id=user_id,
            test_id=test_id,
            status=status,
            started_at=started_at or datetime.now(timezone.utc),
            **fields,
        )
        self._next_attempt_id = max(self._next_attempt_id, attempt_id + 1)
        return self.attempts[attempt_id]

    def _check(self, operation):
        if operation in self.fail_on:
            raise StorageError(f'Storage failure during {operation}', operation=operation)

    # AttemptStore

    def get_test(self, test_id):
        self._check('get_test')
        return self.tests.get(test_id)

    def find_test(self, test_id=None, slug=None):
        if test_id is not None:
            return self.get_test(test_id)
        return next((t for t in self.tests.values() if t.slug == slug), None)

    def get_questions(self, test_id):
        self._check('get_questions')
        return sorted(self.questions.get(test_id, []), key=lambda q: q.question_number)

    def get_attempt(self, attempt_id):
        self._check('get_attempt')
        attempt = self.attempts.get(attempt_id)
        return dataclasses.replace(attempt) if attempt else None

    def create_attempt(self, user_id, test_id):
        self._check('create_attempt')
        return self.add_attempt(self._next_attempt_id, user_id, test_id)

    def update_attempt(self, attempt_id, user_id, patch, outcomes=None, expected_status='in_progress'):
        self.update_calls += 1
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook(self)
        self._check('update_attempt')

        attempt = self.attempts.get(attempt_id)
        if attempt is None or attempt.user_id != user_id or attempt.status != expected_status:
            self.discard()
            return False

        self.attempts[attempt_id] = dataclasses.replace(attempt, **patch)
        self._flush_pending()
        for question_id, outcome in (outcomes or {}).items():
            record = self.records.get(attempt_id, {}).get(question_id)
            if record is not None:
                record.normalized_value = outcome.normalized_value
                record.is_correct = outcome.is_correct
        self.commits += 1
        return True

    def set_duration(self, attempt_id, user_id, duration_seconds):
        self._check('set_duration')
        attempt = self.attempts.get(attempt_id)
        if attempt is None or attempt.user_id != user_id or attempt.is_terminal:
            return False
        self.attempts[attempt_id] = dataclasses.replace(attempt, duration_seconds=duration_seconds)
        return True

    def list_attempts(self, user_id, terminal_only=True, limit=None):
        attempts = [
            a for a in self.attempts.values()
            if a.user_id == user_id and (a.is_terminal or not terminal_only)
        ]
        attempts.sort(key=lambda a: (a.completed_at or datetime.min.replace(tzinfo=timezone.utc), a.attempt_id), reverse=True)
        return attempts[:limit] if limit else attempts

    def list_expired_attempts(self, now, grace_seconds=0):
        expired = []
        for attempt in self.attempts.values():
            if attempt.status != 'in_progress':
                continue
            allowance = self.tests[attempt.test_id].duration_seconds + grace_seconds
            if (now - attempt.started_at).total_seconds() >= allowance:
                expired.append(attempt)
        return expired

    def get_answers(self, attempt_id):
        self._check('get_answers')
        merged = dict(self.answers.get(attempt_id, {}))
        merged.update(self.pending.get(attempt_id, {}))
        return merged

    def get_answer_records(self, attempt_id):
        return list(self.records.get(attempt_id, {}).values())

    def upsert_answers(self, attempt_id, rows):
        self._check('upsert_answers')
        self.pending.setdefault(attempt_id, {}).update(rows)

    def _flush_pending(self):
        for attempt_id, rows in self.pending.items():
            self.answers.setdefault(attempt_id, {}).update(rows)
            records = self.records.setdefault(attempt_id, {})
            for question_id, raw_value in rows.items():
                records[question_id] = AnswerRecordDTO(question_id=question_id, raw_value=raw_value)
        self.pending = {}

    def commit(self):
        self._check('commit')
        self._flush_pending()
        self.commits += 1

    def discard(self):
        self.pending = {}
        self.discards += 1


@pytest.fixture
def store():
    return FakeAttemptStore()
