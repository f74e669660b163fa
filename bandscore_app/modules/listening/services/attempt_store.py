# File: bandscore_app/modules/listening/services/attempt_store.py
"""
Attempt Store
=============
Abstract read/write contract the submission orchestrator talks to, plus the
SQLAlchemy implementation used by the Flask app.

Write model
-----------
* ``upsert_answers`` stages rows; ``commit`` persists them and ``discard``
  throws them away.
* ``update_attempt`` is the single atomic terminal transition. It only
  applies while the attempt is still in the expected status
  (compare-and-swap), finalizes answer rows in the same transaction and
  commits. It returns ``False`` when another request got there first, in
  which case everything staged by this store is discarded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bandscore_app.core.error_handlers import StorageError
from bandscore_app.core.logging_config import get_logger
from bandscore_app.models import (
    ListeningAnswer,
    ListeningAttempt,
    ListeningQuestion,
    ListeningTest,
)

from ..schemas import AnswerRecordDTO, AttemptDTO, QuestionDTO, QuestionOutcome, TestDTO

logger = get_logger('bandscore.listening.store')

STATUS_IN_PROGRESS = ListeningAttempt.STATUS_IN_PROGRESS


class AttemptStore(ABC):
    """Storage operations needed by the listening engine."""

    # ── Tests & questions ────────────────────────────────────────────

    @abstractmethod
    def get_test(self, test_id: int) -> Optional[TestDTO]:
        ...

    @abstractmethod
    def find_test(self, test_id: Optional[int] = None, slug: Optional[str] = None) -> Optional[TestDTO]:
        ...

    @abstractmethod
    def get_questions(self, test_id: int) -> List[QuestionDTO]:
        """All questions of a test ordered by question number."""

    # ── Attempts ─────────────────────────────────────────────────────

    @abstractmethod
    def get_attempt(self, attempt_id: int) -> Optional[AttemptDTO]:
        ...

    @abstractmethod
    def create_attempt(self, user_id: int, test_id: int) -> AttemptDTO:
        ...

    @abstractmethod
    def update_attempt(
        self,
        attempt_id: int,
        user_id: int,
        patch: Mapping[str, Any],
        outcomes: Optional[Mapping[int, QuestionOutcome]] = None,
        expected_status: str = STATUS_IN_PROGRESS,
    ) -> bool:
        """Apply ``patch`` only if the attempt is still ``expected_status``."""

    @abstractmethod
    def set_duration(self, attempt_id: int, user_id: int, duration_seconds: int) -> bool:
        """Stage the elapsed time of an in-progress attempt; False once it is closed."""

    @abstractmethod
    def list_attempts(self, user_id: int, terminal_only: bool = True, limit: Optional[int] = None) -> List[AttemptDTO]:
        """Attempts of a user, newest first."""

    @abstractmethod
    def list_expired_attempts(self, now: datetime, grace_seconds: int = 0) -> List[AttemptDTO]:
        """In-progress attempts whose time allowance (plus grace) has run out."""

    # ── Answers ──────────────────────────────────────────────────────

    @abstractmethod
    def get_answers(self, attempt_id: int) -> Dict[int, Any]:
        """question_id -> raw value, read fresh from storage."""

    @abstractmethod
    def get_answer_records(self, attempt_id: int) -> List[AnswerRecordDTO]:
        ...

    @abstractmethod
    def upsert_answers(self, attempt_id: int, rows: Mapping[int, Any]) -> None:
        """Stage answers keyed by question_id; last write wins."""

    # ── Unit of work ─────────────────────────────────────────────────

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def discard(self) -> None:
        ...


def _test_dto(test: ListeningTest) -> TestDTO:
    return TestDTO(
        test_id=test.test_id,
        slug=test.slug,
        title=test.title,
        duration_seconds=test.duration_seconds,
        is_mock=bool(test.is_mock),
    )


def _question_dto(question: ListeningQuestion) -> QuestionDTO:
    return QuestionDTO(
        question_id=question.question_id,
        question_number=question.question_number,
        section_number=question.section_number,
        question_type=question.question_type,
        answer_key=question.answer_key,
        prompt=question.prompt,
    )


def _attempt_dto(attempt: ListeningAttempt) -> AttemptDTO:
    return AttemptDTO(
        attempt_id=attempt.attempt_id,
        user_id=attempt.user_id,
        test_id=attempt.test_id,
        status=attempt.status,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        duration_seconds=attempt.duration_seconds,
        raw_score=attempt.raw_score,
        total_questions=attempt.total_questions,
        band_score=attempt.band_score,
        section_scores=attempt.section_scores,
    )


class SqlAlchemyAttemptStore(AttemptStore):
    """
    ``AttemptStore`` backed by a SQLAlchemy session.

    Every database error is rolled back and re-raised as ``StorageError``.
    ``timeout_seconds`` bounds each statement on PostgreSQL; SQLite relies
    on the connection busy timeout.
    """

    def __init__(self, session: Session, timeout_seconds: Optional[float] = None):
        self.session = session
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def _guard(self, operation: str):
        try:
            self._apply_timeout()
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"Storage failure during {operation}: {exc}")
            raise StorageError(f'Storage failure during {operation}', operation=operation) from exc

    def _apply_timeout(self):
        if not self.timeout_seconds:
            return
        bind = self.session.get_bind()
        if bind.dialect.name == 'postgresql':
            milliseconds = int(self.timeout_seconds * 1000)
            self.session.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))

    # ── Tests & questions ────────────────────────────────────────────

    def get_test(self, test_id):
        with self._guard('get_test'):
            test = self.session.get(ListeningTest, test_id)
            return _test_dto(test) if test else None

    def find_test(self, test_id=None, slug=None):
        if test_id is not None:
            return self.get_test(test_id)
        if not slug:
            return None
        with self._guard('find_test'):
            test = self.session.execute(
                select(ListeningTest).where(ListeningTest.slug == slug)
            ).scalar_one_or_none()
            return _test_dto(test) if test else None

    def get_questions(self, test_id):
        with self._guard('get_questions'):
            rows = self.session.execute(
                select(ListeningQuestion)
                .where(ListeningQuestion.test_id == test_id)
                .order_by(ListeningQuestion.question_number)
            ).scalars().all()
            return [_question_dto(q) for q in rows]

    # ── Attempts ─────────────────────────────────────────────────────

    def get_attempt(self, attempt_id):
        with self._guard('get_attempt'):
            attempt = self.session.execute(
                select(ListeningAttempt)
                .where(ListeningAttempt.attempt_id == attempt_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            return _attempt_dto(attempt) if attempt else None

    def create_attempt(self, user_id, test_id):
        with self._guard('create_attempt'):
            attempt = ListeningAttempt(user_id=user_id, test_id=test_id, status=STATUS_IN_PROGRESS)
            self.session.add(attempt)
            self.session.commit()
            return _attempt_dto(attempt)

    def update_attempt(self, attempt_id, user_id, patch, outcomes=None, expected_status=STATUS_IN_PROGRESS):
        with self._guard('update_attempt'):
            result = self.session.execute(
                update(ListeningAttempt)
                .where(
                    ListeningAttempt.attempt_id == attempt_id,
                    ListeningAttempt.user_id == user_id,
                    ListeningAttempt.status == expected_status,
                )
                .values(**patch)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                return False

            if outcomes:
                records = self.session.execute(
                    select(ListeningAnswer).where(ListeningAnswer.attempt_id == attempt_id)
                ).scalars().all()
                for record in records:
                    outcome = outcomes.get(record.question_id)
                    if outcome is None:
                        continue
                    record.normalized_value = outcome.normalized_value
                    record.is_correct = outcome.is_correct

            self.session.commit()
            return True

    def list_attempts(self, user_id, terminal_only=True, limit=None):
        with self._guard('list_attempts'):
            query = select(ListeningAttempt).where(ListeningAttempt.user_id == user_id)
            if terminal_only:
                query = query.where(ListeningAttempt.status.in_(ListeningAttempt.TERMINAL_STATUSES))
            query = query.order_by(
                ListeningAttempt.completed_at.desc(),
                ListeningAttempt.attempt_id.desc(),
            )
            if limit:
                query = query.limit(limit)
            return [_attempt_dto(a) for a in self.session.execute(query).scalars().all()]

    def list_expired_attempts(self, now, grace_seconds=0):
        with self._guard('list_expired_attempts'):
            rows = self.session.execute(
                select(ListeningAttempt, ListeningTest.duration_seconds)
                .join(ListeningTest, ListeningTest.test_id == ListeningAttempt.test_id)
                .where(ListeningAttempt.status == STATUS_IN_PROGRESS)
                .order_by(ListeningAttempt.started_at)
            ).all()

        expired = []
        for attempt, duration_seconds in rows:
            started_at = attempt.started_at
            if started_at is None:
                continue
            # SQLite hands back naive datetimes
            if started_at.tzinfo is None and now.tzinfo is not None:
                started_at = started_at.replace(tzinfo=now.tzinfo)
            deadline = started_at + timedelta(seconds=(duration_seconds or 0) + grace_seconds)
            if deadline <= now:
                expired.append(_attempt_dto(attempt))
        return expired

    # ── Answers ──────────────────────────────────────────────────────

    def _answer_rows(self, attempt_id):
        return self.session.execute(
            select(ListeningAnswer)
            .where(ListeningAnswer.attempt_id == attempt_id)
            .execution_options(populate_existing=True)
        ).scalars().all()

    def get_answers(self, attempt_id):
        with self._guard('get_answers'):
            return {row.question_id: row.raw_value for row in self._answer_rows(attempt_id)}

    def get_answer_records(self, attempt_id):
        with self._guard('get_answer_records'):
            return [
                AnswerRecordDTO(
                    question_id=row.question_id,
                    raw_value=row.raw_value,
                    normalized_value=row.normalized_value,
                    is_correct=row.is_correct,
                )
                for row in self._answer_rows(attempt_id)
            ]

    def upsert_answers(self, attempt_id, rows):
        if not rows:
            return
        with self._guard('upsert_answers'):
            existing = {
                record.question_id: record
                for record in self.session.execute(
                    select(ListeningAnswer).where(
                        ListeningAnswer.attempt_id == attempt_id,
                        ListeningAnswer.question_id.in_(list(rows.keys())),
                    )
                ).scalars().all()
            }
            for question_id, raw_value in rows.items():
                record = existing.get(question_id)
                if record is None:
                    self.session.add(ListeningAnswer(
                        attempt_id=attempt_id,
                        question_id=question_id,
                        raw_value=raw_value,
                    ))
                else:
                    record.raw_value = raw_value
                    record.normalized_value = None
                    record.is_correct = None
            self.session.flush()

    def set_duration(self, attempt_id, user_id, duration_seconds):
        with self._guard('set_duration'):
            result = self.session.execute(
                update(ListeningAttempt)
                .where(
                    ListeningAttempt.attempt_id == attempt_id,
                    ListeningAttempt.user_id == user_id,
                    ListeningAttempt.status == STATUS_IN_PROGRESS,
                )
                .values(duration_seconds=duration_seconds)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # ── Unit of work ─────────────────────────────────────────────────

    def commit(self):
        with self._guard('commit'):
            self.session.commit()

    def discard(self):
        self.session.rollback()
