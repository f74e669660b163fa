# File: bandscore_app/modules/listening/services/submission_service.py
"""
Submission Orchestrator
=======================
Entry point that turns an in-progress attempt into a scored, terminal one.

State machine: ``in_progress -> completed | auto_submitted``. Both targets
are terminal; a terminal attempt is never rescored.

Concurrency: two submits for one attempt can both see ``in_progress``.
The terminal write is a compare-and-swap on ``status`` in the store, so only
one of them lands; the loser throws away its staged writes and replays the
winner's stored result.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from bandscore_app.core.error_handlers import (
    DataIntegrityError,
    NotFoundError,
    StorageError,
)
from bandscore_app.core.logging_config import get_logger
from bandscore_app.models import ListeningAttempt

from ..events import attempt_submitted
from ..logics.aggregator import score
from ..logics.band_mapper import raw_to_band
from ..schemas import AnswerSubmission, AttemptDTO, QuestionDTO, SubmitResult
from .attempt_store import AttemptStore

logger = get_logger('bandscore.listening.submission')


def load_owned_attempt(store: AttemptStore, user_id: int, attempt_id: int) -> AttemptDTO:
    """Fetch an attempt, hiding attempts that belong to someone else."""
    attempt = store.get_attempt(attempt_id)
    if attempt is None or attempt.user_id != user_id:
        raise NotFoundError('Attempt not found', resource='attempt')
    return attempt


def resolve_answers(
    questions: Sequence[QuestionDTO],
    submissions: Iterable[Any],
) -> Dict[int, Any]:
    """
    Map an ``answers`` payload onto question ids.

    Entries are matched by ``questionId`` first, then by ``questionNumber``.
    Entries matching neither are skipped. Later entries for the same
    question overwrite earlier ones.
    """
    by_id = {q.question_id: q for q in questions}
    by_number = {q.question_number: q for q in questions}

    resolved = {}
    for entry in submissions:
        submission = entry if isinstance(entry, AnswerSubmission) else AnswerSubmission.from_payload(entry)

        question = None
        if submission.question_id is not None:
            question = by_id.get(submission.question_id)
        if question is None and submission.question_number is not None:
            question = by_number.get(submission.question_number)

        if question is None:
            logger.warning(
                "Skipping answer for unknown question (id=%s, number=%s)",
                submission.question_id,
                submission.question_number,
            )
            continue
        resolved[question.question_id] = submission.value
    return resolved


class SubmissionOrchestrator:
    """Validate, score and persist one attempt exactly once."""

    def __init__(self, store: AttemptStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def submit(
        self,
        user_id: int,
        attempt_id: int,
        answers: Optional[Iterable[Any]] = None,
        auto_submit: bool = False,
        duration_seconds: Optional[int] = None,
    ) -> SubmitResult:
        attempt = load_owned_attempt(self.store, user_id, attempt_id)

        if attempt.is_terminal:
            logger.info("Attempt %s already %s, returning stored result", attempt_id, attempt.status)
            return SubmitResult.from_attempt(attempt)

        status = (
            ListeningAttempt.STATUS_AUTO_SUBMITTED if auto_submit
            else ListeningAttempt.STATUS_COMPLETED
        )

        try:
            questions = self.store.get_questions(attempt.test_id)
            if not questions:
                raise DataIntegrityError(
                    'Listening test has no questions',
                    details={'test_id': attempt.test_id},
                )

            if answers:
                self.store.upsert_answers(attempt_id, resolve_answers(questions, answers))

            # Always re-read: autosaves may have landed since the attempt was loaded
            stored_answers = self.store.get_answers(attempt_id)

            breakdown = score(questions, stored_answers)
            band_score = raw_to_band(breakdown.raw_score, breakdown.total_questions)

            patch = {
                'status': status,
                'completed_at': self.clock(),
                'raw_score': breakdown.raw_score,
                'total_questions': breakdown.total_questions,
                'band_score': band_score,
                'section_scores': breakdown.section_scores_dict(),
            }
            if duration_seconds is not None:
                patch['duration_seconds'] = duration_seconds

            applied = self.store.update_attempt(attempt_id, user_id, patch, breakdown.outcomes)
        except (DataIntegrityError, StorageError):
            self.store.discard()
            raise

        if not applied:
            logger.warning("Attempt %s was finalised by a concurrent request, replaying its result", attempt_id)
            current = self.store.get_attempt(attempt_id)
            if current is None or not current.is_terminal:
                raise StorageError('Attempt changed while it was being scored', operation='update_attempt')
            return SubmitResult.from_attempt(current)

        result = SubmitResult(
            raw_score=breakdown.raw_score,
            total_questions=breakdown.total_questions,
            band_score=band_score,
        )
        logger.info(
            "Attempt %s %s: %s/%s -> band %s",
            attempt_id, status, result.raw_score, result.total_questions, result.band_score,
        )

        try:
            attempt_submitted.send(
                self,
                attempt_id=attempt_id,
                user_id=user_id,
                test_id=attempt.test_id,
                status=status,
                raw_score=result.raw_score,
                total_questions=result.total_questions,
                band_score=result.band_score,
                section_scores=patch['section_scores'],
            )
        except Exception:
            # The score is already committed; a listener failure must not turn it into an error
            logger.exception("attempt_submitted listener failed for attempt %s", attempt_id)

        return result
