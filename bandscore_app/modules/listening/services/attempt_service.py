# File: bandscore_app/modules/listening/services/attempt_service.py
from typing import Any, Iterable, Optional

from bandscore_app.core.error_handlers import (
    AttemptClosedError,
    DataIntegrityError,
    NotFoundError,
    StorageError,
)
from bandscore_app.core.logging_config import get_logger

from ..schemas import AttemptDTO
from .attempt_store import AttemptStore
from .submission_service import load_owned_attempt, resolve_answers

logger = get_logger('bandscore.listening.attempts')


class AttemptService:
    """Opening attempts and saving answers while the clock runs."""

    def __init__(self, store: AttemptStore):
        self.store = store

    def start_attempt(self, user_id: int, test_id: Optional[int] = None, test_slug: Optional[str] = None) -> AttemptDTO:
        test = self.store.find_test(test_id=test_id, slug=test_slug)
        if test is None:
            raise NotFoundError('Listening test not found', resource='test')

        if not self.store.get_questions(test.test_id):
            raise DataIntegrityError(
                'Listening test has no questions',
                details={'test_id': test.test_id},
            )

        attempt = self.store.create_attempt(user_id, test.test_id)
        logger.info(f"User {user_id} started attempt {attempt.attempt_id} on test {test.slug}")
        return attempt

    def autosave(
        self,
        user_id: int,
        attempt_id: int,
        answers: Iterable[Any],
        duration_seconds: Optional[int] = None,
    ) -> int:
        """
        Persist in-progress answers without scoring them.

        The attempt row is touched first with a status-guarded update, so a
        save racing a submit either lands before the terminal transition or
        is rejected with ``AttemptClosedError``.

        Returns the number of answers written.
        """
        attempt = load_owned_attempt(self.store, user_id, attempt_id)
        if attempt.is_terminal:
            raise AttemptClosedError(attempt_id=attempt_id)

        elapsed = duration_seconds if duration_seconds is not None else attempt.duration_seconds
        try:
            if not self.store.set_duration(attempt_id, user_id, elapsed):
                raise AttemptClosedError(attempt_id=attempt_id)

            questions = self.store.get_questions(attempt.test_id)
            rows = resolve_answers(questions, answers or [])
            self.store.upsert_answers(attempt_id, rows)
            self.store.commit()
        except (AttemptClosedError, StorageError):
            self.store.discard()
            raise

        logger.debug(f"Autosaved {len(rows)} answers for attempt {attempt_id}")
        return len(rows)
