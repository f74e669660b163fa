# File: bandscore_app/modules/listening/interface.py
"""
Listening Interface
===================
Public API for other modules (and the HTTP routes) to reach the listening
engine. Callers never build stores or services themselves.
"""

from typing import Any, Dict, Iterable, Optional

from flask import current_app

from bandscore_app.models import db

from .schemas import AttemptDTO, SubmitResult, UserSummary
from .services.attempt_service import AttemptService
from .services.attempt_store import SqlAlchemyAttemptStore
from .services.authoring_service import AuthoringService
from .services.review_service import ReviewService
from .services.submission_service import SubmissionOrchestrator


class ListeningInterface:
    """Public interface for listening module operations."""

    @staticmethod
    def get_store() -> SqlAlchemyAttemptStore:
        """Store bound to the current request's session."""
        return SqlAlchemyAttemptStore(
            db.session,
            timeout_seconds=current_app.config.get('LISTENING_STORAGE_TIMEOUT_SECONDS'),
        )

    @staticmethod
    def submit_attempt(
        user_id: int,
        attempt_id: int,
        answers: Optional[Iterable[Any]] = None,
        auto_submit: bool = False,
        duration_seconds: Optional[int] = None,
    ) -> SubmitResult:
        """
        Score and close an attempt.

        Args:
            user_id: Owner of the attempt
            attempt_id: Attempt to close
            answers: Optional final answers, upserted before scoring
            auto_submit: True when the timer closed the attempt
            duration_seconds: Elapsed time reported by the client

        Returns:
            SubmitResult; the stored one when the attempt was already closed
        """
        orchestrator = SubmissionOrchestrator(ListeningInterface.get_store())
        return orchestrator.submit(
            user_id,
            attempt_id,
            answers=answers,
            auto_submit=auto_submit,
            duration_seconds=duration_seconds,
        )

    @staticmethod
    def start_attempt(user_id: int, test_id: Optional[int] = None, test_slug: Optional[str] = None) -> AttemptDTO:
        return AttemptService(ListeningInterface.get_store()).start_attempt(user_id, test_id=test_id, test_slug=test_slug)

    @staticmethod
    def autosave(user_id: int, attempt_id: int, answers: Iterable[Any], duration_seconds: Optional[int] = None) -> int:
        return AttemptService(ListeningInterface.get_store()).autosave(
            user_id, attempt_id, answers, duration_seconds=duration_seconds
        )

    @staticmethod
    def get_attempt_review(user_id: int, attempt_id: int) -> Dict[str, Any]:
        return ReviewService(ListeningInterface.get_store()).get_attempt_review(user_id, attempt_id)

    @staticmethod
    def question_type_breakdown(user_id: int, attempt_id: int) -> Dict[str, Dict[str, int]]:
        return ReviewService(ListeningInterface.get_store()).question_type_breakdown(user_id, attempt_id)

    @staticmethod
    def get_user_summary(user_id: int, limit: Optional[int] = None) -> UserSummary:
        return ReviewService(ListeningInterface.get_store()).get_user_summary(user_id, limit=limit)

    @staticmethod
    def upsert_test(payload: Dict[str, Any]):
        return AuthoringService.upsert_test(payload)
