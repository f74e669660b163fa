# File: bandscore_app/modules/listening/services/review_service.py
"""
Read-only views over finished attempts: the per-question review, the
question-type breakdown and the per-user summary.
"""

from typing import Any, Dict, Optional

from bandscore_app.core.error_handlers import ValidationError

from ..config import ListeningDefaultConfig
from ..schemas import AttemptSnapshot, UserSummary
from .attempt_store import AttemptStore
from .submission_service import load_owned_attempt


class ReviewService:

    def __init__(self, store: AttemptStore):
        self.store = store

    def get_attempt_review(self, user_id: int, attempt_id: int) -> Dict[str, Any]:
        attempt = load_owned_attempt(self.store, user_id, attempt_id)
        questions = self.store.get_questions(attempt.test_id)
        records = {r.question_id: r for r in self.store.get_answer_records(attempt_id)}

        rows = []
        for question in questions:
            record = records.get(question.question_id)
            row = {
                'questionId': question.question_id,
                'questionNumber': question.question_number,
                'sectionNumber': question.section_number,
                'questionType': question.question_type,
                'prompt': question.prompt,
                'value': record.raw_value if record else None,
            }
            # Keys stay hidden until the attempt is closed
            if attempt.is_terminal:
                row['normalizedValue'] = record.normalized_value if record else None
                row['isCorrect'] = bool(record and record.is_correct)
                row['correctAnswer'] = question.answer_key
            rows.append(row)

        return {'attempt': attempt.to_dict(), 'questions': rows}

    def question_type_breakdown(self, user_id: int, attempt_id: int) -> Dict[str, Dict[str, int]]:
        attempt = load_owned_attempt(self.store, user_id, attempt_id)
        if not attempt.is_terminal:
            raise ValidationError('Attempt has not been submitted yet')

        records = {r.question_id: r for r in self.store.get_answer_records(attempt_id)}
        breakdown = {}
        for question in self.store.get_questions(attempt.test_id):
            bucket = breakdown.setdefault(question.question_type, {'correct': 0, 'total': 0})
            bucket['total'] += 1
            record = records.get(question.question_id)
            if record is not None and record.is_correct:
                bucket['correct'] += 1
        return breakdown

    def get_user_summary(self, user_id: int, limit: Optional[int] = None) -> UserSummary:
        limit = limit or ListeningDefaultConfig.SUMMARY_ATTEMPT_LIMIT
        attempts = self.store.list_attempts(user_id, terminal_only=True, limit=limit)

        bands = [a.band_score for a in attempts if a.band_score is not None]
        snapshots = [
            AttemptSnapshot(
                attempt_id=a.attempt_id,
                test_id=a.test_id,
                status=a.status,
                completed_at=a.completed_at,
                raw_score=a.raw_score,
                total_questions=a.total_questions,
                band_score=a.band_score,
                duration_seconds=a.duration_seconds,
            )
            for a in attempts
        ]

        return UserSummary(
            total_attempts=len(attempts),
            average_band=round(sum(bands) / len(bands), 2) if bands else None,
            best_band=max(bands) if bands else None,
            total_time_seconds=sum(a.duration_seconds or 0 for a in attempts),
            recent_attempts=snapshots,
        )
