# File: bandscore_app/modules/listening/logics/aggregator.py
from typing import Any, Mapping, Sequence

from bandscore_app.core.error_handlers import DataIntegrityError

from ..schemas import QuestionDTO, QuestionOutcome, ScoreBreakdown, SectionScore
from .comparator import coerce_answer, is_correct, normalized_form


def score(questions: Sequence[QuestionDTO], answers: Mapping[int, Any]) -> ScoreBreakdown:
    """
    Score every question of a test against the stored raw answers.

    ``answers`` maps question_id -> raw value; questions without an entry
    are unanswered and count as incorrect. Pure, no I/O.
    """
    seen_ids = set()
    per_section = {}
    outcomes = {}
    raw_score = 0

    for question in questions:
        if question.question_id in seen_ids:
            raise DataIntegrityError(
                'Question set contains a duplicate question',
                details={'question_id': question.question_id},
            )
        seen_ids.add(question.question_id)

        submitted = coerce_answer(question, answers.get(question.question_id))
        correct = is_correct(question, submitted)

        bucket = per_section.setdefault(question.section_number, SectionScore())
        bucket.total += 1
        if correct:
            bucket.correct += 1
            raw_score += 1

        outcomes[question.question_id] = QuestionOutcome(
            question_id=question.question_id,
            normalized_value=normalized_form(submitted),
            is_correct=correct,
        )

    counted = sum(bucket.total for bucket in per_section.values())
    if counted != len(questions):
        raise DataIntegrityError(
            'Section totals do not add up to the question count',
            details={'counted': counted, 'questions': len(questions)},
        )

    return ScoreBreakdown(
        raw_score=raw_score,
        total_questions=len(questions),
        per_section=per_section,
        outcomes=outcomes,
    )
