# File: bandscore_app/modules/listening/logics/comparator.py
"""Per question-type correctness of a single answer."""

from typing import Any, Optional

from bandscore_app.core.error_handlers import DataIntegrityError

from ..config import ListeningDefaultConfig
from ..schemas import (
    AnswerValue,
    GapAnswer,
    GapKey,
    MatchAnswer,
    MatchKey,
    McqAnswer,
    McqKey,
    QuestionDTO,
)
from .normalizer import normalize, normalize_pairs
from .question_types import normalize_question_type, parse_answer, parse_answer_key


def _check_type(question: QuestionDTO) -> str:
    """Engine type of a question; stored source names such as 'map_labelling' are accepted."""
    question_type = question.question_type
    if question_type in ListeningDefaultConfig.QUESTION_TYPES:
        return question_type
    try:
        return normalize_question_type(question_type)
    except DataIntegrityError:
        raise DataIntegrityError(
            f"Question {question.question_number} has unsupported type '{question_type}'",
            details={'question_id': question.question_id, 'question_type': question_type},
        )


def coerce_answer(question: QuestionDTO, raw_value: Any) -> Optional[AnswerValue]:
    """Parse a raw stored value for this question's type."""
    return parse_answer(_check_type(question), raw_value)


def normalized_form(answer: Optional[AnswerValue]) -> Optional[str]:
    """String form stored alongside the raw value for review and auditing."""
    if answer is None:
        return None
    if isinstance(answer, (McqAnswer, GapAnswer)):
        return normalize(answer.value)
    return '; '.join(f'{left}={right}' for left, right in normalize_pairs(answer.pairs))


def is_correct(question: QuestionDTO, submitted: Optional[AnswerValue]) -> bool:
    """
    Decide whether ``submitted`` answers ``question``.

    Raises ``DataIntegrityError`` only for a broken question definition;
    missing or mismatched answers are just incorrect.
    """
    question_type = _check_type(question)
    key = parse_answer_key(question_type, question.answer_key)

    if submitted is None or submitted.kind != question_type:
        return False

    if isinstance(key, McqKey) and isinstance(submitted, McqAnswer):
        return normalize(submitted.value) == normalize(key.value)

    if isinstance(key, GapKey) and isinstance(submitted, GapAnswer):
        answer = normalize(submitted.value)
        return any(answer == normalize(variant) for variant in key.variants)

    if isinstance(key, MatchKey) and isinstance(submitted, MatchAnswer):
        return normalize_pairs(submitted.pairs) == normalize_pairs(key.pairs)

    return False
