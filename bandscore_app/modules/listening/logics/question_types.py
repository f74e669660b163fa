# File: bandscore_app/modules/listening/logics/question_types.py
"""
Question typing helpers.

- Map source question-type names onto the three engine types.
- Derive a section number from a question number.
- Coerce raw JSON answers and answer keys into the tagged unions of
  ``schemas``. Answers never raise (a malformed answer is simply wrong);
  answer keys raise ``DataIntegrityError`` because a broken key is an
  authoring defect.
"""

import json
import re
from typing import Any, List, Optional

from bandscore_app.core.error_handlers import DataIntegrityError

from ..config import ListeningDefaultConfig
from ..schemas import (
    AnswerKey,
    AnswerValue,
    GapAnswer,
    GapKey,
    MatchAnswer,
    MatchKey,
    McqAnswer,
    McqKey,
    Pair,
)
from .normalizer import normalize

_TYPE_SEPARATOR_RE = re.compile(r"[\s\-]+")


def normalize_question_type(raw_type: Any) -> str:
    """Return 'mcq', 'gap' or 'match' for a source type name, or raise."""
    if not isinstance(raw_type, str) or not raw_type.strip():
        raise DataIntegrityError(
            'Question type is missing',
            details={'question_type': raw_type},
        )

    key = _TYPE_SEPARATOR_RE.sub('_', raw_type.strip().lower())
    engine_type = ListeningDefaultConfig.QUESTION_TYPE_ALIASES.get(key)
    if engine_type is None:
        raise DataIntegrityError(
            f"Unsupported question type '{raw_type}'",
            details={'question_type': raw_type},
        )
    return engine_type


def section_for_question_number(question_number: int) -> int:
    """1-10 -> 1, 11-20 -> 2, 21-30 -> 3, everything after -> 4."""
    if question_number < 1:
        raise DataIntegrityError(
            'Question numbers start at 1',
            details={'question_number': question_number},
        )
    for last_number, section in ListeningDefaultConfig.SECTION_BANDS:
        if question_number <= last_number:
            return section
    return ListeningDefaultConfig.LAST_SECTION


def resolve_section(question_number: int, section_number: Optional[int] = None) -> int:
    """Use the explicit section when given, otherwise derive it."""
    if section_number is None:
        return section_for_question_number(question_number)
    if section_number not in ListeningDefaultConfig.SECTION_NUMBERS:
        raise DataIntegrityError(
            'Section number must be between 1 and 4',
            details={'question_number': question_number, 'section_number': section_number},
        )
    return section_number


# ── Raw value coercion ───────────────────────────────────────────────


def _scalar_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _decode_json_string(value: str) -> Any:
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return value


def extract_text(raw: Any) -> Optional[str]:
    """Pull a single text answer out of the shapes clients send."""
    if raw is None:
        return None

    if isinstance(raw, str):
        decoded = _decode_json_string(raw)
        return decoded if isinstance(decoded, str) else raw

    if isinstance(raw, (list, tuple)):
        if len(raw) == 1:
            return _scalar_text(raw[0])
        return None

    if isinstance(raw, dict):
        for field_name in ('value', 'text'):
            if isinstance(raw.get(field_name), str):
                return raw[field_name]
        return None

    return _scalar_text(raw)


def extract_pairs(raw: Any) -> Optional[List[Pair]]:
    """Pull a list of (left, right) pairs out of the shapes clients send."""
    if raw is None:
        return None

    if isinstance(raw, str):
        decoded = _decode_json_string(raw)
        if isinstance(decoded, (list, dict)):
            return extract_pairs(decoded)
        return None

    if isinstance(raw, dict):
        if 'pairs' in raw:
            return extract_pairs(raw['pairs'])
        pairs = []
        for left, right in raw.items():
            right_text = _scalar_text(right)
            if right_text is None:
                return None
            pairs.append((str(left), right_text))
        return pairs

    if isinstance(raw, (list, tuple)):
        pairs = []
        for entry in raw:
            if isinstance(entry, dict):
                left, right = entry.get('left'), entry.get('right')
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                left, right = entry
            else:
                return None
            left_text, right_text = _scalar_text(left), _scalar_text(right)
            if left_text is None or right_text is None:
                return None
            pairs.append((left_text, right_text))
        return pairs

    return None


def parse_answer(question_type: str, raw: Any) -> Optional[AnswerValue]:
    """
    Coerce a submitted value into an ``AnswerValue``.

    Returns ``None`` for blank or malformed input, which scores as incorrect.
    """
    if question_type in ('mcq', 'gap'):
        text = extract_text(raw)
        if text is None or not normalize(text):
            return None
        return McqAnswer(text) if question_type == 'mcq' else GapAnswer(text)

    if question_type == 'match':
        pairs = extract_pairs(raw)
        if not pairs:
            return None
        return MatchAnswer(tuple(pairs))

    raise DataIntegrityError(
        f"Unsupported question type '{question_type}'",
        details={'question_type': question_type},
    )


def parse_answer_key(question_type: str, raw: Any) -> AnswerKey:
    """Coerce a stored answer key, raising ``DataIntegrityError`` when it is unusable."""
    if question_type == 'mcq':
        text = extract_text(raw)
        if text is None or not normalize(text):
            raise DataIntegrityError('MCQ answer key must be one non-empty option', details={'answer_key': raw})
        return McqKey(text)

    if question_type == 'gap':
        if isinstance(raw, str):
            # Only structured JSON is unpacked; "4.50" must stay "4.50"
            decoded = _decode_json_string(raw)
            if isinstance(decoded, (list, dict)):
                raw = decoded
        if isinstance(raw, dict) and 'variants' in raw:
            raw = raw['variants']
        candidates = raw if isinstance(raw, (list, tuple)) else [raw]

        variants = []
        for candidate in candidates:
            text = extract_text(candidate)
            if text is None or not normalize(text):
                raise DataIntegrityError('Gap answer key contains an empty variant', details={'answer_key': raw})
            if text not in variants:
                variants.append(text)
        if not variants:
            raise DataIntegrityError('Gap answer key has no variants', details={'answer_key': raw})
        return GapKey(tuple(variants))

    if question_type == 'match':
        pairs = extract_pairs(raw)
        if not pairs:
            raise DataIntegrityError('Match answer key must be a non-empty list of pairs', details={'answer_key': raw})
        lefts = [normalize(left) for left, _ in pairs]
        if len(set(lefts)) != len(lefts):
            raise DataIntegrityError('Match answer key maps one item twice', details={'answer_key': raw})
        return MatchKey(tuple(pairs))

    raise DataIntegrityError(
        f"Unsupported question type '{question_type}'",
        details={'question_type': question_type},
    )
