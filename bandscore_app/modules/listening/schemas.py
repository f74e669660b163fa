"""
Listening DTOs and request payloads
===================================
Plain dataclasses passed between the store, the scoring logic and the
routes. No ORM objects cross the module boundary. Incoming JSON bodies are
loaded through the marshmallow schemas at the bottom of this file.

Submitted answers and answer keys are tagged unions: the comparator
dispatches on the concrete class instead of sniffing ``str`` / ``list`` /
``dict`` at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from marshmallow import EXCLUDE, Schema, fields, post_load, validate, validates_schema
from marshmallow import ValidationError as MarshmallowValidationError

Pair = Tuple[str, str]


# ── Submitted answers ────────────────────────────────────────────────


@dataclass(frozen=True)
class McqAnswer:
    value: str
    kind: ClassVar[str] = 'mcq'


@dataclass(frozen=True)
class GapAnswer:
    value: str
    kind: ClassVar[str] = 'gap'


@dataclass(frozen=True)
class MatchAnswer:
    pairs: Tuple[Pair, ...]
    kind: ClassVar[str] = 'match'


AnswerValue = Union[McqAnswer, GapAnswer, MatchAnswer]


# ── Answer keys ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class McqKey:
    value: str
    kind: ClassVar[str] = 'mcq'


@dataclass(frozen=True)
class GapKey:
    variants: Tuple[str, ...]
    kind: ClassVar[str] = 'gap'


@dataclass(frozen=True)
class MatchKey:
    pairs: Tuple[Pair, ...]
    kind: ClassVar[str] = 'match'


AnswerKey = Union[McqKey, GapKey, MatchKey]


# ── Stored records ───────────────────────────────────────────────────


@dataclass
class TestDTO:
    test_id: int
    slug: str
    title: str
    duration_seconds: int
    is_mock: bool = False


@dataclass
class QuestionDTO:
    question_id: int
    question_number: int
    section_number: int
    question_type: str          # 'mcq' | 'gap' | 'match'
    answer_key: Any             # raw JSON, parsed by the comparator
    prompt: Optional[str] = None


@dataclass
class AttemptDTO:
    attempt_id: int
    user_id: int
    test_id: int
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    raw_score: Optional[int] = None
    total_questions: Optional[int] = None
    band_score: Optional[float] = None
    section_scores: Optional[Dict[str, Dict[str, int]]] = None

    TERMINAL_STATUSES: ClassVar[Tuple[str, ...]] = ('completed', 'auto_submitted')

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attemptId': self.attempt_id,
            'testId': self.test_id,
            'status': self.status,
            'startedAt': self.started_at.isoformat() if self.started_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'durationSeconds': self.duration_seconds,
            'rawScore': self.raw_score,
            'totalQuestions': self.total_questions,
            'bandScore': self.band_score,
            'sectionScores': self.section_scores,
        }


@dataclass
class AnswerRecordDTO:
    question_id: int
    raw_value: Any
    normalized_value: Optional[str] = None
    is_correct: Optional[bool] = None


@dataclass
class AnswerSubmission:
    """One entry of an ``answers`` payload, before it is resolved to a question."""

    value: Any
    question_id: Optional[int] = None
    question_number: Optional[int] = None

    @classmethod
    def from_payload(cls, entry: Dict[str, Any]) -> 'AnswerSubmission':
        question_id = entry.get('questionId', entry.get('question_id'))
        question_number = entry.get('questionNumber', entry.get('question_number'))
        value = entry['value'] if 'value' in entry else entry.get('answer')
        return cls(
            value=value,
            question_id=int(question_id) if question_id is not None else None,
            question_number=int(question_number) if question_number is not None else None,
        )


# ── Scoring results ──────────────────────────────────────────────────


@dataclass
class SectionScore:
    correct: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'correct': self.correct, 'total': self.total}


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    normalized_value: Optional[str]
    is_correct: bool


@dataclass
class ScoreBreakdown:
    raw_score: int
    total_questions: int
    per_section: Dict[int, SectionScore] = field(default_factory=dict)
    outcomes: Dict[int, QuestionOutcome] = field(default_factory=dict)

    def section_scores_dict(self) -> Dict[str, Dict[str, int]]:
        # JSON object keys are strings
        return {str(section): score.to_dict() for section, score in sorted(self.per_section.items())}


@dataclass(frozen=True)
class SubmitResult:
    raw_score: int
    total_questions: int
    band_score: float

    @classmethod
    def from_attempt(cls, attempt: AttemptDTO) -> 'SubmitResult':
        return cls(
            raw_score=attempt.raw_score,
            total_questions=attempt.total_questions,
            band_score=attempt.band_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rawScore': self.raw_score,
            'totalQuestions': self.total_questions,
            'bandScore': self.band_score,
        }


@dataclass
class AttemptSnapshot:
    attempt_id: int
    test_id: int
    status: str
    completed_at: Optional[datetime]
    raw_score: int
    total_questions: int
    band_score: float
    duration_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attemptId': self.attempt_id,
            'testId': self.test_id,
            'status': self.status,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'rawScore': self.raw_score,
            'totalQuestions': self.total_questions,
            'bandScore': self.band_score,
            'durationSeconds': self.duration_seconds,
        }


@dataclass
class UserSummary:
    total_attempts: int
    average_band: Optional[float]
    best_band: Optional[float]
    total_time_seconds: int
    recent_attempts: List[AttemptSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalAttempts': self.total_attempts,
            'averageBand': self.average_band,
            'bestBand': self.best_band,
            'totalTimeSeconds': self.total_time_seconds,
            'recentAttempts': [a.to_dict() for a in self.recent_attempts],
        }


# ── Request payloads ─────────────────────────────────────────────────


class _PayloadSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class AnswerEntrySchema(_PayloadSchema):
    question_id = fields.Int(data_key='questionId', load_default=None, allow_none=True)
    question_number = fields.Int(data_key='questionNumber', load_default=None, allow_none=True)
    value = fields.Raw(load_default=None, allow_none=True)

    @post_load
    def make_submission(self, data, **kwargs):
        return AnswerSubmission(**data)


class SubmitPayloadSchema(_PayloadSchema):
    attempt_id = fields.Int(data_key='attemptId', required=True)
    answers = fields.List(fields.Nested(AnswerEntrySchema), load_default=list)
    auto_submit = fields.Bool(data_key='autoSubmit', load_default=False)
    duration_seconds = fields.Int(
        data_key='durationSeconds', load_default=None, allow_none=True, validate=validate.Range(min=0)
    )


class AutosavePayloadSchema(_PayloadSchema):
    answers = fields.List(fields.Nested(AnswerEntrySchema), load_default=list)
    duration_seconds = fields.Int(
        data_key='durationSeconds', load_default=None, allow_none=True, validate=validate.Range(min=0)
    )


class StartAttemptPayloadSchema(_PayloadSchema):
    test_id = fields.Int(data_key='testId', load_default=None, allow_none=True)
    test_slug = fields.Str(data_key='testSlug', load_default=None, allow_none=True)

    @validates_schema
    def require_test_reference(self, data, **kwargs):
        if data.get('test_id') is None and not data.get('test_slug'):
            raise MarshmallowValidationError('testId or testSlug is required', field_name='testId')
