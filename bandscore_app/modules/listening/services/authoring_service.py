# File: bandscore_app/modules/listening/services/authoring_service.py
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bandscore_app.core.error_handlers import NotFoundError, StorageError, ValidationError
from bandscore_app.core.logging_config import get_logger
from bandscore_app.models import (
    ListeningAttempt,
    ListeningQuestion,
    ListeningTest,
    db,
)

from ..config import ListeningDefaultConfig
from ..logics.question_types import (
    normalize_question_type,
    parse_answer_key,
    resolve_section,
)
from ..schemas import GapKey, MatchKey, McqKey

logger = get_logger('bandscore.listening.authoring')


def _key_to_json(key) -> Any:
    """Stored shape of a validated answer key."""
    if isinstance(key, McqKey):
        return key.value
    if isinstance(key, GapKey):
        return list(key.variants)
    if isinstance(key, MatchKey):
        return [[left, right] for left, right in key.pairs]
    raise TypeError(f"Unknown answer key {key!r}")


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{field_name} must be an integer', errors={field_name: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an integer', errors={field_name: value})


class AuthoringService:
    """Admin-side creation and replacement of listening tests."""

    @staticmethod
    def validate_questions(raw_questions: Any) -> List[Dict[str, Any]]:
        """Normalize question payloads into column values, or raise."""
        if not isinstance(raw_questions, list) or not raw_questions:
            raise ValidationError('questions must be a non-empty list')

        cleaned = []
        seen_numbers = set()
        for entry in raw_questions:
            if not isinstance(entry, dict):
                raise ValidationError('Each question must be an object')

            number = _as_int(entry.get('questionNumber', entry.get('question_number')), 'questionNumber')
            if number < 1:
                raise ValidationError('Question numbers start at 1', errors={'questionNumber': number})
            if number in seen_numbers:
                raise ValidationError('Duplicate question number', errors={'questionNumber': number})
            seen_numbers.add(number)

            question_type = normalize_question_type(entry.get('type', entry.get('questionType')))

            section = entry.get('sectionNumber', entry.get('section_number'))
            if section is not None:
                section = _as_int(section, 'sectionNumber')

            raw_key = entry.get('answerKey', entry.get('answer_key'))
            key = parse_answer_key(question_type, raw_key)

            cleaned.append({
                'question_number': number,
                'section_number': resolve_section(number, section),
                'question_type': question_type,
                'prompt': entry.get('prompt'),
                'answer_key': _key_to_json(key),
            })

        return sorted(cleaned, key=lambda q: q['question_number'])

    @staticmethod
    def upsert_test(payload: Dict[str, Any]) -> ListeningTest:
        """
        Create a test, or update it when ``id``/``slug`` matches an existing one.

        Questions are replaced wholesale, which is refused once any attempt
        references the test.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')

        slug = payload.get('slug')
        title = payload.get('title')
        if not isinstance(slug, str) or not slug.strip():
            raise ValidationError('slug is required', errors={'slug': slug})
        if not isinstance(title, str) or not title.strip():
            raise ValidationError('title is required', errors={'title': title})

        duration = payload.get('durationSeconds', payload.get('duration_seconds'))
        duration = ListeningDefaultConfig.DEFAULT_DURATION_SECONDS if duration is None else _as_int(duration, 'durationSeconds')
        if duration <= 0:
            raise ValidationError('durationSeconds must be positive', errors={'durationSeconds': duration})

        questions = AuthoringService.validate_questions(payload.get('questions'))

        try:
            test = None
            test_id = payload.get('id', payload.get('testId'))
            if test_id is not None:
                test = db.session.get(ListeningTest, _as_int(test_id, 'id'))
                if test is None:
                    raise NotFoundError('Listening test not found', resource='test')
                slug_owner = db.session.execute(
                    select(ListeningTest.test_id)
                    .where(ListeningTest.slug == slug.strip(), ListeningTest.test_id != test.test_id)
                ).scalar_one_or_none()
                if slug_owner is not None:
                    raise ValidationError(
                        'slug is already used by another test',
                        errors={'slug': slug, 'testId': slug_owner},
                    )
            else:
                test = db.session.execute(
                    select(ListeningTest).where(ListeningTest.slug == slug.strip())
                ).scalar_one_or_none()

            if test is None:
                test = ListeningTest()
                db.session.add(test)
            else:
                attempt_count = db.session.execute(
                    select(func.count(ListeningAttempt.attempt_id))
                    .where(ListeningAttempt.test_id == test.test_id)
                ).scalar_one()
                if attempt_count:
                    raise ValidationError(
                        'Test already has attempts; its questions can no longer be replaced',
                        errors={'attempts': attempt_count},
                    )
                # Flush deletes before inserts so (test_id, question_number) stays unique
                for question in list(test.questions):
                    db.session.delete(question)
                db.session.flush()
                db.session.expire(test, ['questions'])

            test.slug = slug.strip()
            test.title = title.strip()
            test.description = payload.get('description')
            test.duration_seconds = duration
            test.is_mock = bool(payload.get('isMock', payload.get('is_mock', False)))
            db.session.flush()

            for values in questions:
                db.session.add(ListeningQuestion(test_id=test.test_id, **values))
            db.session.commit()
        except (NotFoundError, ValidationError):
            db.session.rollback()
            raise
        except IntegrityError as exc:
            # Constraint violations are not transient
            db.session.rollback()
            logger.warning(f"Rejected listening test '{slug}': {exc.orig}")
            raise ValidationError('Listening test conflicts with existing data', errors={'slug': slug}) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"Failed to save listening test '{slug}': {exc}")
            raise StorageError('Failed to save listening test', operation='upsert_test') from exc

        logger.info(f"Saved listening test '{test.slug}' with {len(questions)} questions")
        return test
