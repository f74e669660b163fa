"""
Tests for admin test authoring.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from bandscore_app.core.error_handlers import DataIntegrityError, NotFoundError, ValidationError
from bandscore_app.models import ListeningAttempt, ListeningQuestion, ListeningTest, db
from bandscore_app.modules.listening.services.authoring_service import AuthoringService


def _payload(**overrides):
    payload = {
        'slug': 'cambridge-19-1',
        'title': 'Cambridge 19 Test 1',
        'durationSeconds': 1800,
        'questions': [
            {'questionNumber': 1, 'type': 'note_completion', 'answerKey': 'Harbour'},
            {'questionNumber': 2, 'type': 'choice', 'answerKey': ['C']},
            {'questionNumber': 15, 'type': 'plan', 'sectionNumber': 2, 'answerKey': [['15', 'F'], {'left': '16', 'right': 'A'}]},
        ],
    }
    payload.update(overrides)
    return payload


class TestUpsertTest:

    def test_creates_normalized_questions(self, app):
        test = AuthoringService.upsert_test(_payload())

        questions = test.questions
        assert [q.question_type for q in questions] == ['gap', 'mcq', 'match']
        assert questions[0].answer_key == ['Harbour']
        assert questions[1].answer_key == 'C'
        assert questions[2].answer_key == [['15', 'F'], ['16', 'A']]
        assert questions[2].section_number == 2

    def test_update_replaces_questions(self, app):
        AuthoringService.upsert_test(_payload())
        test = AuthoringService.upsert_test(_payload(
            title='Renamed',
            questions=[{'questionNumber': 1, 'type': 'gap', 'answerKey': ['harbour', 'harbor']}],
        ))

        assert test.title == 'Renamed'
        assert ListeningQuestion.query.filter_by(test_id=test.test_id).count() == 1
        assert test.questions[0].answer_key == ['harbour', 'harbor']

    def test_refuses_to_replace_questions_with_attempts(self, app, make_user):
        test = AuthoringService.upsert_test(_payload())
        user = make_user()
        db.session.add(ListeningAttempt(user_id=user.user_id, test_id=test.test_id))
        db.session.commit()

        with pytest.raises(ValidationError):
            AuthoringService.upsert_test(_payload(title='Changed'))

        assert ListeningQuestion.query.filter_by(test_id=test.test_id).count() == 3

    def test_unknown_id(self, app):
        with pytest.raises(NotFoundError):
            AuthoringService.upsert_test(_payload(id=999))

    def test_number_like_gap_keys_are_stored_verbatim(self, app):
        test = AuthoringService.upsert_test(_payload(questions=[
            {'questionNumber': 1, 'type': 'gap', 'answerKey': '4.50'},
            {'questionNumber': 2, 'type': 'gap', 'answerKey': '1e3'},
        ]))

        assert [q.answer_key for q in test.questions] == [['4.50'], ['1e3']]

    def test_renaming_to_a_taken_slug_is_a_validation_error(self, app):
        AuthoringService.upsert_test(_payload(slug='one'))
        second = AuthoringService.upsert_test(_payload(slug='two'))

        with pytest.raises(ValidationError) as excinfo:
            AuthoringService.upsert_test(_payload(id=second.test_id, slug='one'))

        assert excinfo.value.status_code == 400
        assert 'retryable' not in (excinfo.value.details or {})
        assert db.session.get(ListeningTest, second.test_id).slug == 'two'

    def test_constraint_violation_on_commit_is_not_retryable(self, app, monkeypatch):
        def _conflict():
            raise IntegrityError('INSERT', {}, Exception('UNIQUE constraint failed: listening_tests.slug'))

        monkeypatch.setattr(db.session, 'commit', _conflict)

        with pytest.raises(ValidationError) as excinfo:
            AuthoringService.upsert_test(_payload())

        assert excinfo.value.status_code == 400
        assert excinfo.value.details == {'errors': {'slug': 'cambridge-19-1'}}


class TestValidation:

    @pytest.mark.parametrize('overrides', [
        {'slug': ''},
        {'title': None},
        {'durationSeconds': 0},
        {'durationSeconds': 'long'},
        {'questions': []},
        {'questions': [{'questionNumber': 0, 'type': 'mcq', 'answerKey': 'A'}]},
        {'questions': [
            {'questionNumber': 1, 'type': 'mcq', 'answerKey': 'A'},
            {'questionNumber': 1, 'type': 'mcq', 'answerKey': 'B'},
        ]},
    ])
    def test_rejects_invalid_payload(self, app, overrides):
        with pytest.raises(ValidationError):
            AuthoringService.upsert_test(_payload(**overrides))

    @pytest.mark.parametrize('question', [
        {'questionNumber': 1, 'type': 'true_false', 'answerKey': 'T'},
        {'questionNumber': 1, 'type': 'gap', 'answerKey': ['']},
        {'questionNumber': 1, 'type': 'matching', 'answerKey': 'A'},
        {'questionNumber': 1, 'type': 'mcq', 'sectionNumber': 7, 'answerKey': 'A'},
    ])
    def test_rejects_broken_questions(self, app, question):
        with pytest.raises(DataIntegrityError):
            AuthoringService.upsert_test(_payload(questions=[question]))
