# File: bandscore_app/modules/listening/routes/api.py
from flask import jsonify, request
from flask_login import current_user, login_required
from marshmallow import ValidationError as MarshmallowValidationError

from bandscore_app.core.error_handlers import AuthorizationError, ValidationError

from .. import blueprint
from ..interface import ListeningInterface
from ..schemas import AutosavePayloadSchema, StartAttemptPayloadSchema, SubmitPayloadSchema


def _json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _load(schema_class):
    """Validate the JSON body, translating marshmallow errors into a 400."""
    try:
        return schema_class().load(_json_body())
    except MarshmallowValidationError as exc:
        raise ValidationError('Invalid request payload', errors=exc.messages)


@blueprint.route('/submit', methods=['POST'])
@login_required
def submit_attempt():
    data = _load(SubmitPayloadSchema)
    result = ListeningInterface.submit_attempt(
        current_user.user_id,
        data['attempt_id'],
        answers=data['answers'],
        auto_submit=data['auto_submit'],
        duration_seconds=data['duration_seconds'],
    )
    return jsonify(result.to_dict())


@blueprint.route('/attempts', methods=['POST'])
@login_required
def start_attempt():
    data = _load(StartAttemptPayloadSchema)
    attempt = ListeningInterface.start_attempt(
        current_user.user_id,
        test_id=data['test_id'],
        test_slug=data['test_slug'],
    )
    return jsonify({'attempt': attempt.to_dict()}), 201


@blueprint.route('/attempts/<int:attempt_id>/autosave', methods=['POST'])
@login_required
def autosave_attempt(attempt_id):
    data = _load(AutosavePayloadSchema)
    saved = ListeningInterface.autosave(
        current_user.user_id,
        attempt_id,
        data['answers'],
        duration_seconds=data['duration_seconds'],
    )
    return jsonify({'ok': True, 'saved': saved})


@blueprint.route('/attempts/<int:attempt_id>', methods=['GET'])
@login_required
def get_attempt_review(attempt_id):
    return jsonify(ListeningInterface.get_attempt_review(current_user.user_id, attempt_id))


@blueprint.route('/attempts/<int:attempt_id>/question-types', methods=['GET'])
@login_required
def get_question_type_breakdown(attempt_id):
    breakdown = ListeningInterface.question_type_breakdown(current_user.user_id, attempt_id)
    return jsonify({'attemptId': attempt_id, 'questionTypes': breakdown})


@blueprint.route('/analytics/summary', methods=['GET'])
@login_required
def get_summary():
    limit = request.args.get('limit', type=int)
    summary = ListeningInterface.get_user_summary(current_user.user_id, limit=limit)
    return jsonify(summary.to_dict())


@blueprint.route('/admin/tests', methods=['POST'])
@login_required
def upsert_test():
    if not current_user.is_admin:
        raise AuthorizationError('Admin access required')

    test = ListeningInterface.upsert_test(_json_body())
    return jsonify({'test': test.to_dict(include_questions=True)})
