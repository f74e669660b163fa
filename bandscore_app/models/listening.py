from datetime import datetime, timezone

from sqlalchemy.types import JSON

from ..db_instance import db


def _utcnow():
    return datetime.now(timezone.utc)


class ListeningTest(db.Model):
    """A published Listening paper (normally 40 questions over four sections)."""

    __tablename__ = 'listening_tests'

    test_id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    duration_seconds = db.Column(db.Integer, nullable=False, default=30 * 60)
    is_mock = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    questions = db.relationship(
        'ListeningQuestion',
        backref='test',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='ListeningQuestion.question_number',
    )

    def to_dict(self, include_questions=False):
        data = {
            'test_id': self.test_id,
            'slug': self.slug,
            'title': self.title,
            'description': self.description,
            'duration_seconds': self.duration_seconds,
            'is_mock': self.is_mock,
            'question_count': len(self.questions),
        }
        if include_questions:
            data['questions'] = [q.to_dict() for q in self.questions]
        return data


class ListeningQuestion(db.Model):
    """
    One question of a test.

    ``question_type`` is always one of ``mcq``, ``gap`` or ``match``; richer
    source names are normalized when the test is authored.
    """

    __tablename__ = 'listening_questions'

    question_id = db.Column(db.Integer, primary_key=True)
    test_id = db.Column(db.Integer, db.ForeignKey('listening_tests.test_id'), nullable=False, index=True)
    question_number = db.Column(db.Integer, nullable=False)
    section_number = db.Column(db.Integer, nullable=False)
    question_type = db.Column(db.String(20), nullable=False)
    prompt = db.Column(db.Text)
    # mcq: "B" | gap: ["colour", "color"] | match: [["1", "A"], ["2", "C"]]
    answer_key = db.Column(JSON, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('test_id', 'question_number', name='_test_question_number_uc'),
    )

    def to_dict(self):
        return {
            'question_id': self.question_id,
            'question_number': self.question_number,
            'section_number': self.section_number,
            'question_type': self.question_type,
            'prompt': self.prompt,
            'answer_key': self.answer_key,
        }


class ListeningAttempt(db.Model):
    """A candidate's run through one test."""

    __tablename__ = 'listening_attempts'

    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_AUTO_SUBMITTED = 'auto_submitted'
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_AUTO_SUBMITTED)

    attempt_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    test_id = db.Column(db.Integer, db.ForeignKey('listening_tests.test_id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_IN_PROGRESS, index=True)

    started_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)
    completed_at = db.Column(db.DateTime(timezone=True))
    duration_seconds = db.Column(db.Integer)

    # Set exactly once, at the terminal transition
    raw_score = db.Column(db.Integer)
    total_questions = db.Column(db.Integer)
    band_score = db.Column(db.Float)
    section_scores = db.Column(JSON)

    test = db.relationship('ListeningTest', lazy=True)
    answers = db.relationship(
        'ListeningAnswer', backref='attempt', lazy='dynamic', cascade='all, delete-orphan'
    )

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class ListeningAnswer(db.Model):
    """Latest answer for one question of one attempt."""

    __tablename__ = 'listening_answers'

    answer_id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey('listening_attempts.attempt_id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('listening_questions.question_id'), nullable=False)
    raw_value = db.Column(JSON)
    normalized_value = db.Column(db.Text)
    is_correct = db.Column(db.Boolean)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    question = db.relationship('ListeningQuestion', lazy=True)

    __table_args__ = (
        db.UniqueConstraint('attempt_id', 'question_id', name='_attempt_question_uc'),
    )
