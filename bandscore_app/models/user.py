from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from ..db_instance import db


class User(UserMixin, db.Model):
    """Application user model."""

    __tablename__ = 'users'

    ROLE_ADMIN = 'admin'
    ROLE_USER = 'user'
    ROLE_LABELS = {
        ROLE_ADMIN: 'Administrator',
        ROLE_USER: 'Candidate',
    }

    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    user_role = db.Column(db.String(50), default=ROLE_USER, nullable=False)
    last_seen = db.Column(db.DateTime(timezone=True))

    listening_attempts = db.relationship(
        'ListeningAttempt', backref='user', lazy='dynamic', cascade='all, delete-orphan'
    )

    def get_id(self):
        return str(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.user_role == self.ROLE_ADMIN

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)
