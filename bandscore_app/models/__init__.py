"""Database models package for BandScore."""

from ..db_instance import db

from .user import User
from .listening import (
    ListeningAnswer,
    ListeningAttempt,
    ListeningQuestion,
    ListeningTest,
)

__all__ = [
    'db',
    'User',
    'ListeningTest',
    'ListeningQuestion',
    'ListeningAttempt',
    'ListeningAnswer',
]
