# File: bandscore_app/core/config.py
# Core Infrastructure Layer: application configuration

import os
from dotenv import load_dotenv

load_dotenv()

# bandscore_app/core/ -> project root is two levels up
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))

DATABASE_PATH = os.path.join(BASE_DIR, "database", "bandscore.db")


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """BandScore application configuration."""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Fallback for development, env is preferred
        SECRET_KEY = 'dev-secret-key-replace-in-production'

    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'connect_args': {'timeout': 30},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'logs')
    LOG_JSON = _env_bool('LOG_JSON', False)

    # Listening engine
    LISTENING_STORAGE_TIMEOUT_SECONDS = float(os.environ.get('LISTENING_STORAGE_TIMEOUT_SECONDS', 10))
    LISTENING_AUTO_SUBMIT_ENABLED = _env_bool('LISTENING_AUTO_SUBMIT_ENABLED', True)
    LISTENING_AUTO_SUBMIT_INTERVAL_SECONDS = int(os.environ.get('LISTENING_AUTO_SUBMIT_INTERVAL_SECONDS', 60))
    LISTENING_AUTO_SUBMIT_GRACE_SECONDS = int(os.environ.get('LISTENING_AUTO_SUBMIT_GRACE_SECONDS', 30))

    # Flask-APScheduler
    SCHEDULER_API_ENABLED = False

    @classmethod
    def init_app(cls, app):
        """Create the directories the app writes to."""
        if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///'):
            os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
        os.makedirs(app.config['LOG_DIR'], exist_ok=True)
