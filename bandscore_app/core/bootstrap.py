"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify

from ..extensions import csrf_protect, db, login_manager, migrate, scheduler
from .error_handlers import register_error_handlers
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Configure application logging if no handlers are present."""

    setup_logging(
        app,
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_dir=app.config.get("LOG_DIR"),
        json_format=app.config.get("LOG_JSON", False),
    )

    if app.logger.handlers:
        return

    app.logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)
    app.logger.propagate = False
    app.logger.info("Flask app logger configured successfully.")


def register_extensions(app: Flask) -> None:
    """Initialize shared extensions with the Flask app instance."""

    db.init_app(app)
    login_manager.init_app(app)
    csrf_protect.init_app(app)
    migrate.init_app(app, db)


def register_auth_handlers(app: Flask) -> None:
    """Wire Flask-Login to the User model and answer 401 for API callers."""

    @login_manager.user_loader
    def load_user(user_id: str):
        from ..models import User

        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({
            'success': False,
            'message': 'Authentication required',
            'code': 'UNAUTHENTICATED',
        }), 401


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)
    register_error_handlers(app)


def start_scheduler(app: Flask) -> None:
    """Start APScheduler and register the listening auto-submit sweep."""

    if not app.config.get("LISTENING_AUTO_SUBMIT_ENABLED", False):
        app.logger.info("Auto-submit sweep disabled by configuration.")
        return

    # Under the reloader only the child process runs jobs
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        return

    from apscheduler.schedulers import SchedulerAlreadyRunningError
    from ..modules.listening.services.auto_submit import run_auto_submit_job

    try:
        scheduler.init_app(app)
        if not scheduler.running:
            scheduler.start()

        if not scheduler.get_job('listening_auto_submit'):
            scheduler.add_job(
                id='listening_auto_submit',
                func=run_auto_submit_job,
                args=[app],
                trigger='interval',
                seconds=app.config.get("LISTENING_AUTO_SUBMIT_INTERVAL_SECONDS", 60),
                replace_existing=True,
                max_instances=1,
            )
            app.logger.info("Registered listening auto-submit job.")
    except SchedulerAlreadyRunningError:
        app.logger.info("Scheduler already running, skipping re-initialisation.")


def initialize_database(app: Flask) -> None:
    """Create database tables."""

    from .. import models  # noqa: F401  (register mappers)

    db.create_all()
    app.logger.info("Database tables ensured.")
