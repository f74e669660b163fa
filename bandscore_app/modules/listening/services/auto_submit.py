# File: bandscore_app/modules/listening/services/auto_submit.py
from datetime import datetime, timezone
from typing import List, Optional

from bandscore_app.core.error_handlers import BandScoreError
from bandscore_app.core.logging_config import get_logger

from .attempt_store import AttemptStore, SqlAlchemyAttemptStore
from .submission_service import SubmissionOrchestrator

logger = get_logger('bandscore.listening.auto_submit')


def auto_submit_expired(store: AttemptStore, now: Optional[datetime] = None, grace_seconds: int = 0) -> List[int]:
    """
    Auto-submit every in-progress attempt that ran out of time.

    One failing attempt is logged and skipped. Returns the ids that were
    submitted by this sweep.
    """
    now = now or datetime.now(timezone.utc)
    orchestrator = SubmissionOrchestrator(store)

    submitted = []
    for attempt in store.list_expired_attempts(now, grace_seconds=grace_seconds):
        try:
            orchestrator.submit(attempt.user_id, attempt.attempt_id, auto_submit=True)
        except BandScoreError as exc:
            logger.error(f"Auto-submit failed for attempt {attempt.attempt_id}: {exc.message}")
            continue
        submitted.append(attempt.attempt_id)

    if submitted:
        logger.info(f"Auto-submitted {len(submitted)} expired attempts: {submitted}")
    return submitted


def run_auto_submit_job(app):
    """APScheduler entry point; runs one sweep inside an app context."""
    from bandscore_app.models import db

    with app.app_context():
        store = SqlAlchemyAttemptStore(
            db.session,
            timeout_seconds=app.config.get('LISTENING_STORAGE_TIMEOUT_SECONDS'),
        )
        try:
            return auto_submit_expired(
                store,
                grace_seconds=app.config.get('LISTENING_AUTO_SUBMIT_GRACE_SECONDS', 0),
            )
        except BandScoreError as exc:
            logger.error(f"Auto-submit sweep aborted: {exc.message}")
            return []
        finally:
            db.session.remove()
