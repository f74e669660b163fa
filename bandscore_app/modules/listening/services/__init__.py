from .attempt_service import AttemptService
from .attempt_store import AttemptStore, SqlAlchemyAttemptStore
from .authoring_service import AuthoringService
from .auto_submit import auto_submit_expired, run_auto_submit_job
from .review_service import ReviewService
from .submission_service import SubmissionOrchestrator

__all__ = [
    'AttemptService',
    'AttemptStore',
    'SqlAlchemyAttemptStore',
    'AuthoringService',
    'auto_submit_expired',
    'run_auto_submit_job',
    'ReviewService',
    'SubmissionOrchestrator',
]
