# modules/listening/events.py
from blinker import Namespace

from bandscore_app.core.logging_config import get_logger

_signals = Namespace()

# Sent once per attempt, right after the terminal transition is committed
attempt_submitted = _signals.signal('listening-attempt-submitted')

logger = get_logger('bandscore.listening.events')


def log_attempt_submitted(sender, **extra):
    """Write the analytics line for a newly scored attempt."""
    logger.info(
        "listening_attempt_submitted attempt=%s user=%s test=%s raw=%s/%s band=%s status=%s",
        extra.get('attempt_id'),
        extra.get('user_id'),
        extra.get('test_id'),
        extra.get('raw_score'),
        extra.get('total_questions'),
        extra.get('band_score'),
        extra.get('status'),
    )


def init_events(app):
    """Connect the module's own receivers. Other modules connect theirs directly."""
    attempt_submitted.connect(log_attempt_submitted)
