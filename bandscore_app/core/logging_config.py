"""
Logging for BandScore

Everything under the ``bandscore`` logger hierarchy goes to the console and
to a rotating ``bandscore.log``. ``LOG_JSON`` switches both to one JSON
object per line so scoring events can be shipped to a log pipeline.
"""

import json
import logging
import logging.handlers
import os
from typing import Optional

ROOT_LOGGER_NAME = 'bandscore'
LOG_FILE_NAME = 'bandscore.log'
TEXT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class JsonFormatter(logging.Formatter):
    """One JSON object per record; the message is escaped, not templated."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': self.formatTime(record, DATE_FORMAT),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _default_log_dir() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'logs')


def setup_logging(
    app=None,
    log_level: str = 'INFO',
    log_dir: Optional[str] = None,
    json_format: bool = False
) -> logging.Logger:
    """
    Attach console and rotating-file handlers to the ``bandscore`` logger.

    Safe to call once per app instance: existing handlers are replaced, so
    repeated app factories (tests) do not duplicate output.
    """
    log_dir = log_dir or _default_log_dir()
    os.makedirs(log_dir, exist_ok=True)
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    formatter = JsonFormatter() if json_format else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    for handler in (console_handler, file_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if app is not None:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)

    logger.info(f"Logging initialized: level={logging.getLevelName(level)}, dir={log_dir}, json={json_format}")
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Child of the ``bandscore`` logger, e.g. ``bandscore.listening.store``."""
    return logging.getLogger(name)
