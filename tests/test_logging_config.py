"""
Tests for the logging setup.
"""

import json
import logging

from bandscore_app.core.logging_config import JsonFormatter, ROOT_LOGGER_NAME, setup_logging


class TestJsonFormatter:

    def test_message_with_quotes_stays_valid_json(self):
        record = logging.LogRecord('bandscore.listening', logging.INFO, __file__, 1, 'answer was "%s"', ('Paris',), None)

        entry = json.loads(JsonFormatter().format(record))

        assert entry['message'] == 'answer was "Paris"'
        assert entry['level'] == 'INFO'
        assert entry['logger'] == 'bandscore.listening'


class TestSetupLogging:

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        setup_logging(log_dir=str(tmp_path))
        logger = setup_logging(log_dir=str(tmp_path), json_format=True)

        assert logger.name == ROOT_LOGGER_NAME
        assert len(logger.handlers) == 2
        assert all(isinstance(h.formatter, JsonFormatter) for h in logger.handlers)
        assert (tmp_path / 'bandscore.log').exists()
