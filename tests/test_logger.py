"""
Logger setup tests
"""

import logging
from datetime import date

from kladde.utils.logger import log_file_path, quiet_library_loggers, setup_logger


class TestSetupLogger:
    def test_console_and_daily_file(self, tmp_path):
        logger = setup_logger('kladde.tests.fresh', log_dir=tmp_path / 'logs')
        try:
            assert len(logger.handlers) == 2
            logger.info("Spieltag angelegt")
            for handler in logger.handlers:
                handler.flush()
            assert "Spieltag angelegt" in log_file_path(tmp_path / 'logs').read_text(encoding='utf-8')
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_repeated_setup_keeps_handlers(self, tmp_path):
        logger = setup_logger('kladde.tests.repeat', log_dir=tmp_path)
        try:
            assert setup_logger('kladde.tests.repeat', log_dir=tmp_path) is logger
            assert len(logger.handlers) == 2
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_log_file_name(self, tmp_path):
        assert log_file_path(tmp_path, date(2026, 2, 20)) == tmp_path / 'kladde_20260220.log'


class TestLibraryLoggers:
    def test_quiet_outside_debug(self):
        quiet_library_loggers(debug=False)
        assert logging.getLogger('sqlalchemy.engine').level == logging.WARNING
        assert logging.getLogger('discord.http').level == logging.WARNING

        quiet_library_loggers(debug=True)
        assert logging.getLogger('discord').level == logging.DEBUG
