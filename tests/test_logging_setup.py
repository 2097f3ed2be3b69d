import logging
from logging.handlers import RotatingFileHandler

import pytest

from flowspeed.logging_setup import build_handlers, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    scheduler_level = logging.getLogger("apscheduler").level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("apscheduler").setLevel(scheduler_level)


def test_file_only_by_default(app_config):
    handlers = build_handlers(app_config)
    try:
        assert len(handlers) == 1
        handler = handlers[0]
        assert isinstance(handler, RotatingFileHandler)
        assert handler.baseFilename == str(app_config.paths.logs_dir / "flowspeed.log")
        assert handler.maxBytes == 1024 * 1024
        assert handler.backupCount == 3
    finally:
        for handler in handlers:
            handler.close()


def test_console_handler_is_opt_in(app_config):
    app_config.logging.console = True
    handlers = build_handlers(app_config)
    try:
        assert [type(h) for h in handlers] == [RotatingFileHandler, logging.StreamHandler]
    finally:
        for handler in handlers:
            handler.close()


def test_configure_logging_writes_runner_messages(app_config, restore_root_logger):
    app_config.logging.level = "debug"
    configure_logging(app_config)

    logging.getLogger("flowspeed.measurements.runner").info("Starting speed test run")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("apscheduler").level == logging.WARNING
    text = (app_config.paths.logs_dir / "flowspeed.log").read_text(encoding="utf-8")
    assert "[INFO] flowspeed.measurements.runner - Starting speed test run" in text
