import json
import logging

import structlog

from dispatch_migration.core.logging import configure_logging


def test_json_logs_carry_event_fields(capsys):
    configure_logging("INFO", json_logs=True)
    logger = structlog.get_logger("dispatch_migration.tests")

    logger.info("batch_completed", entity="offices", batch=2)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["message"] == "batch_completed"
    assert record["level"] == "INFO"
    assert record["entity"] == "offices"
    assert record["batch"] == 2
    assert "timestamp" in record


def test_level_filters_debug(capsys):
    configure_logging("WARNING", json_logs=True)
    logger = structlog.get_logger("dispatch_migration.tests")

    logger.info("ignored")
    logger.warning("kept")

    err = capsys.readouterr().err
    assert "ignored" not in err
    assert "kept" in err


def test_console_renderer_for_stdlib_loggers(capsys):
    configure_logging("INFO", json_logs=False)
    logging.getLogger("alembic").info("upgrade done")

    assert "upgrade done" in capsys.readouterr().err


def test_sqlalchemy_engine_is_quiet():
    configure_logging("DEBUG")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
