"""Tests for structured logging configuration."""

import io
import logging

import structlog

from app.core.logging_config import configure_logging


def _capture(logger_name: str) -> io.StringIO:
    """Attach a JSON-rendering handler to one stdlib logger."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
            ],
        )
    )
    logger = logging.getLogger(logger_name)
    logger.handlers = [handler]
    logger.setLevel(logging.INFO)
    return stream


def test_configure_logging_installs_single_root_handler():
    configure_logging()
    configure_logging()
    assert len(logging.getLogger().handlers) == 1


def test_noisy_libraries_are_quieted():
    configure_logging()
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_execution_context_propagates():
    configure_logging()
    stream = _capture("test.execution")

    structlog.contextvars.clear_contextvars()
    with structlog.contextvars.bound_contextvars(execution_id="exec-42"):
        logging.getLogger("test.execution").info("node finished")
    logging.getLogger("test.execution").info("after execution")

    first, second = stream.getvalue().strip().splitlines()
    assert "exec-42" in first
    assert "execution_id" not in second
    structlog.contextvars.clear_contextvars()
