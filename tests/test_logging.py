from __future__ import annotations

import logging
from pathlib import Path

from deepcopygen.logging import configure_logging, console_level, get_logger


def test_console_level_prefers_verbose() -> None:
    assert console_level() == logging.INFO
    assert console_level(quiet=True) == logging.WARNING
    assert console_level(verbose=True, quiet=True) == logging.DEBUG


def test_log_file_records_debug_messages(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.log"
    logger = configure_logging(quiet=True, log_file=log_file)
    get_logger("strategy").debug("per-type decision")

    assert len(logger.handlers) == 2
    assert "per-type decision" in log_file.read_text(encoding="utf-8")

    configure_logging()
    assert len(logger.handlers) == 1
