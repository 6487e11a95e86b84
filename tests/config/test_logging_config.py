import logging
from pathlib import Path

from colis_dashboard.config.logging_config import default_log_path, get_logger


def test_default_log_path():
    assert default_log_path("/x/y/import.xlsx") == Path("/x/y/import.log")
    assert default_log_path("colis.json") == Path("colis.log")


def test_get_logger_idempotent_no_duplicate_handlers(tmp_path):
    log_path = tmp_path / "run.log"
    logger = get_logger("colis.test.idem", level="DEBUG",
                        log_file=log_path, console=False)
    logger2 = get_logger("colis.test.idem", level="DEBUG",
                         log_file=log_path, console=False)

    assert logger is logger2
    assert len(logger.handlers) == 1


def test_get_logger_adds_console_once():
    get_logger("colis.test.console", level="INFO", console=True)
    logger = get_logger("colis.test.console", level="INFO", console=True)
    shs = [h for h in logger.handlers
           if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)]
    assert len(shs) == 1


def test_get_logger_writes_pipe_separated_lines(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    logger = get_logger("colis.test.file", level="INFO",
                        log_file=log_file, console=False)
    logger.info("hello world")
    for h in logger.handlers:
        h.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "| INFO | colis.test.file | hello world" in content


def test_get_logger_respects_level_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    log_file = tmp_path / "lvl.log"
    logger = get_logger("colis.test.level.env", log_file=log_file, console=False)

    logger.info("should NOT appear")
    logger.error("should appear")
    for h in logger.handlers:
        h.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "should appear" in text
    assert "should NOT appear" not in text
