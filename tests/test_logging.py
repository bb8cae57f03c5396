import logging

from pharma_ocr.logging import get_logger


def test_loggers_are_namespaced_and_configured_once(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    first = get_logger("logging-namespace")
    second = get_logger("logging-namespace")
    assert first is second
    assert first.name == "pharma_ocr.logging-namespace"
    assert len(first.handlers) == 1
    assert first.propagate is False


def test_unopenable_log_file_keeps_stream_logging(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "missing-dir" / "ocr.log"))
    logger = get_logger("logging-bad-file")
    assert logger.handlers
    assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
