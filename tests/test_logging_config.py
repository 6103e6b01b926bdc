"""Tests for logging_config.setup_logging."""

import json
import logging
import sys

import pytest

from logging_config import JsonFormatter, _parse_level, setup_logging

OUR_HANDLERS = ("africa_universe_file", "africa_universe_console")


@pytest.fixture(autouse=True)
def restore_root(monkeypatch):
    monkeypatch.delenv("AFRICA_UNIVERSE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("AFRICA_UNIVERSE_LOG_FILE", raising=False)
    root = logging.getLogger()
    old_level = root.level
    yield
    for handler in list(root.handlers):
        if handler.name in OUR_HANDLERS:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(old_level)


def our_handlers():
    return [h for h in logging.getLogger().handlers if h.name in OUR_HANDLERS]


class TestSetupLogging:
    def test_file_handler_created(self, tmp_path):
        log_file = tmp_path / "client.log"
        setup_logging(log_file=str(log_file))
        handlers = our_handlers()
        assert [h.name for h in handlers] == ["africa_universe_file"]
        assert handlers[0].level == logging.INFO

        logging.getLogger("net.channel").warning("Disconnected from test")
        handlers[0].flush()
        assert "Disconnected from test" in log_file.read_text(encoding="utf-8")

    def test_idempotent(self, tmp_path):
        log_file = str(tmp_path / "client.log")
        setup_logging(log_file=log_file, enable_console=True)
        setup_logging(log_file=log_file, enable_console=True, level="DEBUG")
        handlers = our_handlers()
        assert len(handlers) == 2
        file_handler = next(h for h in handlers if h.name == "africa_universe_file")
        assert file_handler.level == logging.DEBUG

    def test_console_level(self, tmp_path):
        setup_logging(log_file=str(tmp_path / "c.log"), enable_console=True, console_level="ERROR")
        console = next(h for h in our_handlers() if h.name == "africa_universe_console")
        assert console.level == logging.ERROR

    def test_env_overrides(self, tmp_path, monkeypatch):
        env_file = tmp_path / "env.log"
        monkeypatch.setenv("AFRICA_UNIVERSE_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("AFRICA_UNIVERSE_LOG_FILE", str(env_file))
        setup_logging(level="DEBUG", log_file=str(tmp_path / "ignored.log"))
        handler = our_handlers()[0]
        assert handler.level == logging.WARNING
        assert handler.baseFilename == str(env_file)

    def test_file_disabled(self):
        setup_logging(enable_file=False)
        assert our_handlers() == []

    def test_json_format(self, tmp_path):
        log_file = tmp_path / "client.jsonl"
        setup_logging(log_file=str(log_file), json_format=True)
        logging.getLogger("net.router").warning("Dropping inbound frame: x")
        for h in our_handlers():
            h.flush()
        lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        entry = next(e for e in lines if e["logger"] == "net.router")
        assert entry["level"] == "WARNING"
        assert entry["message"] == "Dropping inbound frame: x"


class TestHelpers:
    @pytest.mark.parametrize("value, expected", [
        ("debug", logging.DEBUG),
        (" Warning ", logging.WARNING),
        ("", logging.INFO),
        ("nonsense", logging.INFO),
        (logging.ERROR, logging.ERROR),
    ])
    def test_parse_level(self, value, expected):
        assert _parse_level(value) == expected

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("bad frame")
        except ValueError:
            record = logging.LogRecord("net.router", logging.ERROR, __file__, 1, "failed",
                                       None, exc_info=sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert entry["message"] == "failed"
        assert "ValueError: bad frame" in entry["exception"]
