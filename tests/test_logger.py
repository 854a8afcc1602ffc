"""Tests for logger.py -- setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from rulekeeper.logger import JsonFormatter, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_logs_to_stderr(self, mock_basic):
        setup_logging()

        kwargs = mock_basic.call_args[1]
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr
        assert kwargs["force"] is True

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_default_level_is_warning(self, mock_basic):
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_env_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "info")
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_config_level_used_when_env_unset(self, mock_basic):
        setup_logging(default_level="ERROR")
        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_debug_overrides_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_invalid_level_falls_back(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_log_file_adds_handler(self, mock_basic, tmp_path):
        log_file = tmp_path / "rk.log"
        setup_logging(log_file=str(log_file))

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        handlers[1].close()

    @patch("rulekeeper.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(debug_format="json")
        handler = mock_basic.call_args[1]["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)


class TestJsonFormatter:
    def test_single_line_json(self):
        record = logging.LogRecord(
            name="rulekeeper.sync.engine",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Rule '%s' not found",
            args=("vue",),
            exc_info=None,
        )
        output = JsonFormatter().format(record)

        assert "\n" not in output
        data = json.loads(output)
        assert data["level"] == "WARNING"
        assert data["logger"] == "rulekeeper.sync.engine"
        assert data["msg"] == "Rule 'vue' not found"
