"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging


class TestJSONFormatter:
    def test_json_output(self):
        from omnitrade.logging_config import JSONFormatter

        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="omnitrade.scheduler.daemon",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Tick done: alerts=%d",
            args=(2,),
            exc_info=None,
        )
        record.tick_id = "abc123"

        data = json.loads(formatter.format(record))
        assert data["level"] == "INFO"
        assert data["logger"] == "omnitrade.scheduler.daemon"
        assert data["msg"] == "Tick done: alerts=2"
        assert data["tick_id"] == "abc123"
        assert "ts" in data

    def test_json_without_tick_id(self):
        from omnitrade.logging_config import JSONFormatter

        record = logging.LogRecord(
            name="test", level=logging.WARNING, pathname="", lineno=0, msg="no tick", args=(), exc_info=None
        )
        data = json.loads(JSONFormatter().format(record))
        assert data["tick_id"] == ""
        assert data["level"] == "WARNING"


class TestSetupLogging:
    def test_setup_returns_tick_id(self, tmp_path):
        from omnitrade.logging_config import setup_logging

        tick_id = setup_logging(log_dir=tmp_path)
        assert len(tick_id) == 12
        assert tick_id.isalnum()

        # Reset logging
        logging.getLogger().handlers.clear()

    def test_defaults_to_data_dir_logs(self, data_dir):
        from omnitrade.logging_config import setup_logging

        setup_logging()
        assert (data_dir / "logs").is_dir()

        logging.getLogger().handlers.clear()

    def test_structured_file_output(self, tmp_path):
        from omnitrade.logging_config import LOG_FILENAME, setup_logging

        setup_logging(structured=True, log_dir=tmp_path)
        logging.getLogger("omnitrade.test").info("hello", extra={"tick_id": "t1"})
        for h in logging.getLogger().handlers:
            h.flush()
        line = (tmp_path / LOG_FILENAME).read_text().strip().splitlines()[-1]
        assert json.loads(line)["tick_id"] == "t1"

        for h in logging.getLogger().handlers:
            h.close()
        logging.getLogger().handlers.clear()


class TestTickLoggerAdapter:
    def test_injects_tick_id(self, caplog):
        from omnitrade.logging_config import TickLoggerAdapter

        log = TickLoggerAdapter(logging.getLogger("omnitrade.test"), {"tick_id": "xyz"})
        with caplog.at_level(logging.INFO):
            log.info("tick")
        assert caplog.records[-1].tick_id == "xyz"
