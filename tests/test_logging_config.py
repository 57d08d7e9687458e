"""Tests for structured logging setup (logging_config.py)."""

from __future__ import annotations

import json
import logging

import pytest

from ticketflow_core.logging_config import (
    _HumanFormatter,
    _JSONFormatter,
    operation_context,
    setup_logging,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("ticketflow_engine", logging.INFO, __file__, 1,
                               msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestFormatters:
    def test_operation_context_order(self):
        rec = _record(code="EventSoldOut", op="mint", collection="SUMMER")
        assert list(operation_context(rec)) == ["op", "collection", "code"]

    def test_operation_context_empty(self):
        assert operation_context(_record()) == {}

    def test_json_includes_context(self):
        rec = _record("#1 minted", op="mint", collection="SUMMER", token_id=1)
        obj = json.loads(_JSONFormatter().format(rec))
        assert obj["msg"] == "#1 minted"
        assert obj["level"] == "INFO"
        assert obj["logger"] == "ticketflow_engine"
        assert obj["op"] == "mint"
        assert obj["token_id"] == 1

    def test_human_tag(self):
        out = _HumanFormatter(colour=False).format(
            _record("refund rejected", op="refund", collection="JAZZ"))
        assert "ticketflow_engine (refund JAZZ): refund rejected" in out
        assert "\033[" not in out

    def test_human_without_context(self):
        out = _HumanFormatter(colour=False).format(_record("plain"))
        assert out.endswith("ticketflow_engine: plain")

    def test_human_colour(self):
        out = _HumanFormatter(colour=True).format(_record())
        assert out.startswith("\033[32m")


class TestSetupLogging:
    def test_level_and_handler(self, restore_root):
        setup_logging(level="debug")
        assert restore_root.level == logging.DEBUG
        assert len(restore_root.handlers) == 1

    def test_json_format(self, restore_root):
        setup_logging(fmt="json")
        assert isinstance(restore_root.handlers[0].formatter, _JSONFormatter)

    def test_log_file(self, restore_root, tmp_path):
        path = tmp_path / "logs" / "tf.log"
        setup_logging(log_file=str(path))
        logging.getLogger("ticketflow_engine").info(
            "to file", extra={"op": "mint", "collection": "X"})
        for h in restore_root.handlers:
            h.flush()
        line = path.read_text().strip().splitlines()[-1]
        assert json.loads(line)["op"] == "mint"

    def test_logger_levels(self, restore_root):
        setup_logging(logger_levels={"ticketflow_registry": "ERROR"})
        assert logging.getLogger("ticketflow_registry").level == logging.ERROR
        logging.getLogger("ticketflow_registry").setLevel(logging.NOTSET)
