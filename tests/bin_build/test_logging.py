"""Structured logging helpers coverage."""

from __future__ import annotations

import json
import logging

import pytest

from BinBuild.logging_utils import (
    CorrelationAdapter,
    JSONFormatter,
    generate_correlation_id,
    setup_logging,
)


@pytest.fixture
def restore_binbuild_logger():
    logger = logging.getLogger("BinBuild")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord(
        {"name": "BinBuild.test", "levelname": "INFO", "levelno": logging.INFO, "msg": "hello %s", "args": ("world",)}
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_and_extras():
    payload = json.loads(
        JSONFormatter().format(_record(correlation_id="abc123", stage="download", url="https://x"))
    )

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "BinBuild.test"
    assert payload["correlation_id"] == "abc123"
    assert payload["stage"] == "download"
    assert payload["url"] == "https://x"
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_masks_credentials():
    payload = json.loads(JSONFormatter().format(_record(token="s3cr3t")))
    assert payload["token"] == "***masked***"


def test_correlation_ids_are_unique():
    first, second = generate_correlation_id(), generate_correlation_id()
    assert len(first) == 12
    assert first != second


def test_correlation_adapter_merges_call_extra(caplog):
    adapter = CorrelationAdapter(logging.getLogger("BinBuild.test"), {"correlation_id": "cid"})
    with caplog.at_level(logging.INFO, logger="BinBuild.test"):
        adapter.info("stage change", extra={"stage": "remap"})

    record = caplog.records[-1]
    assert record.correlation_id == "cid"
    assert record.stage == "remap"


def test_setup_logging_writes_json_lines(tmp_path, restore_binbuild_logger):
    logger = setup_logging(level="DEBUG", log_dir=tmp_path)
    logging.getLogger("BinBuild.builder").info("build complete", extra={"stage": "build"})
    for handler in logger.handlers:
        handler.flush()

    files = list(tmp_path.glob("binbuild-*.jsonl"))
    assert len(files) == 1
    entries = [json.loads(line) for line in files[0].read_text().splitlines()]
    assert entries[-1]["message"] == "build complete"
    assert entries[-1]["stage"] == "build"
    assert logger.propagate is False


def test_setup_logging_replaces_its_own_handlers(tmp_path, restore_binbuild_logger):
    setup_logging(log_dir=tmp_path)
    logger = setup_logging(log_dir=tmp_path)

    managed = [h for h in logger.handlers if getattr(h, "_binbuild_managed", False)]
    assert len(managed) == 2
