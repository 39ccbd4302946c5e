import json
import logging

import pytest

from srdir.output.metrics import ArchiveMetrics


def test_archive_metrics_logs_counters(caplog: pytest.LogCaptureFixture) -> None:
    """Los contadores acumulados deben aparecer en el log forzado."""

    logger_name = "test.metrics"
    metrics = ArchiveMetrics(log_interval_s=60.0, logger=logging.getLogger(logger_name))

    with caplog.at_level(logging.INFO, logger=logger_name):
        metrics.record_logic_block(128)
        metrics.record_analog_block(32)
        metrics.record_chunk("logic-1-1", 128)
        metrics.record_chunk("analog-1-2-1", 64)
        metrics.increment_warnings()
        metrics.maybe_log(force=True)

    metric_records = [rec for rec in caplog.records if rec.message.startswith("archive_metrics ")]
    assert metric_records, "Se esperaba al menos un log de métricas acumuladas"

    payload = json.loads(metric_records[-1].message.split(" ", 1)[1])
    counters = payload["counters"]

    assert payload["type"] == "archive_metrics"
    assert counters["logic_blocks"] == 1
    assert counters["logic_samples"] == 128
    assert counters["analog_samples"] == 32
    assert counters["chunks_written"] == 2
    assert counters["bytes_written"] == 192
    assert counters["warnings"] == 1
    assert payload["delta"]["chunks_written"] == 2


def test_archive_metrics_respects_interval(caplog: pytest.LogCaptureFixture) -> None:
    logger_name = "test.metrics.interval"
    metrics = ArchiveMetrics(log_interval_s=3600.0, logger=logging.getLogger(logger_name))

    with caplog.at_level(logging.INFO, logger=logger_name):
        metrics.record_chunk("logic-1-1", 10)
        metrics.maybe_log()
        metrics.maybe_log(force=True)
        metrics.maybe_log(force=True)

    metric_records = [rec for rec in caplog.records if rec.message.startswith("archive_metrics ")]
    assert len(metric_records) == 2
    last = json.loads(metric_records[-1].message.split(" ", 1)[1])
    assert last["counters"]["chunks_written"] == 1
    assert last["delta"]["chunks_written"] == 0
