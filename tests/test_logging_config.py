# tests/test_logging_config.py

import json
import logging

from utils.logging_config import JSONFormatter, PerformanceLogger


def test_measure_records_duration():
    perf = PerformanceLogger()

    with perf.measure("decode", records=3):
        pass

    assert perf.metrics[0]['operation'] == "decode"
    assert perf.metrics[0]['records'] == 3
    assert perf.get_statistics("decode")['count'] == 1


def test_statistics_for_unknown_operation():
    assert PerformanceLogger().get_statistics("missing") == {}


def test_save_metrics(tmp_path):
    perf = PerformanceLogger()
    perf.log_metric("text_search", 0.25, corpus_size=10)
    output = tmp_path / "metrics.json"

    perf.save_metrics(str(output))

    saved = json.loads(output.read_text())
    assert saved[0]['duration_seconds'] == 0.25
    assert perf.get_statistics()['total'] == 0.25


def test_json_formatter():
    record = logging.LogRecord("core.search", logging.INFO, __file__, 10,
                               "found %d images", (3,), None)

    data = json.loads(JSONFormatter().format(record))

    assert data['message'] == "found 3 images"
    assert data['level'] == "INFO"
    assert data['logger'] == "core.search"


def test_metrics_history_is_bounded():
    perf = PerformanceLogger(max_entries=3)

    for i in range(10):
        perf.log_metric("text_search", float(i))

    assert len(perf.metrics) == 3
    assert [m['duration_seconds'] for m in perf.metrics] == [7.0, 8.0, 9.0]
