import time

import core_metrics


def test_metrics_render_in_exposition_format():
    core_metrics.counter("folder_sync_test_events_total", 2, outcome="ok")
    core_metrics.gauge("folder_sync_test_depth", 7)
    core_metrics.record_latency_ms("folder_sync_test_op", time.perf_counter())
    payload, content_type = core_metrics.render_latest()
    text = payload.decode("utf-8")
    assert content_type.startswith("text/plain")
    assert 'folder_sync_test_events_total{outcome="ok"} 2.0' in text
    assert "folder_sync_test_depth 7.0" in text
    assert "folder_sync_test_op_latency_ms_bucket" in text


def test_counter_accumulates_across_calls():
    core_metrics.counter("folder_sync_test_repeat_total", outcome="x")
    core_metrics.counter("folder_sync_test_repeat_total", outcome="x")
    text = core_metrics.render_latest()[0].decode("utf-8")
    assert 'folder_sync_test_repeat_total{outcome="x"} 2.0' in text
