"""Tests for the Prometheus metrics recorder."""

from unittest.mock import patch

from infra.metrics import CycleStats, MetricsRecorder


def stats(status="ok"):
    return CycleStats(status=status, assets=4, submitted=2, suppressed=1, failed=1, duration_seconds=1.5)


def test_recorders_do_not_collide():
    first = MetricsRecorder(enabled=True)
    second = MetricsRecorder(enabled=True)

    first.observe_cycle(stats())

    assert first.registry.get_sample_value("liquidator_cycles_total", {"status": "ok"}) == 1.0
    assert second.registry.get_sample_value("liquidator_cycles_total", {"status": "ok"}) is None


def test_outcomes_and_errors():
    metrics = MetricsRecorder(enabled=True)

    metrics.record_outcome("submitted")
    metrics.record_outcome("failed", "transient")
    metrics.record_outcome("failed", "data")
    metrics.record_snapshot_failure()
    metrics.record_cache_size(7)

    registry = metrics.registry
    assert registry.get_sample_value("liquidator_decisions_total", {"outcome": "failed"}) == 2.0
    assert registry.get_sample_value("liquidator_asset_errors_total", {"kind": "transient"}) == 1.0
    assert registry.get_sample_value("liquidator_snapshot_failures_total") == 1.0
    assert registry.get_sample_value("liquidator_order_cache_entries") == 7.0
    assert metrics.error_snapshot() == {"transient": 1, "data": 1}


def test_disabled_recorder_still_tracks_locally():
    metrics = MetricsRecorder(enabled=False)

    metrics.observe_cycle(stats("snapshot_failed"))
    metrics.record_outcome("skipped")
    metrics.record_snapshot_failure()

    assert not metrics.is_enabled()
    assert metrics.last_cycle().status == "snapshot_failed"
    assert metrics.decision_snapshot() == {"skipped": 1}
    assert metrics.snapshot_failures == 1
    assert metrics.registry.get_sample_value("liquidator_snapshot_failures_total") is None


def test_start_only_when_enabled():
    with patch("infra.metrics.start_http_server") as mock_start:
        MetricsRecorder(enabled=False).start()
        mock_start.assert_not_called()

        recorder = MetricsRecorder(enabled=True, port=9200)
        recorder.start()
        recorder.start()

    mock_start.assert_called_once_with(9200, registry=recorder.registry)


def test_port_in_use_disables_exporter():
    with patch("infra.metrics.start_http_server", side_effect=OSError("in use")):
        recorder = MetricsRecorder(enabled=True)
        recorder.start()

    assert not recorder.is_enabled()
