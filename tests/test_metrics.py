import threading

import pytest

from phantom_ping.output.metrics import PingStatistics


def test_empty_statistics():
    stats = PingStatistics()
    assert stats.transmitted == 0
    assert stats.received == 0
    assert stats.loss_percent == 0.0
    assert stats.rtt_summary() == {}


def test_loss_percent():
    stats = PingStatistics()
    stats.record_sent(4)
    stats.record_reply(1_000_000)
    assert stats.loss_percent == pytest.approx(75.0)


def test_rtt_summary_in_milliseconds():
    stats = PingStatistics()
    stats.record_sent(2)
    stats.record_reply(1_000_000)
    stats.record_reply(3_000_000)
    summary = stats.rtt_summary()
    assert summary["min"] == pytest.approx(1.0)
    assert summary["avg"] == pytest.approx(2.0)
    assert summary["max"] == pytest.approx(3.0)
    assert summary["mdev"] == pytest.approx(1.0)


def test_counters_use_namespace():
    stats = PingStatistics(namespace="echo")
    stats.record_sent()
    stats.record_error()
    assert stats.get_counters() == {
        "echo_requests_sent_total": 1,
        "echo_replies_received_total": 0,
        "echo_errors_total": 1,
    }


def test_prometheus_export():
    stats = PingStatistics()
    stats.record_sent(2)
    stats.record_reply(2_500_000)
    text = stats.export_prometheus()
    assert "# TYPE phantom_ping_requests_sent_total counter" in text
    assert "phantom_ping_requests_sent_total 2" in text
    assert "phantom_ping_packet_loss_percent 50.0" in text
    assert 'phantom_ping_rtt_milliseconds{stat="avg"} 2.5' in text
    assert "phantom_ping_uptime_seconds" in text


def test_prometheus_export_without_samples():
    text = PingStatistics().export_prometheus()
    assert "rtt_milliseconds" not in text


def test_concurrent_recording():
    stats = PingStatistics()

    def worker():
        for _ in range(1000):
            stats.record_sent()
            stats.record_reply(1000)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert stats.transmitted == 4000
    assert stats.received == 4000
