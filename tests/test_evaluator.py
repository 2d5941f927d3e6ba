# tests/test_evaluator.py
import threading

from conftest import ip
from ids.config import DetectorConfig
from ids.evaluator import ScanEvaluator
from ids.models import AlertEvent
from ids.tracker import PortActivityTracker


def make(threshold, window, suppression=None):
    cfg = DetectorConfig(threshold=threshold, window=window, suppression_period=suppression)
    tracker = PortActivityTracker(cfg)
    return tracker, ScanEvaluator(cfg, tracker)


def probe(tracker, evaluator, src, port, t):
    count = tracker.record(src, port, t)
    return evaluator.evaluate(src, count, t)


def test_port_scan_scenario(tracker, evaluator):
    src = ip("10.0.0.5")
    alerts = [probe(tracker, evaluator, src, port, float(port - 1)) for port in range(1, 20)]
    assert alerts == [None] * 19

    alert = probe(tracker, evaluator, src, 20, 19.0)
    assert alert == AlertEvent(src, 20, 60.0, 19.0)

    assert probe(tracker, evaluator, src, 21, 20.0) is None

    counts = [tracker.record(src, port, 90.0) for port in range(100, 105)]
    assert counts == [1, 2, 3, 4, 5]
    assert tracker.distinct_ports(src) == 5


def test_threshold_minus_one_does_not_alert():
    tracker, evaluator = make(threshold=5, window=60)
    alerts = [probe(tracker, evaluator, "10.0.0.1", port, 1.0) for port in range(4)]
    assert not any(alerts)


def test_threshold_exactly_alerts_once():
    tracker, evaluator = make(threshold=5, window=60)
    alerts = [probe(tracker, evaluator, "10.0.0.1", port, 1.0) for port in range(5)]
    assert [a for a in alerts if a] == [AlertEvent("10.0.0.1", 5, 60.0, 1.0)]


def test_same_port_is_not_a_scan():
    tracker, evaluator = make(threshold=5, window=60)
    alerts = [probe(tracker, evaluator, "10.0.0.1", 80, float(t)) for t in range(50)]
    assert not any(alerts)


def test_suppression_then_exactly_one_more_alert():
    tracker, evaluator = make(threshold=3, window=60, suppression=30)
    fired = []
    for t in range(0, 41):
        alert = probe(tracker, evaluator, "10.0.0.1", 1000 + t, float(t))
        if alert:
            fired.append(alert.detected_at)
    assert fired == [2.0, 32.0]


def test_realerts_after_falling_below_threshold():
    tracker, evaluator = make(threshold=3, window=10)
    fired = []
    for port, t in [(1, 0.0), (2, 1.0), (3, 2.0), (4, 100.0), (5, 101.0), (6, 102.0)]:
        alert = probe(tracker, evaluator, "10.0.0.1", port, t)
        if alert:
            fired.append((alert.distinct_port_count, alert.detected_at))
    assert fired == [(3, 2.0), (3, 102.0)]


def test_suppression_is_per_source():
    tracker, evaluator = make(threshold=2, window=60)
    assert probe(tracker, evaluator, "10.0.0.1", 1, 0.0) is None
    assert probe(tracker, evaluator, "10.0.0.1", 2, 0.0) is not None
    assert probe(tracker, evaluator, "10.0.0.2", 1, 0.0) is None
    assert probe(tracker, evaluator, "10.0.0.2", 2, 0.0) is not None


def test_concurrent_evaluations_alert_once():
    tracker, evaluator = make(threshold=5, window=60)
    for port in range(5):
        tracker.record("10.0.0.1", port, 10.0)
    results = []
    barrier = threading.Barrier(16)

    def check():
        barrier.wait()
        results.append(evaluator.evaluate("10.0.0.1", 5, 10.0))

    threads = [threading.Thread(target=check) for _ in range(16)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert len([r for r in results if r is not None]) == 1


def test_source_dropped_from_full_table_still_alerts():
    cfg = DetectorConfig(threshold=5, window=60, max_sources=1)
    tracker = PortActivityTracker(cfg)
    evaluator = ScanEvaluator(cfg, tracker)
    for port in range(5):
        count = tracker.record("10.0.0.1", port, 1.0)
    tracker.record("10.0.0.2", 80, 1.0)
    assert "10.0.0.1" not in tracker
    assert evaluator.evaluate("10.0.0.1", count, 1.0) == AlertEvent("10.0.0.1", 5, 60.0, 1.0)
