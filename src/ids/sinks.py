# src/ids/sinks.py
import threading
from collections import deque
from typing import Protocol

from ids.errors import DeliveryError
from ids.models import AlertEvent, format_timestamp
from utils.logger import get_logger
from utils.persistence import append_line, save_alert_jsonl

_logger = get_logger("scanwatch.alerts")


class AlertSink(Protocol):
    def emit(self, alert: AlertEvent) -> None:
        ...


def format_alert_line(alert: AlertEvent) -> str:
    return f"[{format_timestamp(alert.detected_at)}] {alert.describe()}"


class LogSink:
    """Writes alerts through the project logger."""
    def emit(self, alert):
        _logger.warning(f"[ALERT] {alert.describe()}")


class LineFileSink:
    def __init__(self, path):
        self.path = path

    def emit(self, alert):
        try:
            append_line(self.path, format_alert_line(alert))
        except OSError as e:
            raise DeliveryError(f"failed to write alert to {self.path}: {e}") from e


class JsonlSink:
    def __init__(self, path):
        self.path = path

    def emit(self, alert):
        try:
            save_alert_jsonl(alert.to_dict(), self.path)
        except OSError as e:
            raise DeliveryError(f"failed to write alert to {self.path}: {e}") from e


class MemorySink:
    """Keeps the most recent alerts in memory (newest last)."""
    def __init__(self, maxlen=200):
        self._alerts = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, alert):
        with self._lock:
            self._alerts.append(alert)

    def recent(self, limit=None):
        with self._lock:
            items = list(self._alerts)
        items.reverse()
        if limit is not None:
            items = items[:max(limit, 0)]
        return items

    def __len__(self):
        return len(self._alerts)


class FanoutSink:
    """Delivers to every sink; one failing sink does not starve the others."""
    def __init__(self, *sinks):
        self.sinks = list(sinks)

    def emit(self, alert):
        failures = []
        for sink in self.sinks:
            try:
                sink.emit(alert)
            except Exception as e:
                failures.append(f"{type(sink).__name__}: {e}")
        if failures:
            raise DeliveryError("; ".join(failures))
