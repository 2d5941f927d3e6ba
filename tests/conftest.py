import ipaddress
import threading

import pytest

from ids.config import DetectorConfig
from ids.errors import DeliveryError
from ids.evaluator import ScanEvaluator
from ids.tracker import PortActivityTracker


def ip(addr):
    return ipaddress.ip_address(addr)


class ListSink:
    """Testing sink to capture alerts in-memory."""
    def __init__(self):
        self.items = []

    def emit(self, alert):
        self.items.append(alert)


class FailingSink:
    def __init__(self):
        self.calls = 0

    def emit(self, alert):
        self.calls += 1
        raise DeliveryError("sink offline")


class BlockingSink:
    """Blocks inside emit until released; used to back up the alert queue."""
    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.items = []

    def emit(self, alert):
        self.entered.set()
        self.release.wait(5)
        self.items.append(alert)


@pytest.fixture
def config():
    return DetectorConfig(threshold=20, window=60)


@pytest.fixture
def tracker(config):
    return PortActivityTracker(config)


@pytest.fixture
def evaluator(config, tracker):
    return ScanEvaluator(config, tracker)
