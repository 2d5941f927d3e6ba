# src/ids/evaluator.py
from typing import Optional

from ids.config import DetectorConfig
from ids.models import AlertEvent
from ids.tracker import PortActivityTracker
from utils.logger import get_logger

_logger = get_logger("scanwatch.evaluator")


class ScanEvaluator:
    """Turns distinct-port counts into alerts, at most one per suppression period.

    The suppression marker lives on the tracker's SourceEntry and is claimed
    under the entry's shard lock, so two workers racing over the same source
    cannot both alert. Suppression runs on its own clock: it neither resets
    nor is reset by the detection window.
    """

    def __init__(self, config: DetectorConfig, tracker: PortActivityTracker):
        self.threshold = config.threshold
        self.window = float(config.window)
        self.suppression_period = float(config.suppression_period)
        self.tracker = tracker

    def evaluate(self, source, distinct_port_count, timestamp) -> Optional[AlertEvent]:
        if distinct_port_count < self.threshold:
            return None
        if not self.tracker.claim_alert(source, timestamp, timestamp + self.suppression_period):
            _logger.debug(f"[EVAL] {source} above threshold ({distinct_port_count}) but suppressed")
            return None
        alert = AlertEvent(source, distinct_port_count, self.window, timestamp)
        _logger.info(f"[EVAL] Alert raised: {alert.describe()}")
        return alert
