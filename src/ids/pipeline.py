# src/ids/pipeline.py
"""Ingestion pipeline: observations -> tracker -> evaluator -> alert sink.

Observations are routed to worker threads by source address hash, so the
observations of one source are processed in the order they were submitted.
Alert delivery happens on its own thread behind a bounded queue; when that
queue is full the alert is dropped and counted instead of stalling capture.
"""
import queue
import threading
import time

from ids.config import DetectorConfig
from ids.errors import MalformedObservation, PipelineClosed
from ids.evaluator import ScanEvaluator
from ids.lifecycle import PipelineLifecycle
from ids.models import coerce_observation
from ids.tracker import PortActivityTracker
from utils.logger import get_logger

_logger = get_logger("scanwatch.pipeline")

_STOP = object()


class PipelineStats:
    FIELDS = ("observations", "skipped", "alerts", "alerts_dropped",
              "delivery_failures", "swept_sources")

    def __init__(self):
        self._lock = threading.Lock()
        for name in self.FIELDS:
            setattr(self, name, 0)

    def incr(self, name, n=1):
        with self._lock:
            setattr(self, name, getattr(self, name) + n)

    def as_dict(self):
        with self._lock:
            return {name: getattr(self, name) for name in self.FIELDS}


class AlertDispatcher:
    """Hands alerts to the sink from a dedicated thread."""

    def __init__(self, sink, stats: PipelineStats, maxsize):
        self.sink = sink
        self.stats = stats
        self._queue = queue.Queue(maxsize=maxsize)
        self._thread = threading.Thread(target=self._run, name="scanwatch-alerts", daemon=True)
        self._close_lock = threading.Lock()
        self._closed = False

    def start(self):
        self._thread.start()

    def offer(self, alert) -> bool:
        try:
            self._queue.put_nowait(alert)
            return True
        except queue.Full:
            self.stats.incr("alerts_dropped")
            _logger.warning(f"[DISPATCH] Alert queue full, dropped alert for {alert.source_address}")
            return False

    def _run(self):
        while True:
            alert = self._queue.get()
            if alert is _STOP:
                break
            try:
                self.sink.emit(alert)
            except Exception as e:
                self.stats.incr("delivery_failures")
                _logger.error(f"[DISPATCH] Failed to deliver alert for {alert.source_address}: {e}")

    def close(self, timeout=None):
        with self._close_lock:
            if self._thread.is_alive() and not self._closed:
                self._closed = True
                self._queue.put(_STOP)
        self._thread.join(timeout)


class IngestionPipeline:
    def __init__(self, config: DetectorConfig, sink, tracker=None):
        self.config = config
        self.tracker = tracker if tracker is not None else PortActivityTracker(config)
        self.evaluator = ScanEvaluator(config, self.tracker)
        self.stats = PipelineStats()
        self.lifecycle = PipelineLifecycle()
        self.dispatcher = AlertDispatcher(sink, self.stats, config.alert_queue_size)
        self._submit_lock = threading.Lock()
        self._queues = [queue.Queue(maxsize=config.queue_size) for _ in range(config.workers)]
        self._workers = [
            threading.Thread(target=self._work, args=(q,), name=f"scanwatch-worker-{i}", daemon=True)
            for i, q in enumerate(self._queues)
        ]
        self._halt = threading.Event()
        self._maintenance = threading.Thread(target=self._maintain, name="scanwatch-maintenance", daemon=True)

    @property
    def state(self):
        return self.lifecycle.state

    def start(self):
        self.lifecycle.start()
        self.dispatcher.start()
        for t in self._workers:
            t.start()
        self._maintenance.start()
        _logger.info(f"[PIPELINE] Started with threshold={self.config.threshold} ports, "
                     f"window={self.config.window:g}s, workers={self.config.workers}, shards={self.config.shards}")
        return self

    def submit(self, item, timeout=None) -> bool:
        """Queue an Observation or a (source, port, timestamp) triple.

        Returns False when the item is malformed (it is counted and dropped).
        Raises PipelineClosed once shutdown has begun.
        """
        try:
            obs = coerce_observation(item)
        except MalformedObservation as e:
            self.stats.incr("skipped")
            _logger.debug(f"[PIPELINE] Skipping malformed observation: {e}")
            return False
        with self._submit_lock:
            if not self.lifecycle.accepting:
                raise PipelineClosed(f"pipeline is {self.state}")
            q = self._queues[hash(obs.source_address) % len(self._queues)]
            q.put(obs, timeout=timeout)
        return True

    def submit_raw(self, source, port, timestamp, timeout=None) -> bool:
        return self.submit((source, port, timestamp), timeout=timeout)

    def process(self, obs):
        """Run one parsed observation through tracker and evaluator."""
        self.stats.incr("observations")
        count = self.tracker.record(obs.source_address, obs.destination_port, obs.timestamp)
        alert = self.evaluator.evaluate(obs.source_address, count, obs.timestamp)
        if alert is not None:
            self.stats.incr("alerts")
            self.dispatcher.offer(alert)
        return alert

    def _work(self, q):
        while True:
            obs = q.get()
            if obs is _STOP:
                break
            try:
                self.process(obs)
            except Exception:
                self.stats.incr("skipped")
                _logger.exception(f"[PIPELINE] Failed to process observation {obs}")

    def _maintain(self):
        interval = min(self.config.sweep_interval, self.config.heartbeat_interval)
        last_sweep = last_beat = time.monotonic()
        while not self._halt.wait(interval):
            now = time.monotonic()
            if now - last_sweep >= self.config.sweep_interval:
                reclaimed = self.tracker.sweep()
                if reclaimed:
                    self.stats.incr("swept_sources", reclaimed)
                last_sweep = now
            if now - last_beat >= self.config.heartbeat_interval:
                _logger.info(f"[PIPELINE] IDS still running: {self.summary()}")
                last_beat = now

    def run(self, source):
        """Feed an observation source until it ends, then shut down."""
        if self.state == 'idle':
            self.start()
        try:
            for item in source:
                try:
                    self.submit(item)
                except PipelineClosed:
                    break
        finally:
            self.stop()
        return self.summary()

    def stop(self, timeout=None) -> bool:
        """Refuse new observations, drain queued ones and deliver pending alerts.

        Returns False if a worker is still draining when ``timeout`` runs out;
        the pipeline then stays 'draining' and stop() can be called again.
        """
        with self._submit_lock:
            if self.state == 'idle':
                self.lifecycle.finish()
                return True
            if self.state == 'stopped':
                return True
            if self.state == 'running':
                self.lifecycle.drain()
                _logger.info("[PIPELINE] Draining...")
                for q in self._queues:
                    q.put(_STOP)
        for t in self._workers:
            t.join(timeout)
        busy = [t.name for t in self._workers if t.is_alive()]
        if busy:
            _logger.warning(f"[PIPELINE] Still draining after {timeout}s: {', '.join(busy)}")
            return False
        # no worker can offer alerts any more, so the dispatcher can be closed
        self.dispatcher.close(timeout)
        self._halt.set()
        self._maintenance.join(timeout)
        with self._submit_lock:
            if self.state == 'draining':
                self.lifecycle.finish()
                _logger.info(f"[PIPELINE] Stopped: {self.summary()}")
        return True

    def summary(self):
        stats = self.stats.as_dict()
        stats["capacity_evictions"] = self.tracker.capacity_evictions
        stats["tracked_sources"] = len(self.tracker)
        return stats

    def __enter__(self):
        if self.state == 'idle':
            self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
        return False
