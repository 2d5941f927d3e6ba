# src/ids/tracker.py
import threading
from collections import OrderedDict

from ids.config import DetectorConfig
from utils.logger import get_logger

_logger = get_logger("scanwatch.tracker")


class SourceEntry:
    """Recently probed ports of one source address.

    ports maps destination port -> last_seen and is kept in last_seen order,
    so eviction only ever pops from the front.
    """
    __slots__ = ("ports", "latest", "alerted_until")

    def __init__(self):
        self.ports = OrderedDict()
        self.latest = float("-inf")
        self.alerted_until = None

    def touch(self, port, timestamp, window):
        if timestamp >= self.latest:
            self.latest = timestamp
            self.ports[port] = timestamp
            self.ports.move_to_end(port)
        elif timestamp > self.latest - window:
            # late arrival: only ever moves a port's last_seen forward
            seen = self.ports.get(port)
            if seen is None or timestamp > seen:
                self.ports[port] = timestamp
                self.ports = OrderedDict(sorted(self.ports.items(), key=lambda kv: kv[1]))
        self.evict(self.latest, window)

    def evict(self, reference, window):
        cutoff = reference - window
        removed = 0
        while self.ports:
            port, seen = next(iter(self.ports.items()))
            if seen > cutoff:
                break
            del self.ports[port]
            removed += 1
        return removed

    def suppressed(self, now):
        return self.alerted_until is not None and self.alerted_until > now

    def reclaimable(self, now):
        return not self.ports and not self.suppressed(now)


class _Shard:
    __slots__ = ("lock", "entries", "capacity", "evictions", "high_water")

    def __init__(self, capacity):
        self.lock = threading.Lock()
        # least-recently-active first
        self.entries = OrderedDict()
        self.capacity = capacity
        self.evictions = 0
        self.high_water = float("-inf")


class PortActivityTracker:
    """Per-source sliding-window record of distinct destination ports.

    The source -> SourceEntry mapping is split into ``shards`` lock-guarded
    partitions keyed by address hash; one shard means a single coarse lock.
    Each shard holds at most its slice of ``max_sources`` entries and makes
    room by dropping its least-recently-active source.
    """

    def __init__(self, config: DetectorConfig):
        self.config = config
        self.window = float(config.window)
        base, extra = divmod(config.max_sources, config.shards)
        self._shards = [_Shard(base + (1 if i < extra else 0)) for i in range(config.shards)]

    def _shard(self, source):
        return self._shards[hash(source) % len(self._shards)]

    def record(self, source, port, timestamp) -> int:
        """Record a probe and return the source's distinct-port count after eviction."""
        shard = self._shard(source)
        dropped = None
        with shard.lock:
            entries = shard.entries
            entry = entries.get(source)
            if entry is None:
                if len(entries) >= shard.capacity:
                    dropped, _ = entries.popitem(last=False)
                    shard.evictions += 1
                entry = entries[source] = SourceEntry()
            else:
                entries.move_to_end(source)
            entry.touch(port, timestamp, self.window)
            if timestamp > shard.high_water:
                shard.high_water = timestamp
            count = len(entry.ports)
            if entry.reclaimable(entry.latest):
                del entries[source]
        if dropped is not None:
            _logger.warning(f"[TRACKER] Source table full ({shard.capacity} per shard); "
                            f"dropped least recently active source {dropped}")
        return count

    def distinct_ports(self, source, now=None) -> int:
        shard = self._shard(source)
        with shard.lock:
            entry = shard.entries.get(source)
            if entry is None:
                return 0
            ref = entry.latest if now is None else max(now, entry.latest)
            entry.evict(ref, self.window)
            count = len(entry.ports)
            if entry.reclaimable(ref):
                del shard.entries[source]
            return count

    def suppressed(self, source, timestamp) -> bool:
        shard = self._shard(source)
        with shard.lock:
            entry = shard.entries.get(source)
            return entry is not None and entry.suppressed(timestamp)

    def claim_alert(self, source, timestamp, until) -> bool:
        """Atomically set alerted_until unless suppression is already active.

        A source dropped from a full table in the meantime has no suppression
        on record, so the claim succeeds.
        """
        shard = self._shard(source)
        with shard.lock:
            entry = shard.entries.get(source)
            if entry is None:
                return True
            if entry.suppressed(timestamp):
                return False
            entry.alerted_until = until
            return True

    def sweep(self, now=None) -> int:
        """Evict stale ports everywhere and drop empty entries.

        ``now`` defaults to the newest timestamp recorded so far, which keeps
        replayed captures on their own clock. Returns the number of entries reclaimed.
        """
        if now is None:
            now = self.high_water
        reclaimed = 0
        for shard in self._shards:
            with shard.lock:
                for source in list(shard.entries):
                    entry = shard.entries[source]
                    entry.evict(now, self.window)
                    if entry.reclaimable(now):
                        del shard.entries[source]
                        reclaimed += 1
        if reclaimed:
            _logger.debug(f"[TRACKER] Sweep reclaimed {reclaimed} silent source(s)")
        return reclaimed

    def snapshot(self, now=None):
        """Read-only view of tracked sources, busiest first."""
        if now is None:
            now = self.high_water
        cutoff = now - self.window
        rows = []
        for shard in self._shards:
            with shard.lock:
                for source, entry in shard.entries.items():
                    ports = sorted(p for p, seen in entry.ports.items() if seen > cutoff)
                    rows.append({
                        "source_address": str(source),
                        "distinct_ports": len(ports),
                        "ports": ports,
                        "last_seen": entry.latest,
                        "alerted_until": entry.alerted_until,
                    })
        rows.sort(key=lambda r: (-r["distinct_ports"], r["source_address"]))
        return rows

    @property
    def high_water(self):
        return max(s.high_water for s in self._shards)

    @property
    def capacity_evictions(self):
        return sum(s.evictions for s in self._shards)

    def sources(self):
        out = []
        for shard in self._shards:
            with shard.lock:
                out.extend(shard.entries)
        return out

    def clear(self):
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    def __contains__(self, source):
        shard = self._shard(source)
        with shard.lock:
            return source in shard.entries

    def __len__(self):
        return sum(len(s.entries) for s in self._shards)
