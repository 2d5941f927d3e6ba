# src/ids/models.py
import ipaddress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from ids.errors import MalformedObservation

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class Observation:
    source_address: IPAddress
    destination_port: int
    timestamp: float

    @classmethod
    def parse(cls, source, port, timestamp) -> "Observation":
        """Build an observation from loosely typed capture fields.

        Raises MalformedObservation for an invalid address, a port outside
        0-65535 or a non-numeric timestamp.
        """
        try:
            addr = ipaddress.ip_address(source)
        except ValueError as e:
            raise MalformedObservation(f"invalid source address {source!r}") from e
        if isinstance(port, bool):
            raise MalformedObservation(f"invalid destination port {port!r}")
        try:
            port = int(port)
        except (TypeError, ValueError) as e:
            raise MalformedObservation(f"invalid destination port {port!r}") from e
        if not 0 <= port <= 65535:
            raise MalformedObservation(f"destination port out of range: {port}")
        try:
            ts = float(timestamp)
        except (TypeError, ValueError) as e:
            raise MalformedObservation(f"invalid timestamp {timestamp!r}") from e
        if ts != ts:
            raise MalformedObservation("timestamp is NaN")
        return cls(addr, port, ts)


@dataclass(frozen=True)
class AlertEvent:
    source_address: IPAddress
    distinct_port_count: int
    window: float
    detected_at: float

    def to_dict(self) -> dict:
        return {
            "source_address": str(self.source_address),
            "distinct_port_count": self.distinct_port_count,
            "window": self.window,
            "detected_at": datetime.fromtimestamp(self.detected_at, tz=timezone.utc).isoformat(),
        }

    def describe(self) -> str:
        return (f"Potential port scan from {self.source_address}: "
                f"{self.distinct_port_count} ports in {self.window:g}s")


def coerce_observation(item) -> Observation:
    """Accept an Observation or a (source, port, timestamp) triple."""
    if isinstance(item, Observation):
        return item
    try:
        source, port, timestamp = item
    except (TypeError, ValueError) as e:
        raise MalformedObservation(f"cannot unpack observation {item!r}") from e
    return Observation.parse(source, port, timestamp)


def format_timestamp(ts: Optional[float] = None) -> str:
    dt = datetime.fromtimestamp(ts, tz=timezone.utc) if ts is not None else datetime.now(timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")
