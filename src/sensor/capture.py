# src/sensor/capture.py
"""
Observation sources backed by Scapy: live sniffing and pcap replay.
Live capture needs root (or CAP_NET_RAW); on Windows install Npcap.
"""
import threading

from scapy.all import IP, IPv6, TCP, AsyncSniffer, PcapReader, conf, get_if_addr, get_if_list

from ids.errors import MalformedObservation, PipelineClosed
from ids.models import Observation
from utils.logger import get_logger

_logger = get_logger("scanwatch.capture")


def packet_to_observation(pkt):
    """Return an Observation for a TCP-over-IP packet, None for anything else."""
    if not pkt.haslayer(TCP):
        return None
    if pkt.haslayer(IP):
        src = pkt[IP].src
    elif pkt.haslayer(IPv6):
        src = pkt[IPv6].src
    else:
        return None
    try:
        return Observation.parse(src, pkt[TCP].dport, float(pkt.time))
    except MalformedObservation as e:
        _logger.debug(f"[CAPTURE] Dropping packet: {e}")
        return None


def default_interface():
    for iface in get_if_list():
        if iface.startswith("lo"):
            continue
        addr = get_if_addr(iface)
        if addr and addr != "0.0.0.0":
            return iface
    return conf.iface


class LiveCapture:
    """Sniffs an interface and pushes observations into a pipeline.

    stop() may arrive before or while the sniffer starts (e.g. from a signal
    handler); the request is remembered and honoured once sniffing is up.
    """

    def __init__(self, interface=None, bpf_filter="tcp"):
        self.interface = interface or default_interface()
        self.bpf_filter = bpf_filter
        self.sniffer = None
        self._stop_requested = threading.Event()

    def _handle(self, pipeline, pkt):
        obs = packet_to_observation(pkt)
        if obs is None:
            return
        try:
            pipeline.submit(obs)
        except PipelineClosed:
            self.stop()

    def _started(self):
        if self._stop_requested.is_set():
            self._halt()

    def _halt(self):
        sniffer = self.sniffer
        if sniffer is not None and sniffer.running:
            sniffer.stop(join=False)

    def feed(self, pipeline):
        """Block until stop() is called or the sniffer fails."""
        if self._stop_requested.is_set():
            _logger.info("[CAPTURE] Stop requested before sniffing started")
            return
        _logger.info(f"[CAPTURE] Sniffing on {self.interface} (filter={self.bpf_filter!r})")
        self.sniffer = AsyncSniffer(iface=self.interface, filter=self.bpf_filter, store=False,
                                    prn=lambda pkt: self._handle(pipeline, pkt),
                                    started_callback=self._started)
        self.sniffer.start()
        self.sniffer.join()

    def stop(self):
        _logger.info("[CAPTURE] Stopping sniffer")
        self._stop_requested.set()
        self._halt()


def pcap_observations(path):
    """Replay a capture file as a stream of observations."""
    with PcapReader(str(path)) as reader:
        for pkt in reader:
            obs = packet_to_observation(pkt)
            if obs is not None:
                yield obs
