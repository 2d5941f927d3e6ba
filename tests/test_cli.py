# tests/test_cli.py
import json
import logging

import pytest
from scapy.all import IP, TCP, Ether, wrpcap

from sensor import cli


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("scanwatch")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def write_scan(path, src="10.0.0.5", ports=range(1, 31)):
    packets = []
    for i, port in enumerate(ports):
        pkt = Ether() / IP(src=src, dst="10.0.0.2") / TCP(dport=port, flags="S")
        pkt.time = 5000.0 + i
        packets.append(pkt)
    wrpcap(str(path), packets)


def test_pcap_replay_writes_alerts(tmp_path):
    pcap = tmp_path / "scan.pcap"
    write_scan(pcap)
    jsonl = tmp_path / "out" / "alerts.jsonl"
    log_file = tmp_path / "out" / "alerts.log"
    rc = cli.main(["--pcap", str(pcap), "-t", "25", "-w", "60", "--jsonl", str(jsonl),
                   "-l", str(log_file), "--log-dir", str(tmp_path / "logs")])
    assert rc == 0

    rows = [json.loads(line) for line in jsonl.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == 1
    assert rows[0]["source_address"] == "10.0.0.5"
    assert rows[0]["distinct_port_count"] == 25
    assert "Potential port scan from 10.0.0.5: 25 ports in 60s" in log_file.read_text(encoding="utf-8")
    assert (tmp_path / "logs" / "scanwatch.log").exists()


def test_invalid_config_exits_with_2(tmp_path):
    assert cli.main(["--pcap", "unused.pcap", "--threshold", "0", "--log-dir", str(tmp_path)]) == 2


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.threshold == 20
    assert args.window == 60.0
    assert args.suppression_period is None
    assert args.log_file is None
