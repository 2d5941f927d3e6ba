#!/usr/bin/env python3
"""
labscan.py
Generate real scan traffic against a lab host so a running sensor can be
checked end to end. Only scan hosts you own or are permitted to scan.
Usage:
  scanwatch-labscan --target 192.168.56.10 --ports 1-100
"""

import argparse

import nmap

from utils.logger import configure_logging, get_logger

_logger = get_logger("scanwatch.labscan")


def run_lab_scan(target, ports="1-100", connect_scan=True, scanner=None):
    """
    Run nmap against target and return the sorted list of open TCP ports.
    - connect_scan=True uses -sT so it works without root
    - -Pn skips host discovery; lab hosts often drop pings
    """
    nm = scanner or nmap.PortScanner()
    args = "-Pn -sT" if connect_scan else "-Pn -sS"
    _logger.info(f"[LABSCAN] Scanning {target} ports={ports} args={args}")
    scan = nm.scan(hosts=target, ports=ports, arguments=args)
    host_info = scan.get('scan', {}).get(target, {})
    tcp = host_info.get('tcp', {}) or {}
    open_ports = sorted(int(p) for p, pdata in tcp.items() if pdata.get('state') == 'open')
    _logger.info(f"[LABSCAN] {target} -> {len(open_ports)} open port(s)")
    return open_ports


def expected_probe_count(ports):
    """Number of distinct ports an nmap port spec like '1-100,443' covers."""
    total = set()
    for part in str(ports).split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo, hi = part.split("-", 1)
            total.update(range(int(lo), int(hi) + 1))
        else:
            total.add(int(part))
    return len(total)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Drive an nmap scan at a lab host to exercise scanwatch")
    parser.add_argument("--target", "-t", required=True, help="IP or host to scan (you must own/permit scanning)")
    parser.add_argument("--ports", "-p", default="1-100", help="nmap port spec (default 1-100)")
    parser.add_argument("--syn", action="store_true", help="use a SYN scan (needs root)")
    args = parser.parse_args(argv)

    configure_logging(log_dir=False)
    _logger.info(f"[LABSCAN] Probing {expected_probe_count(args.ports)} distinct ports; "
                 f"a sensor with a lower threshold should alert")
    open_ports = run_lab_scan(args.target, args.ports, connect_scan=not args.syn)
    print("Open ports:", ", ".join(map(str, open_ports)) or "none")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
