# src/sensor/cli.py
import argparse
import signal

from ids.config import DEFAULT_THRESHOLD, DEFAULT_WINDOW, DetectorConfig
from ids.errors import ConfigError
from ids.pipeline import IngestionPipeline
from ids.sinks import FanoutSink, JsonlSink, LineFileSink, LogSink, MemorySink
from utils.logger import configure_logging, get_logger

_logger = get_logger("scanwatch.cli")


def build_parser():
    ap = argparse.ArgumentParser(prog="scanwatch", description="Detect TCP port scans on a network interface.")
    ap.add_argument("-t", "--threshold", type=int, default=DEFAULT_THRESHOLD,
                    help="unique ports within the window that trigger an alert (default %(default)s)")
    ap.add_argument("-w", "--window", type=float, default=DEFAULT_WINDOW,
                    help="time window in seconds to count unique ports (default %(default)s)")
    ap.add_argument("-s", "--suppression", dest="suppression_period", type=float,
                    help="re-alert cooldown per source in seconds (default: the window)")
    ap.add_argument("-l", "--log-file", help="append human-readable alerts to this file")
    ap.add_argument("--jsonl", help="append alerts as JSON lines to this file")
    ap.add_argument("-i", "--interface", help="interface to sniff (default: first up, non-loopback)")
    ap.add_argument("--pcap", help="replay a capture file instead of sniffing")
    ap.add_argument("--workers", type=int, default=1, help="ingestion worker threads")
    ap.add_argument("--shards", type=int, default=1, help="lock shards for the source table")
    ap.add_argument("--max-sources", type=int, default=100_000, help="cap on tracked source addresses")
    ap.add_argument("--api-port", type=int, help="serve the read-only status API on this port")
    ap.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING, ...")
    ap.add_argument("--log-dir", help="directory for scanwatch.log (default ./logs)")
    return ap


def build_sink(args, recent):
    sinks = [LogSink(), recent]
    if args.log_file:
        sinks.append(LineFileSink(args.log_file))
    if args.jsonl:
        sinks.append(JsonlSink(args.jsonl))
    return FanoutSink(*sinks)


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_dir)

    try:
        config = DetectorConfig.from_mapping(vars(args))
    except ConfigError as e:
        _logger.error(f"[MAIN] Invalid configuration: {e}")
        return 2

    recent = MemorySink()
    pipeline = IngestionPipeline(config, build_sink(args, recent))

    if args.api_port:
        from sensor.api import create_app, start_api_thread
        start_api_thread(create_app(pipeline, recent), port=args.api_port)

    if args.pcap:
        from sensor.capture import pcap_observations
        _logger.info(f"[MAIN] Replaying {args.pcap}")
        summary = pipeline.run(pcap_observations(args.pcap))
        _logger.info(f"[MAIN] Replay finished: {summary}")
        return 0

    from sensor.capture import LiveCapture
    capture = LiveCapture(args.interface)

    def shutdown(sig, frame):
        _logger.info("[MAIN] Stopping sensor...")
        capture.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    _logger.info(f"[MAIN] Starting scanwatch on interface '{capture.interface}' with "
                 f"threshold={config.threshold} ports, window={config.window:g}s")
    pipeline.start()
    try:
        capture.feed(pipeline)
    except PermissionError:
        _logger.error("[MAIN] Permission denied. Run as root or grant CAP_NET_RAW (Npcap on Windows).")
        return 1
    except OSError as e:
        _logger.error(f"[MAIN] Capture failed on {capture.interface}: {e}")
        return 1
    finally:
        pipeline.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
