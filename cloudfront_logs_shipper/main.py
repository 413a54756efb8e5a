#!/usr/bin/env python3
"""
Command line entry point for the CloudFront logs shipper
Supports the long-running shipper daemon and a manual decode mode
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from cloudfront_logs_shipper.decoder import iter_entries, iter_gzip_lines, to_json_line
from cloudfront_logs_shipper.errors import ConfigurationError, DecodeError
from cloudfront_logs_shipper.handlers.metrics import start_metrics_server
from cloudfront_logs_shipper.models.options import Options, parse_labels
from cloudfront_logs_shipper.processor import LogProcessor
from cloudfront_logs_shipper.services.loki import LokiClient
from cloudfront_logs_shipper.services.s3 import create_s3_client
from cloudfront_logs_shipper.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Ship CloudFront access logs from S3 to Loki')
    parser.add_argument('--mode', choices=['run', 'manual'], default='run',
                        help='Execution mode: run (scan bucket and ship) or manual (decode a local file to stdout)')
    parser.add_argument('--bucket', dest='bucket_name', help='Source bucket (BUCKET_NAME)')
    parser.add_argument('--interval', dest='wait_interval', type=float, help='Seconds between scans (WAIT_INTERVAL)')
    parser.add_argument('--workers', type=int, help='Number of worker threads (WORKERS)')
    parser.add_argument('--port', type=int, help='Metrics port (PORT)')
    parser.add_argument('--cluster', dest='cluster_name', help='Cluster label value (CLUSTER_NAME)')
    parser.add_argument('--loki-url', dest='loki_url', help='Loki base URL (LOKI_URL)')
    parser.add_argument('--label', dest='labels', action='append', default=[],
                        help='Static label key=value, may be repeated (LABELS)')
    parser.add_argument('--log-level', dest='log_level', help='Log level (LOG_LEVEL)')
    parser.add_argument('--log-format', dest='log_format', choices=['text', 'json'], help='Log format (LOG_FORMAT)')
    parser.add_argument('file', nargs='?', help='Gzip log file for manual mode, stdin when omitted')
    return parser


def load_options(args: argparse.Namespace) -> Options:
    overrides = {
        name: getattr(args, name)
        for name in ('bucket_name', 'wait_interval', 'workers', 'port', 'cluster_name',
                     'loki_url', 'log_level', 'log_format')
    }
    try:
        overrides['labels'] = parse_labels(','.join(args.labels)) or None
    except ValueError as e:
        raise ConfigurationError(f"Invalid --label: {str(e)}")

    if args.mode == 'manual':
        # Manual mode never touches the bucket
        overrides['bucket_name'] = overrides['bucket_name'] or 'manual'

    return Options.from_env(**overrides)


def setup_signal_handlers(processor: LogProcessor) -> None:
    """Stop the processor on SIGINT/SIGTERM"""
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        processor.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_mode(options: Options) -> int:
    """
    Run the shipper until a signal or a worker failure stops it
    """
    if not options.loki_url:
        logger.error("LOKI_URL environment variable not set")
        return 1

    logger.info("Starting CloudFront logs shipper")
    logger.info(f"  Source bucket: {options.bucket_name}")
    logger.info(f"  Scan interval: {options.wait_interval} seconds")
    logger.info(f"  Loki: {options.loki_url}")
    logger.info(f"  Cluster: {options.cluster_name}, static labels: {options.labels}")
    logger.info(f"  Workers: {options.workers}")

    processor = LogProcessor(options, create_s3_client(options), LokiClient.from_options(options))
    setup_signal_handlers(processor)
    start_metrics_server(processor, options.port)
    return processor.run()


def manual_mode(path: Optional[str]) -> int:
    """
    Decode a local gzip log file and print one JSON record per line
    """
    source = path or '<stdin>'
    logger.info(f"Manual mode - decoding {source}")

    count = 0
    try:
        if path:
            with open(path, 'rb') as fileobj:
                for entry in iter_entries(iter_gzip_lines(fileobj)):
                    print(to_json_line(entry))
                    count += 1
        else:
            for entry in iter_entries(iter_gzip_lines(sys.stdin.buffer)):
                print(to_json_line(entry))
                count += 1
    except DecodeError as e:
        logger.error(f"Failed to decode {source}: {str(e)}")
        return 1
    except OSError as e:
        logger.error(f"Failed to read {source}: {str(e)}")
        return 1

    logger.info(f"Decoded {count} records from {source}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for standalone execution
    """
    args = build_parser().parse_args(argv)

    try:
        options = load_options(args)
    except ConfigurationError as e:
        setup_logging()
        logger.error(str(e))
        return 1

    # Records go to stdout in manual mode, keep process logs off it
    setup_logging(options.log_level, options.log_format,
                  stream=sys.stderr if args.mode == 'manual' else sys.stdout)

    if args.mode == 'manual':
        return manual_mode(args.file)
    return run_mode(options)


if __name__ == '__main__':
    sys.exit(main())
