#!/usr/bin/env python3
"""
Dotcom Exporter CLI - Main entry point

Exposes Dotcom-Monitor device status to Prometheus. Every scrape of the
telemetry path queries the Dotcom-Monitor XML API once.
"""

import argparse
import logging
import sys

from prometheus_client import PlatformCollector, ProcessCollector
from prometheus_client.core import CollectorRegistry

from .client import DotcomClient
from .config import LOG_LEVELS, ExporterConfig, build_config, load_config_file
from .errors import ConfigError
from .exporter import DotcomExporter
from .server import make_server

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dotcom-exporter',
        description='Prometheus exporter for Dotcom-Monitor device status',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all sites of an account
  %(prog)s --dotcom.pid 2AA43CD13DDS2CHJ20FGHY85DF203E33

  # Export selected sites, settings from a YAML file
  %(prog)s -c config.yaml --dotcom.sites 123456,shop*
        """
    )

    # Unset flags are None; defaults come from config.DEFAULTS
    parser.add_argument('-c', '--config',
                        help='Path to YAML configuration file')
    parser.add_argument('--web.listen-address', dest='listen_address',
                        help='Address to listen on for web interface and telemetry (default: :9423)')
    parser.add_argument('--web.telemetry-path', dest='telemetry_path',
                        help='Path under which to expose metrics (default: /metrics)')
    parser.add_argument('--dotcom.sites', dest='sites',
                        help='Comma separated list of site IDs or names to monitor. '
                             'Wildcards ("*", "?") filter by pattern, e.g. 123* (default: *)')
    parser.add_argument('--dotcom.pid', dest='pid',
                        help='Account Global Unique Identifier '
                             '(Configure > Integrations > Unique Identifier (UID) column)')
    parser.add_argument('--dotcom.http.timeout', dest='http_timeout',
                        help='HTTP timeout used when scraping from dotcom, e.g. 10s or 500ms (default: 10s)')
    parser.add_argument('--log-level', dest='log_level', choices=LOG_LEVELS,
                        help='Log level (default: INFO)')
    return parser


def load_config(args: argparse.Namespace) -> ExporterConfig:
    """Merge the optional YAML file with explicit flags"""
    file_values = load_config_file(args.config) if args.config else {}
    overrides = {
        'listen_address': args.listen_address,
        'telemetry_path': args.telemetry_path,
        'sites': args.sites,
        'pid': args.pid,
        'http_timeout': args.http_timeout,
        'log_level': args.log_level,
    }
    return build_config(file_values, overrides)


def build_registry(config: ExporterConfig, client) -> CollectorRegistry:
    """Registry holding the dotcom exporter and process metrics"""
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    DotcomExporter(client, default_labels=config.default_labels, registry=registry)
    return registry


def run(config: ExporterConfig):
    """Serve metrics until interrupted"""
    logger = logging.getLogger(__name__)
    logger.info(f"Starting dotcom monitor exporter; PID: {config.pid[:10]}... ; Sites: {list(config.sites)}")

    client = DotcomClient(config.pid, config.sites, timeout=config.http_timeout)
    registry = build_registry(config, client)

    try:
        server = make_server(config.listen, registry, config.telemetry_path)
    except OSError as e:
        logger.error(f"Failed to listen on {config.listen_address}: {e}")
        client.close()
        sys.exit(1)

    logger.info(f"Listening on address:port => {config.listen_address}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        server.server_close()
        client.close()


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(level=getattr(logging, config.log_level), format=LOG_FORMAT)
    run(config)


if __name__ == '__main__':
    main()
