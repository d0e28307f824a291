#!/usr/bin/env python3
"""
HTTP server for the exporter

Each request is handled on its own thread. A request to the telemetry path
renders the registry on the spot, which runs one collection of every
registered collector.
"""

import gzip
import logging
import socket
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import ThreadingMixIn
from typing import Tuple
from urllib.parse import urlsplit

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>dotcom-monitor exporter</title></head>
<body>
<h1>dotcom-monitor exporter</h1>
<p><a href='{telemetry_path}'>Metrics</a></p>
</body>
</html>
"""


class ThreadedHTTPServer(ThreadingMixIn, HTTPServer):
    """HTTP Server with threading support for concurrent requests"""
    daemon_threads = True
    allow_reuse_address = True


class MetricsHandler(BaseHTTPRequestHandler):
    """Serves the telemetry path and the landing page"""

    registry: CollectorRegistry = None
    telemetry_path = '/metrics'

    def log_message(self, format, *args):
        """Suppress default logging"""
        pass

    def do_GET(self):
        path = urlsplit(self.path).path
        try:
            if path == self.telemetry_path:
                self._send_metrics()
            elif path == '/':
                body = LANDING_PAGE.format(telemetry_path=self.telemetry_path).encode('utf-8')
                self._send(200, 'text/html; charset=utf-8', body)
            else:
                self.send_error(404, "Not Found")
        except (BrokenPipeError, ConnectionResetError):
            # Client disconnected, ignore silently
            pass

    def _send_metrics(self):
        try:
            data = generate_latest(self.registry)
        except Exception as e:
            logger.error(f"Error serving metrics: {e}", exc_info=True)
            self.send_error(500, "Internal Server Error")
            return

        if 'gzip' in self.headers.get('Accept-Encoding', ''):
            self._send(200, CONTENT_TYPE_LATEST, gzip.compress(data), encoding='gzip')
        else:
            self._send(200, CONTENT_TYPE_LATEST, data)

    def _send(self, status: int, content_type: str, body: bytes, encoding: str = None):
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        if encoding:
            self.send_header('Content-Encoding', encoding)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def make_server(address: Tuple[str, int], registry: CollectorRegistry,
                telemetry_path: str = '/metrics') -> ThreadedHTTPServer:
    """
    Bind a threaded HTTP server serving the given registry.

    Args:
        address: (host, port); an empty host listens on all interfaces
        registry: Registry rendered on the telemetry path
        telemetry_path: Path under which to expose metrics

    Raises:
        OSError: the address cannot be bound
    """
    handler = type('BoundMetricsHandler', (MetricsHandler,), {
        'registry': registry,
        'telemetry_path': telemetry_path,
    })

    server_class = ThreadedHTTPServer
    if ':' in address[0]:
        server_class = type('ThreadedHTTPServerV6', (ThreadedHTTPServer,), {
            'address_family': socket.AF_INET6,
        })
    return server_class(address, handler)
