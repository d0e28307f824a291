#!/usr/bin/env python3
"""
Remote Client - Dotcom-Monitor XML reporting API

Issues a single GET per scrape. There are no retries: any failure is raised
to the caller straight away.
"""

import logging
import socket
import threading
import time
from typing import List, Sequence, Tuple

import httpx

from .errors import HTTPStatusError, TransportError

STATUS_URL = 'https://xmlreporter.dotcom-monitor.com/reporting/xml/status.aspx'


class DotcomClient:
    """HTTP client for the status report endpoint with a pooled connection"""

    def __init__(self, pid: str, sites: Sequence[str], timeout: float = 10.0,
                 url: str = STATUS_URL, transport: httpx.BaseTransport = None):
        """
        Initialize the client

        Args:
            pid: Account unique identifier
            sites: Site IDs, names or wildcard patterns such as "*" or "123*"
            timeout: Upper bound in seconds for the whole request/response cycle
            url: Status report endpoint
            transport: Optional httpx transport, used by tests
        """
        self.pid = pid
        self.sites = list(sites)
        self.timeout = timeout
        self.url = url
        self.logger = logging.getLogger(__name__)
        self._client = httpx.Client(timeout=timeout, follow_redirects=True, transport=transport)

    def params(self) -> List[Tuple[str, str]]:
        """Query parameters: PID followed by one repeated site parameter per filter"""
        return [('PID', self.pid)] + [('site', site) for site in self.sites]

    def fetch(self) -> bytes:
        """
        Fetch the raw status report.

        Connecting, sending and waiting for the headers are bounded by the
        httpx timeout. Once the headers are in, a watchdog shuts the socket
        down when the overall deadline passes, which aborts a body that is
        still trickling in.

        Returns:
            bytes: Response body of a 2xx response

        Raises:
            TransportError: connection failure, protocol error or timeout
            HTTPStatusError: upstream answered with a non-2xx status
        """
        deadline = time.monotonic() + self.timeout
        try:
            request = self._client.build_request('GET', self.url, params=self.params())
            response = self._client.send(request, stream=True)
            watchdog = threading.Timer(max(deadline - time.monotonic(), 0.0), self._abort, args=(response,))
            watchdog.daemon = True
            watchdog.start()
            try:
                if not response.is_success:
                    raise HTTPStatusError(response.status_code, response.reason_phrase)
                body = b''.join(response.iter_bytes())
            finally:
                watchdog.cancel()
                response.close()
        except httpx.TimeoutException as e:
            raise TransportError(f"request timed out after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            if time.monotonic() > deadline:
                raise TransportError(f"response not complete after {self.timeout}s") from e
            raise TransportError(f"request to {self.url} failed: {e}") from e

        if time.monotonic() > deadline:
            raise TransportError(f"response not complete after {self.timeout}s")

        self.logger.debug(f"Received {len(body)} bytes from {self.url}")
        return body

    def _abort(self, response: httpx.Response):
        """Shut down the connection behind a response that missed the deadline"""
        stream = response.extensions.get('network_stream')
        sock = stream.get_extra_info('socket') if stream is not None else None
        if sock is None:
            return
        self.logger.debug(f"Aborting response from {self.url} after {self.timeout}s")
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            self.logger.debug(f"Socket already closed: {e}")

    def close(self):
        """Close pooled connections"""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
