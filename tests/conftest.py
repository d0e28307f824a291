"""Shared pytest configuration and fixtures."""

import socket
import threading
import time

import httpx
import pytest

from dotcom_exporter.client import DotcomClient


TWO_DEVICES = b"""<?xml version="1.0" encoding="utf-8"?>
<DotcomMonitorConfig>
  <Site ID="1" Name="A" State="Down" Status="x" />
  <Site ID="2" Name="B" State="Up" Status="y" />
</DotcomMonitorConfig>
"""

NO_DEVICES = b"""<?xml version="1.0" encoding="utf-8"?>
<DotcomMonitorConfig></DotcomMonitorConfig>
"""


class FakeClient:
    """Stands in for DotcomClient; returns a body or raises"""

    def __init__(self, body=TWO_DEVICES, error=None, delay=0.0):
        self.body = body
        self.error = error
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.fetched_at = []
        self._lock = threading.Lock()

    def fetch(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.fetched_at.append(time.time())
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.body
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def two_devices():
    return TWO_DEVICES


@pytest.fixture
def no_devices():
    return NO_DEVICES


@pytest.fixture
def fake_client():
    """Factory for fake upstream clients."""
    return FakeClient


@pytest.fixture
def mock_client():
    """Factory for a real DotcomClient talking to an httpx.MockTransport."""
    clients = []

    def factory(handler, pid='PID-123', sites=('*',), timeout=1.0):
        client = DotcomClient(pid, sites, timeout=timeout, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def scripted_server(monkeypatch):
    """
    Raw HTTP server on 127.0.0.1 for one request.

    Takes a list of (delay, bytes) steps: after reading the request it
    sleeps for each delay and then sends the bytes. Returns the status URL.
    """
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)

    listeners = []

    def start(steps):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        listeners.append(listener)

        def serve():
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            with conn:
                try:
                    request = b""
                    while b"\r\n\r\n" not in request:
                        data = conn.recv(4096)
                        if not data:
                            return
                        request += data
                    for delay, payload in steps:
                        time.sleep(delay)
                        conn.sendall(payload)
                except OSError:
                    # client gave up
                    return

        threading.Thread(target=serve, daemon=True).start()
        port = listener.getsockname()[1]
        return f"http://127.0.0.1:{port}/reporting/xml/status.aspx"

    yield start

    for listener in listeners:
        listener.close()
