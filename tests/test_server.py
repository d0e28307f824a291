"""Tests for the exporter HTTP server."""

import threading

import httpx
import pytest
from prometheus_client.core import CollectorRegistry

from dotcom_exporter.exporter import DotcomExporter
from dotcom_exporter.server import make_server


def get(url, **kwargs):
    return httpx.get(url, trust_env=False, **kwargs)


@pytest.fixture
def serve():
    """Start a server on a free port; returns its base URL."""
    servers = []

    def start(registry, telemetry_path="/metrics"):
        server = make_server(("127.0.0.1", 0), registry, telemetry_path)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        host, port = server.server_address[:2]
        return f"http://{host}:{port}"

    yield start

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def registry(fake_client):
    registry = CollectorRegistry()
    DotcomExporter(fake_client(), registry=registry)
    return registry


def test_metrics_endpoint(serve, registry):
    base = serve(registry)

    response = get(f"{base}/metrics", headers={"Accept-Encoding": "identity"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'dotcom_device_status{id="1",name="A",status="x"} 0.0' in response.text
    assert "dotcom_scrape_success 1.0" in response.text


def test_metrics_endpoint_gzip(serve, registry):
    base = serve(registry)

    response = get(f"{base}/metrics", headers={"Accept-Encoding": "gzip"})

    assert response.status_code == 200
    assert response.headers["content-encoding"] == "gzip"
    assert "dotcom_scrape_success" in response.text


def test_metrics_endpoint_ignores_query_string(serve, registry):
    base = serve(registry)

    assert get(f"{base}/metrics?target=x").status_code == 200


def test_each_request_scrapes(serve, fake_client):
    client = fake_client()
    registry = CollectorRegistry()
    DotcomExporter(client, registry=registry)
    base = serve(registry)

    get(f"{base}/metrics")
    get(f"{base}/metrics")

    assert client.calls == 2


def test_landing_page(serve, registry):
    base = serve(registry, telemetry_path="/telemetry")

    response = get(f"{base}/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<a href='/telemetry'>Metrics</a>" in response.text


def test_custom_telemetry_path(serve, registry):
    base = serve(registry, telemetry_path="/telemetry")

    assert get(f"{base}/telemetry").status_code == 200
    assert get(f"{base}/metrics").status_code == 404


def test_unknown_path(serve, registry):
    base = serve(registry)

    assert get(f"{base}/nope").status_code == 404


def test_collector_bug_returns_500(serve, fake_client):
    registry = CollectorRegistry()
    DotcomExporter(fake_client(error=RuntimeError("bug")), registry=registry)
    base = serve(registry)

    assert get(f"{base}/metrics").status_code == 500


def test_upstream_failure_still_served(serve, fake_client):
    from dotcom_exporter.errors import TransportError

    registry = CollectorRegistry()
    DotcomExporter(fake_client(error=TransportError("down")), registry=registry)
    base = serve(registry)

    response = get(f"{base}/metrics")

    assert response.status_code == 200
    assert "dotcom_scrape_success 0.0" in response.text
    assert "dotcom_device_status{" not in response.text
