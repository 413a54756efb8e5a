"""
Unit tests for the metrics and health endpoints
"""
import logging
import socket
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from cloudfront_logs_shipper.handlers.metrics import create_app, get_health_status, render_metrics, start_metrics_server
from cloudfront_logs_shipper.processor import LogProcessor


@pytest.fixture
def processor(options, recording_sink):
    return LogProcessor(options, s3_client=None, sink=recording_sink)


@pytest.fixture
def client(processor):
    """Create test client."""
    return TestClient(create_app(processor))


class TestMetricsEndpoint:

    def test_render_metrics_empty_queue(self, processor):
        assert render_metrics(processor) == "cloudfront_logs_shipper_queue_length 0\n"

    def test_metrics_reports_queue_length(self, client, processor):
        for key in ["ns/dist/a.gz", "ns/dist/b.gz", "ns/dist/c.gz"]:
            processor.queue.put(key)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.text == "cloudfront_logs_shipper_queue_length 3\n"

    def test_metrics_follows_dequeues(self, client, processor):
        processor.queue.put("ns/dist/a.gz")
        processor.queue.put("ns/dist/b.gz")
        processor.queue.get()

        assert client.get("/metrics").text == "cloudfront_logs_shipper_queue_length 1\n"

    def test_metrics_does_not_mutate_queue(self, client, processor):
        processor.queue.put("ns/dist/a.gz")

        client.get("/metrics")
        client.get("/metrics")

        assert processor.queue_length() == 1


class TestHealthEndpoint:

    def test_health_running(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["stopped"] is False
        assert data["queue_length"] == 0
        assert data["workers_alive"] == 0
        assert data["service"] == "cloudfront-logs-shipper"

    def test_health_after_stop(self, processor):
        processor.stop()

        status = get_health_status(processor)

        assert status["status"] == "stopping"
        assert status["stopped"] is True


class TestMetricsServer:

    def test_startup_exit_is_logged(self, processor, caplog):
        caplog.set_level(logging.ERROR, logger='cloudfront_logs_shipper.handlers.metrics')

        with patch('cloudfront_logs_shipper.handlers.metrics.uvicorn.Server.run', side_effect=SystemExit(1)):
            thread = start_metrics_server(processor, 0, host="127.0.0.1")
            thread.join(timeout=5)

        assert not thread.is_alive()
        assert "exited during startup (code 1)" in caplog.text

    def test_port_in_use_is_logged(self, processor, caplog):
        caplog.set_level(logging.ERROR, logger='cloudfront_logs_shipper.handlers.metrics')

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]

            thread = start_metrics_server(processor, port, host="127.0.0.1")
            thread.join(timeout=10)

        assert not thread.is_alive()
        assert f"Metrics server on 127.0.0.1:{port} exited during startup" in caplog.text
