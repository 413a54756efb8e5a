"""
HTTP endpoints exposing pipeline state for external polling
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from cloudfront_logs_shipper import __version__
from cloudfront_logs_shipper.processor import LogProcessor

logger = logging.getLogger(__name__)

QUEUE_LENGTH_METRIC = 'cloudfront_logs_shipper_queue_length'


def render_metrics(processor: LogProcessor) -> str:
    """Current queue depth as a single plain text metric line"""
    return f"{QUEUE_LENGTH_METRIC} {processor.queue_length()}\n"


def get_health_status(processor: LogProcessor) -> Dict[str, Any]:
    return {
        "status": "stopping" if processor.stopped else "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "cloudfront-logs-shipper",
        "version": __version__,
        "stopped": processor.stopped,
        "queue_length": processor.queue_length(),
        "workers_alive": processor.workers_alive(),
    }


def create_app(processor: LogProcessor) -> FastAPI:
    app = FastAPI(
        title="CloudFront Logs Shipper",
        version=__version__,
        docs_url=None,
        redoc_url=None
    )

    @app.get("/metrics", response_class=PlainTextResponse)
    def metrics():
        return PlainTextResponse(render_metrics(processor), media_type="text/plain; charset=utf-8")

    @app.get("/health")
    def health():
        return get_health_status(processor)

    return app


def start_metrics_server(processor: LogProcessor, port: int, host: str = "0.0.0.0") -> threading.Thread:
    """Serve the metrics app from a daemon thread"""
    config = uvicorn.Config(create_app(processor), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)

    def serve():
        # uvicorn reports startup failures such as a busy port with sys.exit
        try:
            server.run()
        except SystemExit as e:
            logger.error(f"Metrics server on {host}:{port} exited during startup (code {e.code})")

    thread = threading.Thread(target=serve, name="metrics-server", daemon=True)
    thread.start()
    logger.info(f"Metrics endpoint listening on {host}:{port}")
    return thread
