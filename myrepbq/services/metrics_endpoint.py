"""
HTTP endpoint for Prometheus metrics

Serves ``/metrics`` through prometheus_client's WSGI app and a JSON
``/health`` check that returns 503 while replication is not connected.
"""

import json
import threading
from typing import Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import structlog
from prometheus_client import make_wsgi_app

from .metrics_service import MetricsService


class _LoggingRequestHandler(WSGIRequestHandler):

    def log_message(self, format, *args):
        structlog.get_logger().debug("Metrics request", client=self.address_string(), message=format % args)


def create_app(metrics_service: MetricsService):
    """WSGI app routing /metrics and /health"""
    metrics_app = make_wsgi_app(metrics_service.registry)

    def app(environ, start_response):
        path = environ.get('PATH_INFO', '')
        if path == '/metrics':
            metrics_service.update_uptime()
            return metrics_app(environ, start_response)
        if path == '/health':
            health = metrics_service.get_health_status()
            status = '200 OK' if health["status"] == "healthy" else '503 Service Unavailable'
            body = json.dumps(health, default=str).encode('utf-8')
            start_response(status, [('Content-Type', 'application/json'),
                                    ('Content-Length', str(len(body)))])
            return [body]
        start_response('404 Not Found', [('Content-Type', 'text/plain')])
        return [b'Not Found']

    return app


class MetricsEndpoint:
    """Background HTTP server exposing the metrics registry"""

    def __init__(self, metrics_service: MetricsService, host: str = '0.0.0.0', port: int = 8080):
        self.metrics_service = metrics_service
        self.host = host
        self.port = port
        self.logger = structlog.get_logger()
        self._server: Optional[WSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._server is not None:
            self.logger.warning("Metrics endpoint already running")
            return

        self._server = make_server(self.host, self.port, create_app(self.metrics_service),
                                   handler_class=_LoggingRequestHandler)
        self._thread = threading.Thread(target=self._server.serve_forever, name="metrics_endpoint", daemon=True)
        self._thread.start()
        self.logger.info("Metrics endpoint started", host=self.host, port=self.server_port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5.0)
        self._server = None
        self._thread = None
        self.logger.info("Metrics endpoint stopped")

    @property
    def server_port(self) -> Optional[int]:
        """Bound port, differs from ``port`` when started on port 0"""
        return self._server.server_port if self._server else None
