"""
Metrics service for Prometheus monitoring
"""

import time
from typing import Any, Dict, Optional

from prometheus_client import (
    Counter, Histogram, Gauge, Info,
    CollectorRegistry
)

from ..models.events import LogPosition


class MetricsService:
    """Service for managing Prometheus metrics"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._start_time = time.time()
        self._replication_connected = False
        self._last_error: Optional[str] = None
        self._init_metrics()

    def _init_metrics(self) -> None:
        # === REPLICATION METRICS ===
        self.replication_events_received_total = Counter(
            'myrepbq_replication_events_received_total',
            'Total number of row events received from the binlog',
            ['table_name', 'action'],
            registry=self.registry
        )

        self.replication_connection_status = Gauge(
            'myrepbq_replication_connection_status',
            'Replication connection status (1=connected, 0=disconnected)',
            registry=self.registry
        )

        self.replication_log_position = Gauge(
            'myrepbq_replication_log_position',
            'Binlog position of the last committed transaction',
            registry=self.registry
        )

        self.replication_log_file = Info(
            'myrepbq_replication_log_file',
            'Binlog file of the last committed transaction',
            registry=self.registry
        )

        # === DISPATCH METRICS ===
        self.events_dispatched_total = Counter(
            'myrepbq_events_dispatched_total',
            'Total number of events dispatched, by route',
            ['table_name', 'route'],
            registry=self.registry
        )

        self.dispatch_duration = Histogram(
            'myrepbq_dispatch_duration_seconds',
            'Time spent applying one event to BigQuery',
            ['table_name', 'route'],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        # === WAREHOUSE METRICS ===
        self.warehouse_rows_uploaded_total = Counter(
            'myrepbq_warehouse_rows_uploaded_total',
            'Total number of rows streamed into BigQuery',
            ['table_name'],
            registry=self.registry
        )

        self.warehouse_deletes_total = Counter(
            'myrepbq_warehouse_deletes_total',
            'Total number of DELETE statements run in BigQuery',
            ['table_name'],
            registry=self.registry
        )

        # === ERROR METRICS ===
        self.errors_total = Counter(
            'myrepbq_errors_total',
            'Total number of errors that halted replication',
            ['error_type'],
            registry=self.registry
        )

        # === SYSTEM METRICS ===
        self.system_info = Info(
            'myrepbq_system',
            'System information',
            registry=self.registry
        )

        self.uptime_seconds = Gauge(
            'myrepbq_uptime_seconds',
            'Process uptime in seconds',
            registry=self.registry
        )

    def record_event_received(self, table_name: str, action: str) -> None:
        self.replication_events_received_total.labels(table_name=table_name, action=action).inc()

    def record_dispatch(self, table_name: str, route: str, rows: int, duration: float) -> None:
        """Record the outcome of dispatching one event"""
        self.events_dispatched_total.labels(table_name=table_name, route=route).inc()
        self.dispatch_duration.labels(table_name=table_name, route=route).observe(duration)
        if route == "materialize":
            self.warehouse_rows_uploaded_total.labels(table_name=table_name).inc(rows)
        elif route == "delete":
            self.warehouse_deletes_total.labels(table_name=table_name).inc(rows)

    def record_error(self, error_type: str) -> None:
        self._last_error = error_type
        self.errors_total.labels(error_type=error_type).inc()

    def set_position(self, position: LogPosition) -> None:
        self.replication_log_position.set(position.log_pos)
        self.replication_log_file.info({'log_file': position.log_file})

    def set_replication_status(self, connected: bool) -> None:
        self._replication_connected = connected
        self.replication_connection_status.set(1 if connected else 0)

    def set_system_info(self, version: str) -> None:
        self.system_info.info({'version': version})

    def update_uptime(self) -> None:
        self.uptime_seconds.set(time.time() - self._start_time)

    def get_health_status(self) -> Dict[str, Any]:
        """Health summary served on /health"""
        return {
            "status": "healthy" if self._replication_connected else "unhealthy",
            "replication_connected": self._replication_connected,
            "last_error": self._last_error,
            "uptime_seconds": round(time.time() - self._start_time, 3),
        }
