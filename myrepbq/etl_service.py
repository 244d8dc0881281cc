"""
Main service for MySQL to BigQuery replication
"""

import signal
import time
from typing import Optional

import structlog

from . import __version__
from .exceptions import ETLException
from .models.config import ETLConfig
from .models.events import ChangeEvent, LogPosition
from .services import (
    ConfigService, ColumnCodec, RuleTable, RuleResolver, DatabaseService, WarehouseService,
    Materializer, Deleter, ChangeEventDispatcher, ReplicationService, EventHandler,
    MetricsService, MetricsEndpoint
)


class ReplicationHandler(EventHandler):
    """Hands row events to the dispatcher and records stream progress"""

    def __init__(self, dispatcher: ChangeEventDispatcher, metrics_service: Optional[MetricsService] = None):
        self.dispatcher = dispatcher
        self.metrics_service = metrics_service
        self.logger = structlog.get_logger()
        self.events_processed = 0
        self.last_position: Optional[LogPosition] = None

    def on_row(self, event: ChangeEvent) -> None:
        if self.metrics_service:
            self.metrics_service.record_event_received(event.table_name, event.action.value)

        start_time = time.time()
        result = self.dispatcher.dispatch(event)
        self.events_processed += 1

        if self.metrics_service:
            self.metrics_service.record_dispatch(
                event.table_name, result.route.value, result.rows, time.time() - start_time
            )

    def on_table_changed(self, schema: str, table: Optional[str]) -> None:
        self.logger.info("Table metadata invalidated", schema=schema, table=table)

    def on_pos_synced(self, position: LogPosition) -> None:
        self.last_position = position
        if self.metrics_service:
            self.metrics_service.set_position(position)
        self.logger.debug("Position synced",
                          position=position.token,
                          events_processed=self.events_processed)


class ETLService:
    """Main service wiring the binlog stream to BigQuery"""

    def __init__(self):
        self.logger = structlog.get_logger()
        self.config_service = ConfigService()
        self.config: Optional[ETLConfig] = None
        self.config_path: Optional[str] = None

        self.codec = ColumnCodec()
        self.metrics_service = MetricsService()
        self.metrics_endpoint: Optional[MetricsEndpoint] = None
        self.resolver: Optional[RuleResolver] = None
        self.database_service: Optional[DatabaseService] = None
        self.warehouse_service: Optional[WarehouseService] = None
        self.replication_service: Optional[ReplicationService] = None
        self.dispatcher: Optional[ChangeEventDispatcher] = None

        # Setup signal handlers for graceful shutdown
        self._setup_signal_handlers()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown"""
        def signal_handler(signum, frame):
            self.logger.info("Received signal, initiating shutdown", signal=signum)
            self.request_shutdown()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def request_shutdown(self) -> None:
        """Stop after the event being processed"""
        self.logger.info("Shutdown requested")
        if self.replication_service:
            self.replication_service.request_shutdown()

    def initialize(self, config_path: str) -> None:
        """Load configuration and build the services"""
        try:
            self.config_path = config_path
            self.config = self.config_service.load_config(config_path)

            self.resolver = RuleResolver(RuleTable(self.config.rules))
            self.database_service = DatabaseService(self.config.mysql)
            self.warehouse_service = WarehouseService(self.config.bigquery)
            self.replication_service = ReplicationService(
                self.config.mysql, self.config.replication, self.database_service,
                table_filter=self.resolver.matches
            )
            self.dispatcher = ChangeEventDispatcher(
                resolver=self.resolver,
                materializer=Materializer(self.warehouse_service, self.codec, self.database_service),
                deleter=Deleter(self.warehouse_service, self.codec)
            )

            if self.config.metrics.enabled:
                self.metrics_endpoint = MetricsEndpoint(
                    self.metrics_service, self.config.metrics.host, self.config.metrics.port
                )
            self.metrics_service.set_system_info(version=__version__)

            self.logger.info("ETL service initialized",
                             config_path=config_path,
                             rules=list(self.resolver.rule_table.patterns))
        except ETLException:
            raise
        except Exception as e:
            self.logger.error("Failed to initialize ETL service", error=str(e))
            raise ETLException(f"Initialization failed: {e}") from e

    def _require_initialized(self) -> None:
        if self.dispatcher is None:
            raise ETLException("ETL service not initialized")

    def test_connections(self) -> bool:
        """Test the MySQL and BigQuery connections"""
        self._require_initialized()

        if not self.database_service.test_connection():
            self.logger.error("MySQL connection test failed")
            return False

        self.warehouse_service.connect()
        if not self.warehouse_service.test_connection():
            self.logger.error("BigQuery connection test failed")
            return False

        self.logger.info("All connections tested successfully")
        return True

    def run_replication(self) -> None:
        """Stream binlog events into BigQuery until shutdown or a fatal error"""
        self._require_initialized()
        handler = ReplicationHandler(self.dispatcher, self.metrics_service)

        try:
            if self.metrics_endpoint:
                self.metrics_endpoint.start()
            self.warehouse_service.connect()
            self.replication_service.connect()
            self.metrics_service.set_replication_status(True)
            self.logger.info("Replication started")
            self.replication_service.run(handler)
        except ETLException as e:
            self.metrics_service.record_error(type(e).__name__)
            self.logger.error("Replication halted",
                              error=str(e),
                              error_type=type(e).__name__,
                              position=str(self.replication_service.position),
                              last_synced_position=str(handler.last_position),
                              events_processed=handler.events_processed)
            raise
        finally:
            self.metrics_service.set_replication_status(False)
            self.cleanup()

        self.logger.info("Replication stopped",
                         position=str(self.replication_service.position),
                         events_processed=handler.events_processed)

    def cleanup(self) -> None:
        """Close all connections"""
        for service in (self.replication_service, self.database_service, self.warehouse_service):
            if service is None:
                continue
            try:
                service.close()
            except Exception as e:
                self.logger.error("Cleanup error", service=type(service).__name__, error=str(e))

        if self.metrics_endpoint:
            try:
                self.metrics_endpoint.stop()
            except Exception as e:
                self.logger.error("Cleanup error", service="MetricsEndpoint", error=str(e))
        self.logger.info("Cleanup completed")
