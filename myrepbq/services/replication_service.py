"""
Replication service for MySQL to BigQuery replication
"""

import re
from typing import Any, Callable, Dict, Optional, Tuple

import structlog
from pymysqlreplication import BinLogStreamReader
from pymysqlreplication import row_event
from pymysqlreplication.event import QueryEvent, RotateEvent, XidEvent

from ..exceptions import ConfigurationError, ETLException, ProtocolError, ReplicationError
from ..models.config import MySQLConfig, ReplicationConfig
from ..models.events import (
    ChangeAction, ChangeEvent, ColumnDescriptor, ColumnType, LogPosition, TableMetadata
)
from .database_service import DatabaseService

DDL_TABLE = re.compile(
    r"^\s*(?:ALTER|CREATE|DROP|RENAME|TRUNCATE)\s+(?:TEMPORARY\s+)?TABLE\s+"
    r"(?:IF\s+(?:NOT\s+)?EXISTS\s+)?(?:`?(\w+)`?\.)?`?(\w+)`?",
    re.IGNORECASE
)

ROW_ACTIONS = {
    row_event.WriteRowsEvent: ChangeAction.INSERT,
    row_event.UpdateRowsEvent: ChangeAction.UPDATE,
    row_event.DeleteRowsEvent: ChangeAction.DELETE,
}


def row_action(binlog_event: Any) -> Optional[ChangeAction]:
    """Change action of a rows event, None for other events"""
    for event_class, action in ROW_ACTIONS.items():
        if isinstance(binlog_event, event_class):
            return action
    return None


class EventHandler:
    """Callbacks invoked for events read from the binlog"""

    def on_rotate(self, position: LogPosition) -> None:
        pass

    def on_table_changed(self, schema: str, table: Optional[str]) -> None:
        pass

    def on_row(self, event: ChangeEvent) -> None:
        pass

    def on_xid(self, position: LogPosition) -> None:
        pass

    def on_pos_synced(self, position: LogPosition) -> None:
        pass


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


class ReplicationService:
    """Service reading the MySQL binlog and handing events over one at a time"""

    def __init__(self, mysql_config: MySQLConfig, replication_config: ReplicationConfig,
                 database_service: DatabaseService,
                 table_filter: Optional[Callable[[str], bool]] = None):
        self.mysql_config = mysql_config
        self.replication_config = replication_config
        self.database_service = database_service
        # applies to table names when include_tables is not configured
        self.table_filter = table_filter
        self.logger = structlog.get_logger()
        self._stream: Optional[BinLogStreamReader] = None
        self._tables: Dict[Tuple[str, str], TableMetadata] = {}
        self._shutdown_requested = False
        self.position: Optional[LogPosition] = None

    def request_shutdown(self) -> None:
        """Stop reading after the current event"""
        self._shutdown_requested = True

    def check_row_image(self) -> None:
        """Full row images are required to build rows and primary keys"""
        row_image = self.database_service.get_binlog_row_image()
        if row_image is not None and row_image.upper() != "FULL":
            raise ConfigurationError(f"binlog_row_image must be FULL, server uses {row_image}")

    def start_position(self) -> LogPosition:
        """Configured position, or the current master position"""
        if self.replication_config.log_file:
            return LogPosition(self.replication_config.log_file, self.replication_config.log_pos)
        master_status = self.database_service.get_master_status()
        return LogPosition(master_status['file'], master_status['position'])

    def connect(self) -> BinLogStreamReader:
        """Connect to the binlog stream"""
        self.check_row_image()
        self.position = self.start_position()

        try:
            self._stream = BinLogStreamReader(
                connection_settings=self.mysql_config.to_connection_params(),
                server_id=self.replication_config.server_id,
                log_file=self.position.log_file,
                log_pos=self.position.log_pos,
                resume_stream=True,
                blocking=self.replication_config.blocking,
                only_events=[
                    RotateEvent,
                    QueryEvent,
                    XidEvent,
                    row_event.WriteRowsEvent,
                    row_event.UpdateRowsEvent,
                    row_event.DeleteRowsEvent
                ],
                only_schemas=self.replication_config.only_schemas,
                slave_heartbeat=self.replication_config.heartbeat
            )
        except Exception as e:
            raise ReplicationError(f"Failed to connect to replication stream: {e}") from e

        self.logger.info("Connected to replication stream",
                         log_file=self.position.log_file,
                         log_pos=self.position.log_pos,
                         server_id=self.replication_config.server_id)
        return self._stream

    def run(self, handler: EventHandler) -> None:
        """Read events and hand them to the handler until shutdown or error"""
        if self._stream is None:
            self.connect()

        try:
            for binlog_event in self._stream:
                if self._shutdown_requested:
                    self.logger.info("Shutdown requested, stopping event processing")
                    break
                self.handle_event(binlog_event, handler)
        except ETLException:
            raise
        except Exception as e:
            if self._shutdown_requested:
                return
            raise ReplicationError(f"Error reading binlog events: {e}") from e

    def handle_event(self, binlog_event: Any, handler: EventHandler) -> None:
        """Route one binlog event to the matching handler callback"""
        if isinstance(binlog_event, RotateEvent):
            self.position = LogPosition(_text(binlog_event.next_binlog), binlog_event.position)
            self.logger.info("Binlog rotated", position=self.position.token)
            handler.on_rotate(self.position)
            return

        self.position = LogPosition(self.position.log_file, binlog_event.packet.log_pos)

        if isinstance(binlog_event, QueryEvent):
            self._handle_query(binlog_event, handler)
        elif isinstance(binlog_event, XidEvent):
            handler.on_xid(self.position)
            handler.on_pos_synced(self.position)
        elif row_action(binlog_event) is not None:
            if not self.includes(binlog_event.schema, binlog_event.table):
                self.logger.debug("Table not included, skipping event",
                                  schema=binlog_event.schema,
                                  table=binlog_event.table)
                return
            handler.on_row(self.convert_row_event(binlog_event))
        elif isinstance(binlog_event, row_event.RowsEvent):
            raise ProtocolError(f"Unknown row action: {type(binlog_event).__name__}")
        else:
            self.logger.debug("Ignoring binlog event", event_type=type(binlog_event).__name__)

    def includes(self, schema: str, table: str) -> bool:
        """Check whether row events of a table are handed over"""
        if self.replication_config.table_patterns:
            return self.replication_config.includes(schema, table)
        if self.table_filter is not None:
            return self.table_filter(table)
        return True

    def _handle_query(self, binlog_event: QueryEvent, handler: EventHandler) -> None:
        match = DDL_TABLE.match(_text(binlog_event.query))
        if not match:
            return
        schema = match.group(1) or _text(binlog_event.schema)
        table = match.group(2)
        self._tables.pop((schema, table), None)
        self.logger.info("Table structure changed", schema=schema, table=table)
        handler.on_table_changed(schema, table)

    def table_metadata(self, binlog_event: Any) -> TableMetadata:
        """Table snapshot for a row event, rebuilt when the columns changed"""
        key = (binlog_event.schema, binlog_event.table)
        names = tuple(column.name for column in binlog_event.columns)
        metadata = self._tables.get(key)
        if metadata is None or metadata.column_names != names:
            metadata = self._build_metadata(binlog_event)
            self._tables[key] = metadata
        return metadata

    @staticmethod
    def _build_metadata(binlog_event: Any) -> TableMetadata:
        columns = []
        for column in binlog_event.columns:
            enum_values = list(getattr(column, 'enum_values', None) or ())
            # the binlog reader keeps a placeholder for the empty enum value
            if enum_values and enum_values[0] == '':
                enum_values = enum_values[1:]
            columns.append(ColumnDescriptor(
                name=column.name,
                type=ColumnType.from_mysql_type(column.type),
                enum_values=tuple(enum_values),
                set_values=tuple(getattr(column, 'set_values', None) or ())
            ))

        primary_key = binlog_event.primary_key or ()
        if isinstance(primary_key, str):
            primary_key = (primary_key,)
        names = [column.name for column in columns]
        indexes = tuple(names.index(name) for name in primary_key if name in names)

        return TableMetadata(
            schema=binlog_event.schema,
            name=binlog_event.table,
            columns=tuple(columns),
            primary_key=indexes
        )

    def convert_row_event(self, binlog_event: Any) -> ChangeEvent:
        """Convert a pymysqlreplication rows event to a change event"""
        action = row_action(binlog_event)
        table = self.table_metadata(binlog_event)

        def image(values: Dict[str, Any]) -> Tuple[Any, ...]:
            return tuple(values.get(name) for name in table.column_names)

        rows = []
        for row in binlog_event.rows:
            if action is ChangeAction.UPDATE:
                rows.append(image(row["before_values"]))
                rows.append(image(row["after_values"]))
            else:
                rows.append(image(row["values"]))

        return ChangeEvent(
            table=table,
            action=action,
            rows=tuple(rows),
            position=self.position,
            timestamp=binlog_event.timestamp
        )

    def close(self) -> None:
        """Close the replication stream"""
        if self._stream is not None:
            try:
                self._stream.close()
            except Exception as e:
                self.logger.debug("Error closing replication stream", error=str(e))
            self._stream = None
