"""
Unit tests for services
"""

import datetime
import decimal
import json
import os
import tempfile
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pymysql
import pytest
import yaml
from google.api_core import exceptions as google_exceptions
from pymysqlreplication import row_event
from pymysqlreplication.constants import FIELD_TYPE
from pymysqlreplication.event import QueryEvent, RotateEvent, XidEvent, GtidEvent

from myrepbq.services.config_service import ConfigService
from myrepbq.services.database_service import DatabaseService
from myrepbq.services.warehouse_service import WarehouseService, query_parameter_type
from myrepbq.services.replication_service import EventHandler, ReplicationService
from myrepbq.models.config import BigQueryConfig, ETLConfig, MySQLConfig, ReplicationConfig
from myrepbq.models.events import (
    ChangeAction, ColumnType, DeletePredicate, LogPosition, TargetRow
)
from myrepbq.exceptions import (
    ConfigurationError, PartialBatchFailure, ProtocolError, ReplicationError, TransportError
)


def sample_config():
    return {
        "mysql": {"host": "mysql_host", "user": "repl", "password": "secret"},
        "bigquery": {"project": "proj", "dataset": "analytics"},
        "replication": {"server_id": 100},
        "rules": [
            {"table": "orders", "update": {"action": "mirror"}, "delete": {"action": "remap-to-delete"}}
        ]
    }


def write_config(text, suffix):
    with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as f:
        f.write(text)
        return f.name


class TestConfigService:
    """Test ConfigService"""

    def test_load_json_config(self):
        """Test loading JSON configuration"""
        config_path = write_config(json.dumps(sample_config()), '.json')
        try:
            config = ConfigService().load_config(config_path)

            assert isinstance(config, ETLConfig)
            assert config.mysql.host == "mysql_host"
            assert config.bigquery.dataset == "analytics"
            assert config.replication.server_id == 100
            assert [rule.table for rule in config.rules] == ["orders"]
        finally:
            os.unlink(config_path)

    def test_load_yaml_config(self):
        """Test loading YAML configuration"""
        config_path = write_config(yaml.dump(sample_config()), '.yaml')
        try:
            service = ConfigService()
            config = service.load_config(config_path)

            assert config.bigquery.project == "proj"
            assert service.get_config() is config
        finally:
            os.unlink(config_path)

    def test_environment_variables_expanded(self):
        """Test $VAR references are expanded before parsing"""
        data = sample_config()
        data["mysql"]["password"] = "${MYREPBQ_TEST_PASSWORD}"
        config_path = write_config(yaml.dump(data), '.yml')
        try:
            with patch.dict(os.environ, {"MYREPBQ_TEST_PASSWORD": "from-env"}):
                config = ConfigService().load_config(config_path)

            assert config.mysql.password == "from-env"
        finally:
            os.unlink(config_path)

    def test_load_nonexistent_config(self):
        """Test loading a missing configuration file"""
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigService().load_config("nonexistent.yaml")

    def test_unsupported_format(self):
        """Test unsupported file extensions are rejected"""
        config_path = write_config("mysql = 1", '.toml')
        try:
            with pytest.raises(ConfigurationError, match="Unsupported configuration format"):
                ConfigService().load_config(config_path)
        finally:
            os.unlink(config_path)

    def test_invalid_json(self):
        """Test invalid JSON is reported as a configuration error"""
        config_path = write_config("{not json", '.json')
        try:
            with pytest.raises(ConfigurationError, match="Invalid JSON"):
                ConfigService().load_config(config_path)
        finally:
            os.unlink(config_path)

    def test_invalid_yaml(self):
        """Test invalid YAML is reported as a configuration error"""
        config_path = write_config("rules: [unclosed", '.yaml')
        try:
            with pytest.raises(ConfigurationError, match="Invalid YAML"):
                ConfigService().load_config(config_path)
        finally:
            os.unlink(config_path)

    def test_get_config_before_load(self):
        """Test get_config without a loaded configuration"""
        with pytest.raises(ConfigurationError, match="not loaded"):
            ConfigService().get_config()


class TestQueryParameterType:
    """Test BigQuery parameter type selection"""

    def test_scalar_types(self):
        assert query_parameter_type(True) == "BOOL"
        assert query_parameter_type(7) == "INT64"
        assert query_parameter_type(1.5) == "FLOAT64"
        assert query_parameter_type(decimal.Decimal("1.10")) == "NUMERIC"
        assert query_parameter_type(b"\x00") == "BYTES"
        assert query_parameter_type("abc") == "STRING"

    def test_temporal_types(self):
        assert query_parameter_type(datetime.datetime(2024, 1, 1)) == "DATETIME"
        assert query_parameter_type(datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)) == "TIMESTAMP"
        assert query_parameter_type(datetime.date(2024, 1, 1)) == "DATE"
        assert query_parameter_type(datetime.time(12, 0)) == "TIME"


class TestWarehouseService:
    """Test WarehouseService"""

    def setup_method(self):
        self.config = BigQueryConfig(project="proj", dataset="analytics")
        self.service = WarehouseService(self.config)
        self.client = Mock()
        self.service.client = self.client

    def test_connect_with_default_credentials(self):
        """Test client creation without a credentials file"""
        service = WarehouseService(BigQueryConfig(project="proj", dataset="analytics", location="EU"))
        with patch('myrepbq.services.warehouse_service.bigquery') as mock_bigquery:
            client = service.connect()

        mock_bigquery.Client.assert_called_once_with(project="proj", location="EU")
        assert client is mock_bigquery.Client.return_value

    def test_connect_with_service_account(self):
        """Test client creation from a service account file"""
        service = WarehouseService(BigQueryConfig(project="proj", dataset="analytics",
                                                  credentials_file="/etc/sa.json"))
        with patch('myrepbq.services.warehouse_service.bigquery') as mock_bigquery, \
             patch('myrepbq.services.warehouse_service.service_account') as mock_sa:
            service.connect()

        credentials = mock_sa.Credentials.from_service_account_file.return_value
        assert mock_sa.Credentials.from_service_account_file.call_args[0][0] == "/etc/sa.json"
        assert mock_bigquery.Client.call_args[1]["credentials"] is credentials

    def test_connect_failure(self):
        """Test client creation errors become transport errors"""
        with patch('myrepbq.services.warehouse_service.bigquery') as mock_bigquery:
            mock_bigquery.Client.side_effect = Exception("no credentials")

            with pytest.raises(TransportError, match="Failed to connect to BigQuery"):
                self.service.connect()

    def test_not_connected(self):
        """Test operations before connect"""
        service = WarehouseService(self.config)
        with pytest.raises(TransportError, match="not connected"):
            service.insert_rows("orders", [TargetRow({"id": 1}, "bin.000001:4")])

    def test_insert_rows_with_row_ids(self):
        """Test rows are streamed with insert ids derived from the dedup key"""
        self.client.insert_rows.return_value = []
        rows = [TargetRow({"id": 1}, "bin.000001:120"), TargetRow({"id": 2}, "bin.000001:120")]

        assert self.service.insert_rows("orders", rows) == 2

        self.client.get_table.assert_called_once_with("proj.analytics.orders")
        table = self.client.get_table.return_value
        self.client.insert_rows.assert_called_once_with(
            table, [{"id": 1}, {"id": 2}], row_ids=["bin.000001:120-0", "bin.000001:120-1"]
        )

    def test_table_cached(self):
        """Test table metadata is fetched once"""
        self.client.insert_rows.return_value = []
        self.service.insert_rows("orders", [TargetRow({"id": 1}, "k")])
        self.service.insert_rows("orders", [TargetRow({"id": 2}, "k")])

        assert self.client.get_table.call_count == 1

    def test_insert_empty(self):
        """Test an empty batch makes no API call"""
        assert self.service.insert_rows("orders", []) == 0
        self.client.insert_rows.assert_not_called()

    def test_partial_failure(self):
        """Test rejected rows raise PartialBatchFailure"""
        self.client.insert_rows.return_value = [{"index": 0, "errors": [{"reason": "invalid"}]}]

        with pytest.raises(PartialBatchFailure, match="rejected 1 row"):
            self.service.insert_rows("orders", [TargetRow({"id": "x"}, "k")])

    def test_insert_api_error(self):
        """Test API errors become transport errors"""
        self.client.insert_rows.side_effect = google_exceptions.ServiceUnavailable("down")

        with pytest.raises(TransportError, match="Failed to insert rows into 'orders'"):
            self.service.insert_rows("orders", [TargetRow({"id": 1}, "k")])

    def test_delete_rows(self):
        """Test a parameterized DELETE is run and awaited"""
        job = self.client.query.return_value
        job.num_dml_affected_rows = 1
        predicate = DeletePredicate("orders", (("id", 7), ("region", "eu")))

        with patch('myrepbq.services.warehouse_service.bigquery') as mock_bigquery:
            affected = self.service.delete_rows(predicate)

            mock_bigquery.ScalarQueryParameter.assert_any_call("id", "INT64", 7)
            mock_bigquery.ScalarQueryParameter.assert_any_call("region", "STRING", "eu")
            job_config = mock_bigquery.QueryJobConfig.return_value

        assert affected == 1
        sql = self.client.query.call_args[0][0]
        assert sql == "DELETE FROM `proj.analytics.orders` WHERE `id` = @id AND `region` = @region"
        assert self.client.query.call_args[1]["job_config"] is job_config
        job.result.assert_called_once()

    def test_delete_api_error(self):
        """Test failed DELETE jobs become transport errors"""
        self.client.query.return_value.result.side_effect = google_exceptions.BadRequest("bad query")

        with pytest.raises(TransportError, match="Failed to delete from 'orders'"):
            self.service.delete_rows(DeletePredicate("orders", (("id", 7),)))

    def test_test_connection(self):
        """Test dataset access check"""
        assert self.service.test_connection() is True
        self.client.get_dataset.assert_called_once_with("proj.analytics")

        self.client.get_dataset.side_effect = google_exceptions.NotFound("missing")
        assert self.service.test_connection() is False

    def test_close(self):
        """Test close releases the client"""
        self.service.close()

        self.client.close.assert_called_once()
        assert self.service.client is None


class TestDatabaseService:
    """Test DatabaseService"""

    def setup_method(self):
        self.service = DatabaseService(MySQLConfig(host="mysql_host", user="repl", password="secret"))

    def _patch_cursor(self, mock_connect):
        cursor = Mock()
        mock_connect.return_value.cursor.return_value = cursor
        return cursor

    @patch('pymysql.connect')
    def test_connect(self, mock_connect):
        """Test connection parameters"""
        self.service.connect()

        params = mock_connect.call_args[1]
        assert params['host'] == "mysql_host"
        assert params['user'] == "repl"
        assert params['autocommit'] is True

    @patch('pymysql.connect')
    def test_connect_failure(self, mock_connect):
        """Test connection errors become transport errors"""
        mock_connect.side_effect = pymysql.err.OperationalError(2003, "refused")

        with pytest.raises(TransportError, match="Failed to connect to database"):
            self.service.connect()

    @patch('pymysql.connect')
    def test_execute_query(self, mock_connect):
        """Test named parameters and result columns"""
        cursor = self._patch_cursor(mock_connect)
        cursor.description = (("id",), ("name",))
        cursor.fetchall.return_value = [(1, "a"), (2, "b")]

        columns, rows = self.service.execute_query("SELECT id, name FROM t WHERE id = %(id)s", {"id": 1})

        cursor.execute.assert_called_once_with("SELECT id, name FROM t WHERE id = %(id)s", {"id": 1})
        cursor.close.assert_called_once()
        assert columns == ["id", "name"]
        assert rows == [(1, "a"), (2, "b")]

    @patch('pymysql.connect')
    def test_execute_query_error(self, mock_connect):
        """Test query errors become transport errors"""
        cursor = self._patch_cursor(mock_connect)
        cursor.execute.side_effect = pymysql.err.ProgrammingError(1064, "syntax")

        with pytest.raises(TransportError, match="Query failed"):
            self.service.execute_query("SELEC 1")
        cursor.close.assert_called_once()

    @patch('pymysql.connect')
    def test_execute_query_missing_parameter(self, mock_connect):
        """Test placeholders without a matching column"""
        cursor = self._patch_cursor(mock_connect)
        cursor.execute.side_effect = KeyError("missing")

        with pytest.raises(TransportError, match="do not match"):
            self.service.execute_query("SELECT %(missing)s", {"id": 1})

    @patch('pymysql.connect')
    def test_get_master_status(self, mock_connect):
        """Test getting master status"""
        cursor = self._patch_cursor(mock_connect)
        cursor.fetchone.return_value = ("mysql-bin.000001", 1234, "", "", "")

        status = self.service.get_master_status()

        assert status == {'file': "mysql-bin.000001", 'position': 1234}

    @patch('pymysql.connect')
    def test_get_master_status_without_binlog(self, mock_connect):
        """Test master status when binary logging is off"""
        cursor = self._patch_cursor(mock_connect)
        cursor.fetchone.return_value = None

        with pytest.raises(TransportError, match="binary logging"):
            self.service.get_master_status()

    @patch('pymysql.connect')
    def test_get_binlog_row_image(self, mock_connect):
        cursor = self._patch_cursor(mock_connect)
        cursor.fetchone.return_value = ("binlog_row_image", "FULL")

        assert self.service.get_binlog_row_image() == "FULL"

    @patch('pymysql.connect')
    def test_test_connection(self, mock_connect):
        """Test connection testing"""
        cursor = self._patch_cursor(mock_connect)
        cursor.fetchone.return_value = (1,)

        assert self.service.test_connection() is True

        cursor.execute.side_effect = pymysql.err.OperationalError(2013, "lost")
        assert self.service.test_connection() is False

    @patch('pymysql.connect')
    def test_reconnect_on_reuse(self, mock_connect):
        """Test the open connection is pinged before reuse"""
        cursor = self._patch_cursor(mock_connect)
        cursor.description = (("1",),)
        cursor.fetchall.return_value = [(1,)]
        self.service.execute_query("SELECT 1")
        self.service.execute_query("SELECT 1")

        assert mock_connect.call_count == 1
        mock_connect.return_value.ping.assert_called_with(reconnect=True)

    @patch('pymysql.connect')
    def test_close(self, mock_connect):
        self.service.connect()
        self.service.close()

        mock_connect.return_value.close.assert_called_once()
        assert self.service._connection is None


def make_column(name, type_code, **extra):
    return SimpleNamespace(name=name, type=type_code, **extra)


def make_row_event(event_class, rows, schema="shop", table="orders", log_pos=900, columns=None):
    binlog_event = Mock(spec=event_class)
    binlog_event.schema = schema
    binlog_event.table = table
    binlog_event.primary_key = "id"
    binlog_event.columns = columns or [
        make_column("id", FIELD_TYPE.LONG),
        make_column("status", FIELD_TYPE.ENUM, enum_values=["", "new", "paid"]),
    ]
    binlog_event.rows = rows
    binlog_event.timestamp = 1700000000
    binlog_event.packet = SimpleNamespace(log_pos=log_pos)
    return binlog_event


def make_query_event(query, schema="shop", log_pos=300):
    binlog_event = Mock(spec=QueryEvent)
    binlog_event.query = query
    binlog_event.schema = schema
    binlog_event.packet = SimpleNamespace(log_pos=log_pos)
    return binlog_event


class TestReplicationService:
    """Test ReplicationService"""

    def setup_method(self):
        self.database_service = Mock()
        self.database_service.get_binlog_row_image.return_value = "FULL"
        self.database_service.get_master_status.return_value = {'file': "mysql-bin.000003", 'position': 154}
        self.service = ReplicationService(
            MySQLConfig(host="mysql_host", user="repl", password="secret"),
            ReplicationConfig(server_id=100),
            self.database_service
        )
        self.service.position = LogPosition("mysql-bin.000003", 154)
        self.handler = Mock(spec=EventHandler)

    def test_start_position_from_master_status(self):
        """Test streaming starts at the current master position by default"""
        assert self.service.start_position() == LogPosition("mysql-bin.000003", 154)

    def test_start_position_from_config(self):
        """Test a configured position wins over master status"""
        self.service.replication_config = ReplicationConfig(log_file="mysql-bin.000001", log_pos=4)

        assert self.service.start_position() == LogPosition("mysql-bin.000001", 4)
        self.database_service.get_master_status.assert_not_called()

    def test_row_image_must_be_full(self):
        """Test minimal row images are refused"""
        self.database_service.get_binlog_row_image.return_value = "MINIMAL"

        with pytest.raises(ConfigurationError, match="binlog_row_image must be FULL"):
            self.service.check_row_image()

    @patch('myrepbq.services.replication_service.BinLogStreamReader')
    def test_connect(self, mock_reader):
        """Test the binlog stream is opened at the start position"""
        self.service.replication_config = ReplicationConfig(server_id=7, only_schemas=["shop"])

        stream = self.service.connect()

        kwargs = mock_reader.call_args[1]
        assert stream is mock_reader.return_value
        assert kwargs['server_id'] == 7
        assert kwargs['log_file'] == "mysql-bin.000003"
        assert kwargs['log_pos'] == 154
        assert kwargs['only_schemas'] == ["shop"]
        assert kwargs['connection_settings']['host'] == "mysql_host"
        assert row_event.WriteRowsEvent in kwargs['only_events']

    @patch('myrepbq.services.replication_service.BinLogStreamReader')
    def test_connect_failure(self, mock_reader):
        mock_reader.side_effect = Exception("access denied")

        with pytest.raises(ReplicationError, match="Failed to connect to replication stream"):
            self.service.connect()

    def test_insert_event(self):
        """Test a write event becomes an insert change event"""
        binlog_event = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 2}}])

        self.service.handle_event(binlog_event, self.handler)

        event = self.handler.on_row.call_args[0][0]
        assert event.action is ChangeAction.INSERT
        assert event.rows == ((1, 2),)
        assert event.position == LogPosition("mysql-bin.000003", 900)
        assert event.table.full_name == "shop.orders"
        assert event.table.primary_key == (0,)

    def test_enum_placeholder_stripped(self):
        """Test the leading empty enum value is removed from metadata"""
        binlog_event = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])

        self.service.handle_event(binlog_event, self.handler)

        status = self.handler.on_row.call_args[0][0].table.columns[1]
        assert status.type is ColumnType.ENUM
        assert status.enum_values == ("new", "paid")

    def test_update_event_flattened(self):
        """Test update images are flattened as old, new pairs"""
        binlog_event = make_row_event(row_event.UpdateRowsEvent, [
            {"before_values": {"id": 1, "status": 1}, "after_values": {"id": 1, "status": 2}},
            {"before_values": {"id": 2, "status": 1}, "after_values": {"id": 2, "status": 2}},
        ])

        self.service.handle_event(binlog_event, self.handler)

        event = self.handler.on_row.call_args[0][0]
        assert event.action is ChangeAction.UPDATE
        assert event.rows == ((1, 1), (1, 2), (2, 1), (2, 2))

    def test_delete_event(self):
        binlog_event = make_row_event(row_event.DeleteRowsEvent, [{"values": {"id": 5, "status": 1}}])

        self.service.handle_event(binlog_event, self.handler)

        assert self.handler.on_row.call_args[0][0].action is ChangeAction.DELETE

    def test_excluded_table_skipped(self):
        """Test tables outside include_tables are not handed over"""
        self.service.replication_config = ReplicationConfig(include_tables=[r"shop\.customers"])
        binlog_event = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])

        self.service.handle_event(binlog_event, self.handler)

        self.handler.on_row.assert_not_called()

    def test_table_without_rule_skipped(self):
        """Test the rule filter applies when include_tables is not set"""
        self.service.table_filter = lambda table: table == "orders"
        binlog_event = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}],
                                      table="audit_log")

        self.service.handle_event(binlog_event, self.handler)

        self.handler.on_row.assert_not_called()
        assert self.service.position == LogPosition("mysql-bin.000003", 900)

    def test_table_with_rule_handed_over(self):
        self.service.table_filter = lambda table: table == "orders"
        binlog_event = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])

        self.service.handle_event(binlog_event, self.handler)

        self.handler.on_row.assert_called_once()

    def test_include_tables_take_precedence_over_rules(self):
        """Test include_tables replaces the rule filter"""
        self.service.table_filter = lambda table: False
        self.service.replication_config = ReplicationConfig(include_tables=[r"shop\.orders"])

        assert self.service.includes("shop", "orders") is True
        assert self.service.includes("shop", "customers") is False

    def test_no_filter_includes_everything(self):
        assert self.service.includes("shop", "anything") is True

    def test_rotate_event(self):
        """Test rotation moves the position to the next file"""
        binlog_event = Mock(spec=RotateEvent)
        binlog_event.next_binlog = "mysql-bin.000004"
        binlog_event.position = 4

        self.service.handle_event(binlog_event, self.handler)

        assert self.service.position == LogPosition("mysql-bin.000004", 4)
        self.handler.on_rotate.assert_called_once_with(LogPosition("mysql-bin.000004", 4))

    def test_xid_event_syncs_position(self):
        """Test a commit reports the synced position"""
        binlog_event = Mock(spec=XidEvent)
        binlog_event.packet = SimpleNamespace(log_pos=1200)

        self.service.handle_event(binlog_event, self.handler)

        position = LogPosition("mysql-bin.000003", 1200)
        self.handler.on_xid.assert_called_once_with(position)
        self.handler.on_pos_synced.assert_called_once_with(position)

    def test_ddl_invalidates_table_metadata(self):
        """Test table metadata is rebuilt after DDL on the table"""
        insert = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])
        self.service.handle_event(insert, self.handler)
        first = self.handler.on_row.call_args[0][0].table

        self.service.handle_event(make_query_event("ALTER TABLE `orders` ADD COLUMN note TEXT"), self.handler)
        self.handler.on_table_changed.assert_called_once_with("shop", "orders")

        self.service.handle_event(insert, self.handler)
        second = self.handler.on_row.call_args[0][0].table
        assert second == first
        assert second is not first

    def test_table_metadata_cached(self):
        insert = make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])

        assert self.service.table_metadata(insert) is self.service.table_metadata(insert)

    def test_non_ddl_query_ignored(self):
        self.service.handle_event(make_query_event("BEGIN"), self.handler)

        self.handler.on_table_changed.assert_not_called()

    def test_unknown_rows_event(self):
        """Test an unknown rows event is a protocol error"""
        binlog_event = Mock(spec=row_event.RowsEvent)
        binlog_event.packet = SimpleNamespace(log_pos=1300)

        with pytest.raises(ProtocolError, match="Unknown row action"):
            self.service.handle_event(binlog_event, self.handler)

    def test_other_events_ignored(self):
        binlog_event = Mock(spec=GtidEvent)
        binlog_event.packet = SimpleNamespace(log_pos=1400)

        self.service.handle_event(binlog_event, self.handler)

        self.handler.on_row.assert_not_called()
        assert self.service.position == LogPosition("mysql-bin.000003", 1400)

    def test_run_stops_on_shutdown(self):
        """Test events after a shutdown request are not handled"""
        first = Mock(spec=XidEvent)
        first.packet = SimpleNamespace(log_pos=200)
        second = Mock(spec=XidEvent)
        second.packet = SimpleNamespace(log_pos=300)

        def on_xid(position):
            self.service.request_shutdown()
        self.handler.on_xid.side_effect = on_xid
        self.service._stream = iter([first, second])

        self.service.run(self.handler)

        self.handler.on_xid.assert_called_once()

    def test_run_wraps_stream_errors(self):
        """Test stream read errors become replication errors"""
        def broken_stream():
            raise OSError("connection reset")
            yield
        self.service._stream = broken_stream()

        with pytest.raises(ReplicationError, match="Error reading binlog events"):
            self.service.run(self.handler)

    def test_run_propagates_handler_errors(self):
        """Test ETL errors raised while handling reach the caller unchanged"""
        self.handler.on_row.side_effect = TransportError("upload failed")
        self.service._stream = iter([
            make_row_event(row_event.WriteRowsEvent, [{"values": {"id": 1, "status": 1}}])
        ])

        with pytest.raises(TransportError, match="upload failed"):
            self.service.run(self.handler)

    def test_close(self):
        stream = Mock()
        self.service._stream = stream

        self.service.close()

        stream.close.assert_called_once()
        assert self.service._stream is None
