"""
Database service for MySQL to BigQuery replication
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

import pymysql
import structlog

from ..exceptions import TransportError
from ..models.config import MySQLConfig


class DatabaseService:
    """Service for queries against the source MySQL server"""

    def __init__(self, config: MySQLConfig):
        self.config = config
        self._connection: Optional[pymysql.Connection] = None
        self.logger = structlog.get_logger()

    def _connection_params(self) -> Dict[str, Any]:
        connection_params = self.config.to_connection_params()
        connection_params.update({
            'connect_timeout': 10,
            'read_timeout': 30,
            'write_timeout': 30,
            'autocommit': True,
            'use_unicode': True,
        })
        return connection_params

    def connect(self) -> pymysql.Connection:
        """Connect to database"""
        try:
            self._connection = pymysql.connect(**self._connection_params())
        except pymysql.MySQLError as e:
            raise TransportError(f"Failed to connect to database: {e}") from e
        return self._connection

    def get_connection(self) -> pymysql.Connection:
        """Get the open connection, reconnecting when it was dropped"""
        if self._connection is None:
            return self.connect()
        try:
            self._connection.ping(reconnect=True)
        except pymysql.MySQLError as e:
            raise TransportError(f"Database connection is no longer valid: {e}") from e
        return self._connection

    @contextmanager
    def get_cursor(self):
        """Get database cursor with automatic cleanup"""
        cursor = self.get_connection().cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    def execute_query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Tuple[List[str], List[Tuple[Any, ...]]]:
        """
        Execute a query with named parameters

        Args:
            sql: Query text using pymysql named placeholders, e.g. ``%(id)s``
            params: Parameter values by name

        Returns:
            Tuple of (result column names, result rows)
        """
        try:
            with self.get_cursor() as cursor:
                cursor.execute(sql, params)
                columns = [description[0] for description in cursor.description or ()]
                return columns, list(cursor.fetchall())
        except pymysql.MySQLError as e:
            raise TransportError(f"Query failed: {e}") from e
        except (KeyError, TypeError) as e:
            raise TransportError(f"Query parameters do not match query placeholders: {e}") from e

    def get_master_status(self) -> Dict[str, Any]:
        """Get MySQL master status"""
        with self.get_cursor() as cursor:
            try:
                cursor.execute("SHOW MASTER STATUS")
                result = cursor.fetchone()
            except pymysql.MySQLError as e:
                raise TransportError(f"Error getting master status: {e}") from e

        if not result:
            raise TransportError("Could not get master status, is binary logging enabled?")
        return {
            'file': result[0],
            'position': result[1]
        }

    def get_binlog_row_image(self) -> Optional[str]:
        """Value of the binlog_row_image server variable"""
        with self.get_cursor() as cursor:
            try:
                cursor.execute("SHOW GLOBAL VARIABLES LIKE 'binlog_row_image'")
                result = cursor.fetchone()
            except pymysql.MySQLError as e:
                raise TransportError(f"Error reading binlog_row_image: {e}") from e
        return result[1] if result else None

    def test_connection(self) -> bool:
        """Test database connection"""
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1")
                result = cursor.fetchone()
                return result[0] == 1
        except Exception as e:
            self.logger.error("MySQL connection test failed", error=str(e))
            return False

    def close(self) -> None:
        """Close the connection"""
        if self._connection is not None:
            try:
                self._connection.close()
            except pymysql.MySQLError as e:
                self.logger.debug("Error closing connection", error=str(e))
            self._connection = None
