"""
BigQuery service for MySQL to BigQuery replication
"""

import datetime
import decimal
from typing import Any, Dict, List, Optional

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery
from google.oauth2 import service_account

from ..exceptions import TransportError, PartialBatchFailure
from ..models.config import BigQueryConfig
from ..models.events import DeletePredicate, TargetRow
from ..utils.sql_builder import SQLBuilder


def query_parameter_type(value: Any) -> str:
    """BigQuery standard SQL type for a Python value"""
    if isinstance(value, bool):
        return "BOOL"
    if isinstance(value, int):
        return "INT64"
    if isinstance(value, float):
        return "FLOAT64"
    if isinstance(value, decimal.Decimal):
        return "NUMERIC"
    if isinstance(value, (bytes, bytearray)):
        return "BYTES"
    if isinstance(value, datetime.datetime):
        return "TIMESTAMP" if value.tzinfo else "DATETIME"
    if isinstance(value, datetime.date):
        return "DATE"
    if isinstance(value, datetime.time):
        return "TIME"
    return "STRING"


class WarehouseService:
    """Service for BigQuery uploads and deletes"""

    def __init__(self, config: BigQueryConfig):
        self.config = config
        self.client: Optional[bigquery.Client] = None
        self._tables: Dict[str, bigquery.Table] = {}
        self.logger = structlog.get_logger()

    def connect(self) -> bigquery.Client:
        """Create the BigQuery client"""
        try:
            if self.config.credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    self.config.credentials_file,
                    scopes=["https://www.googleapis.com/auth/cloud-platform"]
                )
                self.client = bigquery.Client(
                    credentials=credentials,
                    project=self.config.project,
                    location=self.config.location
                )
            else:
                self.client = bigquery.Client(project=self.config.project, location=self.config.location)
        except Exception as e:
            raise TransportError(f"Failed to connect to BigQuery project '{self.config.project}': {e}") from e

        self.logger.info("Connected to BigQuery",
                         project=self.config.project,
                         dataset=self.config.dataset)
        return self.client

    def _get_client(self) -> bigquery.Client:
        if self.client is None:
            raise TransportError("BigQuery client not connected")
        return self.client

    def get_table(self, table_name: str) -> bigquery.Table:
        """Get table (with schema) from cache or BigQuery"""
        table = self._tables.get(table_name)
        if table is None:
            table_id = f"{self.config.project}.{self.config.dataset}.{table_name}"
            try:
                table = self._get_client().get_table(table_id)
            except google_exceptions.GoogleAPIError as e:
                raise TransportError(f"Failed to get BigQuery table '{table_id}': {e}") from e
            self._tables[table_name] = table
        return table

    def insert_rows(self, table_name: str, rows: List[TargetRow]) -> int:
        """
        Stream rows into a table

        Each row is sent with an insert id derived from its deduplication key
        and its ordinal in the batch, so re-sending the same batch lets
        BigQuery discard the duplicates.

        Raises:
            PartialBatchFailure: If BigQuery rejected any row
            TransportError: If the API call failed
        """
        if not rows:
            return 0

        table = self.get_table(table_name)
        values = [row.values for row in rows]
        row_ids = [f"{row.dedup_key}-{ordinal}" for ordinal, row in enumerate(rows)]

        try:
            errors = self._get_client().insert_rows(table, values, row_ids=row_ids)
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            raise TransportError(f"Failed to insert rows into '{table_name}': {e}") from e

        if errors:
            raise PartialBatchFailure(table_name, errors)
        return len(rows)

    def delete_rows(self, predicate: DeletePredicate) -> int:
        """
        Run a parameterized DELETE and wait for it to finish

        Returns:
            Number of rows the statement deleted
        """
        sql, parameters = SQLBuilder.build_delete_sql(self.config.project, self.config.dataset, predicate)
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter(name, query_parameter_type(value), value)
                for name, value in parameters
            ]
        )

        try:
            job = self._get_client().query(sql, job_config=job_config)
            job.result()
        except google_exceptions.GoogleAPIError as e:
            raise TransportError(f"Failed to delete from '{predicate.table}': {e}") from e

        return job.num_dml_affected_rows or 0

    def test_connection(self) -> bool:
        """Test access to the configured dataset"""
        try:
            self._get_client().get_dataset(f"{self.config.project}.{self.config.dataset}")
            return True
        except Exception as e:
            self.logger.error("BigQuery connection test failed", error=str(e))
            return False

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
        self._tables.clear()
        self.logger.info("BigQuery connection closed")
