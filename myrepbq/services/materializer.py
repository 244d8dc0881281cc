"""
Materializer for MySQL to BigQuery replication

Builds the rows an event contributes to BigQuery and uploads them in one
call. Rows are either mapped column by column from the row image or produced
by a side query that is run once per row image.
"""

from typing import Any, List, Optional, Tuple

import structlog

from ..exceptions import ConfigurationError
from ..models.config import ActionConfig
from ..models.events import ChangeEvent, TableMetadata, TargetRow
from .column_codec import ColumnCodec, normalize_query_value
from .database_service import DatabaseService
from .warehouse_service import WarehouseService


class Materializer:
    """Uploads the selected row images of an event"""

    def __init__(self, warehouse_service: WarehouseService, codec: ColumnCodec,
                 database_service: Optional[DatabaseService] = None):
        self.warehouse_service = warehouse_service
        self.codec = codec
        self.database_service = database_service
        self.logger = structlog.get_logger()

    def materialize(self, action: ActionConfig, event: ChangeEvent, offset: int = 0, stride: int = 1) -> int:
        """
        Upload the row images of an event selected by offset and stride

        Returns:
            Number of rows uploaded
        """
        if action.is_none:
            return 0

        dedup_key = event.position.token
        images = event.select_rows(offset, stride)

        # a remapped delete may carry a query too
        if action.query:
            rows = self._rewrite_rows(action.query, images, event.table, dedup_key)
        else:
            rows = [self._map_row(image, event.table, dedup_key) for image in images]

        table_name = action.target_table(event.table_name)
        if not rows:
            self.logger.info("No rows to upload",
                             table=table_name,
                             source_table=event.table.full_name,
                             position=dedup_key)
            return 0

        uploaded = self.warehouse_service.insert_rows(table_name, rows)
        self.logger.info("Rows uploaded",
                         table=table_name,
                         source_table=event.table.full_name,
                         action=event.action.value,
                         rows=uploaded,
                         position=dedup_key)
        return uploaded

    def _map_row(self, image: Tuple[Any, ...], table: TableMetadata, dedup_key: str) -> TargetRow:
        values = {
            column.name: self.codec.decode(column, value)
            for column, value in zip(table.columns, image)
        }
        return TargetRow(values=values, dedup_key=dedup_key)

    def _rewrite_rows(self, query: str, images: Tuple[Tuple[Any, ...], ...],
                      table: TableMetadata, dedup_key: str) -> List[TargetRow]:
        if self.database_service is None:
            raise ConfigurationError(f"Rewrite query configured for '{table.name}' but no query database available")

        rows = []
        for image in images:
            params = {
                column.name: self.codec.decode(column, value)
                for column, value in zip(table.columns, image)
            }
            columns, results = self.database_service.execute_query(query, params)
            self.logger.debug("Rewrite query returned rows",
                              source_table=table.full_name,
                              rows=len(results))
            for result in results:
                values = {
                    name: normalize_query_value(value)
                    for name, value in zip(columns, result)
                }
                rows.append(TargetRow(values=values, dedup_key=dedup_key))
        return rows
