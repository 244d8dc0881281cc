"""
Deleter for MySQL to BigQuery replication
"""

from typing import Any, Tuple

import structlog

from ..exceptions import ConfigurationError
from ..models.config import ActionConfig
from ..models.events import ChangeEvent, DeletePredicate
from .column_codec import ColumnCodec
from .warehouse_service import WarehouseService


class Deleter:
    """Deletes the warehouse rows matching the primary keys of an event"""

    def __init__(self, warehouse_service: WarehouseService, codec: ColumnCodec):
        self.warehouse_service = warehouse_service
        self.codec = codec
        self.logger = structlog.get_logger()

    def build_predicate(self, table_name: str, event: ChangeEvent, image: Tuple[Any, ...]) -> DeletePredicate:
        """Primary key predicate for one row image"""
        if not event.table.primary_key:
            raise ConfigurationError(f"Table '{event.table.full_name}' has no primary key, cannot delete rows")

        conditions = tuple(
            (event.table.columns[index].name, self.codec.decode(event.table.columns[index], image[index]))
            for index in event.table.primary_key
        )
        return DeletePredicate(table=table_name, conditions=conditions)

    def delete(self, action: ActionConfig, event: ChangeEvent, offset: int = 0, stride: int = 1) -> int:
        """
        Issue one DELETE per selected row image, in order

        Returns:
            Number of DELETE statements issued
        """
        if action.is_none:
            return 0

        table_name = action.target_table(event.table_name)
        predicates = [self.build_predicate(table_name, event, image)
                      for image in event.select_rows(offset, stride)]

        for predicate in predicates:
            affected = self.warehouse_service.delete_rows(predicate)
            self.logger.info("Rows deleted",
                             table=table_name,
                             source_table=event.table.full_name,
                             action=event.action.value,
                             key=dict(predicate.conditions),
                             affected_rows=affected,
                             position=event.position.token)
        return len(predicates)
