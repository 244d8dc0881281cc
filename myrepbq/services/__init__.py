"""
Services for MySQL to BigQuery replication
"""

from .config_service import ConfigService
from .column_codec import ColumnCodec, normalize_query_value
from .rule_resolver import RuleTable, RuleResolver
from .database_service import DatabaseService
from .warehouse_service import WarehouseService
from .materializer import Materializer
from .deleter import Deleter
from .dispatcher import ChangeEventDispatcher, DispatchResult, Route
from .replication_service import ReplicationService, EventHandler
from .metrics_service import MetricsService
from .metrics_endpoint import MetricsEndpoint

__all__ = [
    'ConfigService',
    'ColumnCodec',
    'normalize_query_value',
    'RuleTable',
    'RuleResolver',
    'DatabaseService',
    'WarehouseService',
    'Materializer',
    'Deleter',
    'ChangeEventDispatcher',
    'DispatchResult',
    'Route',
    'ReplicationService',
    'EventHandler',
    'MetricsService',
    'MetricsEndpoint'
]
