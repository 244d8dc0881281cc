"""
Data models for MySQL to BigQuery replication
"""

from .config import (
    ActionKind,
    ActionConfig,
    RuleConfig,
    MySQLConfig,
    BigQueryConfig,
    ReplicationConfig,
    MetricsConfig,
    ETLConfig
)
from .events import (
    ColumnType,
    ColumnDescriptor,
    TableMetadata,
    ChangeAction,
    LogPosition,
    ChangeEvent,
    TargetRow,
    DeletePredicate
)

__all__ = [
    'ActionKind',
    'ActionConfig',
    'RuleConfig',
    'MySQLConfig',
    'BigQueryConfig',
    'ReplicationConfig',
    'MetricsConfig',
    'ETLConfig',
    'ColumnType',
    'ColumnDescriptor',
    'TableMetadata',
    'ChangeAction',
    'LogPosition',
    'ChangeEvent',
    'TargetRow',
    'DeletePredicate'
]
