"""
Event models for MySQL to BigQuery replication
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple
from enum import Enum

from pymysqlreplication.constants import FIELD_TYPE


class ColumnType(Enum):
    """Column type tags the codec distinguishes"""
    ENUM = "enum"
    SET = "set"
    BIT = "bit"
    STRING = "string"
    JSON = "json"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    OTHER = "other"

    @classmethod
    def from_mysql_type(cls, type_code: int) -> 'ColumnType':
        """Map a binlog column type code to a column type tag"""
        return _MYSQL_TYPES.get(type_code, cls.OTHER)


_MYSQL_TYPES = {
    FIELD_TYPE.ENUM: ColumnType.ENUM,
    FIELD_TYPE.SET: ColumnType.SET,
    FIELD_TYPE.BIT: ColumnType.BIT,
    FIELD_TYPE.VARCHAR: ColumnType.STRING,
    FIELD_TYPE.VAR_STRING: ColumnType.STRING,
    FIELD_TYPE.STRING: ColumnType.STRING,
    FIELD_TYPE.JSON: ColumnType.JSON,
    FIELD_TYPE.DATETIME: ColumnType.DATETIME,
    FIELD_TYPE.DATETIME2: ColumnType.DATETIME,
    FIELD_TYPE.TIMESTAMP: ColumnType.TIMESTAMP,
    FIELD_TYPE.TIMESTAMP2: ColumnType.TIMESTAMP,
}


class ChangeAction(Enum):
    """Row change kinds delivered by the binlog"""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Column metadata taken from the table map of the binlog"""
    name: str
    type: ColumnType = ColumnType.OTHER
    enum_values: Tuple[str, ...] = ()
    set_values: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ValueError("Column name is required")


@dataclass(frozen=True)
class TableMetadata:
    """Snapshot of a source table structure"""
    schema: str
    name: str
    columns: Tuple[ColumnDescriptor, ...]
    primary_key: Tuple[int, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ValueError("Table is required")
        if not self.columns:
            raise ValueError("Columns are required")
        for index in self.primary_key:
            if not 0 <= index < len(self.columns):
                raise ValueError(f"Primary key column index {index} out of range")

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def primary_key_columns(self) -> Tuple[ColumnDescriptor, ...]:
        return tuple(self.columns[index] for index in self.primary_key)


@dataclass(frozen=True)
class LogPosition:
    """Position of an event in the binary log"""
    log_file: str
    log_pos: int

    @property
    def token(self) -> str:
        """Deduplication key shared by every row produced from the event"""
        return f"{self.log_file}:{self.log_pos}"

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class ChangeEvent:
    """
    Row change captured from the binlog.

    Row images are tuples ordered like ``table.columns``. An UPDATE event
    carries its images flattened as ``(old, new, old, new, ...)``.
    """
    table: TableMetadata
    action: ChangeAction
    rows: Tuple[Tuple[Any, ...], ...]
    position: LogPosition
    timestamp: Optional[int] = None

    def __post_init__(self):
        if not self.rows:
            raise ValueError("Row images are required")
        if self.action is ChangeAction.UPDATE and len(self.rows) % 2:
            raise ValueError("UPDATE event requires before and after images")
        width = len(self.table.columns)
        for row in self.rows:
            if len(row) != width:
                raise ValueError(f"Row image has {len(row)} values, table has {width} columns")

    @property
    def table_name(self) -> str:
        return self.table.name

    def select_rows(self, offset: int, stride: int) -> Tuple[Tuple[Any, ...], ...]:
        """Row images starting at offset, taking every stride-th one"""
        return self.rows[offset::stride]


@dataclass
class TargetRow:
    """Row ready for upload to BigQuery"""
    values: Dict[str, Any]
    dedup_key: str


@dataclass(frozen=True)
class DeletePredicate:
    """Primary key equality conjunction identifying one warehouse row"""
    table: str
    conditions: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.table:
            raise ValueError("Target table is required")
        if not self.conditions:
            raise ValueError("Delete predicate requires at least one primary key column")
