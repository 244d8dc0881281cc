"""
Configuration models for MySQL to BigQuery replication
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, Pattern

from ..exceptions import ConfigurationError


class ActionKind(Enum):
    """How a rule side materializes a change"""
    NONE = "none"
    MIRROR = "mirror"
    REMAP_TO_DELETE = "remap-to-delete"
    REMAP_TO_UPDATE = "remap-to-update"
    REWRITE_VIA_QUERY = "rewrite-via-query"

    @classmethod
    def parse(cls, value: Optional[str], has_query: bool = False) -> 'ActionKind':
        """Parse an action name, accepting the short aliases"""
        if value is None or value == "":
            return cls.REWRITE_VIA_QUERY if has_query else cls.MIRROR
        if not isinstance(value, str):
            raise ConfigurationError(f"Action must be a string, got: {value!r}")
        name = _ACTION_ALIASES.get(value.strip().lower(), value.strip().lower())
        try:
            kind = cls(name)
        except ValueError:
            raise ConfigurationError(f"Unknown action '{value}'")
        if kind is cls.MIRROR and has_query:
            return cls.REWRITE_VIA_QUERY
        return kind


_ACTION_ALIASES = {
    "delete": "remap-to-delete",
    "update": "remap-to-update",
    "query": "rewrite-via-query",
}


@dataclass
class ActionConfig:
    """One side (update or delete) of a rule"""
    kind: ActionKind = ActionKind.MIRROR
    query: Optional[str] = None
    table: Optional[str] = None

    def __post_init__(self):
        if self.kind is ActionKind.REWRITE_VIA_QUERY and not self.query:
            raise ConfigurationError("Query is required for rewrite-via-query action")

    @property
    def is_none(self) -> bool:
        return self.kind is ActionKind.NONE

    def target_table(self, source_table: str) -> str:
        """Target table name, falling back to the source table"""
        return self.table or source_table

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ActionConfig':
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"Action must be a dictionary, got: {data!r}")
        query = data.get('query') or None
        return cls(
            kind=ActionKind.parse(data.get('action'), has_query=bool(query)),
            query=query,
            table=data.get('table') or None
        )


@dataclass
class RuleConfig:
    """Table pattern with its update and delete actions"""
    table: str
    update: ActionConfig = field(default_factory=ActionConfig)
    delete: ActionConfig = field(default_factory=ActionConfig)
    pattern: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.table:
            raise ConfigurationError("Rule table pattern is required")
        try:
            self.pattern = re.compile(self.table)
        except re.error as e:
            raise ConfigurationError(f"Invalid table pattern '{self.table}': {e}")
        if self.update.kind is ActionKind.REMAP_TO_DELETE:
            raise ConfigurationError(f"Rule '{self.table}': remap-to-delete is only valid for delete")
        if self.delete.kind is ActionKind.REMAP_TO_UPDATE:
            raise ConfigurationError(f"Rule '{self.table}': remap-to-update is only valid for update")

    def matches(self, table_name: str) -> bool:
        return self.pattern.fullmatch(table_name) is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RuleConfig':
        if not isinstance(data, dict):
            raise ConfigurationError(f"Rule must be a dictionary, got: {data!r}")
        return cls(
            table=data.get('table', ''),
            update=ActionConfig.from_dict(data.get('update')),
            delete=ActionConfig.from_dict(data.get('delete'))
        )


@dataclass
class MySQLConfig:
    """Source database connection configuration"""
    host: str
    port: int = 3306
    user: str = ""
    password: str = ""
    charset: str = "utf8mb4"

    def __post_init__(self):
        """Validate configuration after initialization"""
        if not self.host:
            raise ConfigurationError("Host is required")
        if not self.user:
            raise ConfigurationError("User is required")
        if not (1 <= self.port <= 65535):
            raise ConfigurationError("Port must be between 1 and 65535")

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to pymysql connection parameters"""
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'charset': self.charset
        }


@dataclass
class BigQueryConfig:
    """Warehouse configuration"""
    project: str
    dataset: str
    credentials_file: Optional[str] = None
    location: Optional[str] = None

    def __post_init__(self):
        if not self.project:
            raise ConfigurationError("BigQuery project is required")
        if not self.dataset:
            raise ConfigurationError("BigQuery dataset is required")


@dataclass
class ReplicationConfig:
    """Replication stream configuration"""
    server_id: int = 100
    log_file: Optional[str] = None
    log_pos: int = 4
    blocking: bool = True
    only_schemas: Optional[List[str]] = None
    include_tables: Optional[List[str]] = None
    heartbeat: Optional[float] = None
    table_patterns: List[Pattern] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.server_id <= 0:
            raise ConfigurationError("Server ID must be positive")
        if self.log_pos < 4:
            raise ConfigurationError("Log position must be at least 4")
        self.table_patterns = []
        for pattern in self.include_tables or []:
            try:
                self.table_patterns.append(re.compile(pattern))
            except re.error as e:
                raise ConfigurationError(f"Invalid include_tables pattern '{pattern}': {e}")

    def includes(self, schema: str, table: str) -> bool:
        """Check a table against the inclusion filter (schema.table)"""
        if not self.table_patterns:
            return True
        full_name = f"{schema}.{table}"
        return any(p.fullmatch(full_name) for p in self.table_patterns)


@dataclass
class MetricsConfig:
    """Prometheus endpoint configuration"""
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    def __post_init__(self):
        if not (0 <= self.port <= 65535):
            raise ConfigurationError("Metrics port must be between 0 and 65535")


@dataclass
class ETLConfig:
    """Main replication configuration"""
    mysql: MySQLConfig
    bigquery: BigQueryConfig
    replication: ReplicationConfig
    rules: List[RuleConfig]
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    def __post_init__(self):
        """Validate configuration after initialization"""
        if not self.rules:
            raise ConfigurationError("At least one rule is required")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ETLConfig':
        """Create ETLConfig from dictionary"""
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a dictionary")
        try:
            rules_data = config_dict.get('rules') or []
            if not isinstance(rules_data, list):
                raise ConfigurationError("Rules must be a list")

            return cls(
                mysql=MySQLConfig(**config_dict['mysql']),
                bigquery=BigQueryConfig(**config_dict['bigquery']),
                replication=ReplicationConfig(**(config_dict.get('replication') or {})),
                rules=[RuleConfig.from_dict(rule) for rule in rules_data],
                metrics=MetricsConfig(**(config_dict.get('metrics') or {}))
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing required configuration key: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")
