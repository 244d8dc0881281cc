"""
Custom exceptions for MySQL to BigQuery replication
"""


class ETLException(Exception):
    """Base exception for replication operations"""
    pass


class ConfigurationError(ETLException):
    """Configuration related errors"""
    pass


class RuleNotFoundError(ConfigurationError):
    """No configured rule matches a replicated table"""

    def __init__(self, table_name: str):
        super().__init__(f"No rule matches table '{table_name}'")
        self.table_name = table_name


class UnsupportedTypeError(ETLException):
    """Column type that cannot be converted for the warehouse"""
    pass


class ValueDecodingError(ETLException):
    """Raw column value that cannot be decoded"""
    pass


class TransportError(ETLException):
    """Warehouse or query database call failed"""
    pass


class PartialBatchFailure(ETLException):
    """Warehouse rejected some rows of an upload batch"""

    def __init__(self, table_name: str, errors: list):
        super().__init__(f"BigQuery rejected {len(errors)} row(s) uploaded to '{table_name}': {errors}")
        self.table_name = table_name
        self.errors = errors


class ReplicationError(ETLException):
    """Replication stream errors"""
    pass


class ProtocolError(ReplicationError):
    """Replication stream delivered something the dispatcher cannot handle"""
    pass
