"""
Utilities for MySQL to BigQuery replication
"""

from .sql_builder import SQLBuilder
from .logger import setup_logging, get_logger

__all__ = [
    'SQLBuilder',
    'setup_logging',
    'get_logger'
]
