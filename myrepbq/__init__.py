"""
MyRepBQ - MySQL replication to BigQuery

Streams row changes from the MySQL binlog into BigQuery tables.
"""

__version__ = "1.0.0"
__author__ = "Tumurzakov"
__email__ = "tumurzakov@example.com"

from .etl_service import ETLService
from .exceptions import ETLException

__all__ = [
    "ETLService",
    "ETLException",
    "__version__",
    "__author__",
    "__email__",
]
