"""
Logging utilities for MySQL to BigQuery replication
"""

import logging
import sys
from typing import Any, Dict, Optional, TextIO

import structlog

# Third-party loggers that flood INFO with per-request chatter
QUIET_LOGGERS = ("google", "urllib3", "pymysqlreplication")


def add_service_name(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag every entry with the service name"""
    event_dict.setdefault("service", "myrepbq")
    return event_dict


def setup_logging(level: str = "INFO", format_type: str = "json", stream: Optional[TextIO] = None) -> None:
    """
    Setup structured logging for the application

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format (json, console)
        stream: Destination stream, stdout by default
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        # row values and positions are not always JSON types
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(message)s',
        handlers=[
            logging.StreamHandler(stream or sys.stdout)
        ],
        force=True
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)
