#!/usr/bin/env python3
"""
CLI Tool for MySQL to BigQuery replication

Reads row changes from the MySQL binlog and applies them to BigQuery
according to the configured rules. Any error halts the process; the
next run resumes from the configured or current binlog position.
"""

import argparse
import sys

from .etl_service import ETLService
from .utils.logger import setup_logging, get_logger
from .exceptions import ETLException


class ReplicationCLI:
    """CLI for running MySQL to BigQuery replication"""

    def __init__(self):
        self.logger = get_logger()
        self.etl_service = ETLService()

    def run_replication(self, config_path: str) -> None:
        """Run replication until shutdown or a fatal error"""
        self.etl_service.initialize(config_path)
        self.etl_service.run_replication()

    def test_connection(self, config_path: str) -> None:
        """Test MySQL and BigQuery connections"""
        self.etl_service.initialize(config_path)
        try:
            if not self.etl_service.test_connections():
                raise ETLException("Connection test failed")
        finally:
            self.etl_service.cleanup()


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(description='MySQL to BigQuery replication')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    run_parser = subparsers.add_parser('run', help='Run replication')
    run_parser.add_argument('config', help='Path to configuration file')
    run_parser.add_argument('--log-level', default='INFO', help='Logging level')
    run_parser.add_argument('--log-format', default='json', choices=['json', 'console'], help='Logging format')

    test_parser = subparsers.add_parser('test', help='Test connections')
    test_parser.add_argument('config', help='Path to configuration file')
    test_parser.add_argument('--log-level', default='INFO', help='Logging level')
    test_parser.add_argument('--log-format', default='json', choices=['json', 'console'], help='Logging format')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    setup_logging(level=args.log_level, format_type=args.log_format)
    logger = get_logger()
    cli = ReplicationCLI()

    try:
        if args.command == 'run':
            cli.run_replication(args.config)
        elif args.command == 'test':
            cli.test_connection(args.config)
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 0
    except ETLException as e:
        logger.error("ETL error", error=str(e), error_type=type(e).__name__)
        return 1
    except Exception as e:
        logger.exception("Unexpected error", error=str(e))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
