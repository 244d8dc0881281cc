"""
SQL builder utilities for BigQuery statements
"""

import re
from typing import Any, List, Tuple

from ..models.events import DeletePredicate

_PARAMETER_CHARS = re.compile(r'[^A-Za-z0-9_]')


class SQLBuilder:
    """Utility class for building BigQuery SQL statements"""

    @staticmethod
    def quote_identifier(name: str) -> str:
        """Quote a table or column name with backticks"""
        return "`" + name.replace("`", "\\`") + "`"

    @staticmethod
    def parameter_name(column: str) -> str:
        """Named query parameter for a column"""
        name = _PARAMETER_CHARS.sub('_', column)
        if not name or name[0].isdigit():
            name = f"p_{name}"
        return name

    @staticmethod
    def table_reference(project: str, dataset: str, table: str) -> str:
        """Fully qualified, quoted table reference"""
        return SQLBuilder.quote_identifier(f"{project}.{dataset}.{table}")

    @staticmethod
    def build_delete_sql(project: str, dataset: str, predicate: DeletePredicate) -> Tuple[str, List[Tuple[str, Any]]]:
        """
        Build a parameterized DELETE statement

        Args:
            project: BigQuery project id
            dataset: BigQuery dataset id
            predicate: Primary key conditions of the row to delete

        Returns:
            Tuple of (SQL statement, list of (parameter name, value))
        """
        where = []
        parameters = []

        for column, value in predicate.conditions:
            name = SQLBuilder.parameter_name(column)
            where.append(f"{SQLBuilder.quote_identifier(column)} = @{name}")
            parameters.append((name, value))

        table = SQLBuilder.table_reference(project, dataset, predicate.table)
        delete_sql = f"DELETE FROM {table} WHERE {' AND '.join(where)}"
        return delete_sql, parameters
