"""
Rule resolution for MySQL to BigQuery replication
"""

from typing import Iterable, Iterator, Tuple

from ..exceptions import ConfigurationError, RuleNotFoundError
from ..models.config import RuleConfig


class RuleTable:
    """Ordered, read-only collection of replication rules"""

    def __init__(self, rules: Iterable[RuleConfig]):
        self._rules: Tuple[RuleConfig, ...] = tuple(rules)
        if not self._rules:
            raise ConfigurationError("At least one rule is required")

    def __iter__(self) -> Iterator[RuleConfig]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(rule.table for rule in self._rules)


class RuleResolver:
    """Finds the rule governing a table; the first matching rule wins"""

    def __init__(self, rule_table: RuleTable):
        self.rule_table = rule_table

    def resolve(self, table_name: str) -> RuleConfig:
        """
        Resolve the rule for a table

        Raises:
            RuleNotFoundError: If no rule pattern matches the table name
        """
        for rule in self.rule_table:
            if rule.matches(table_name):
                return rule
        raise RuleNotFoundError(table_name)

    def matches(self, table_name: str) -> bool:
        return any(rule.matches(table_name) for rule in self.rule_table)
