"""
Change event dispatcher for MySQL to BigQuery replication

Each detected action is routed by a fixed table. Inserts and updates are
turned into deletes when the rule's delete side is ``remap-to-delete``;
deletes are turned into uploads when the rule's update side is
``remap-to-update``. Uploads always use the rule's update side and deletes
the rule's delete side, so an action of kind ``none`` on the chosen side
drops the event. Updates only ever use the new row image.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

import structlog

from ..exceptions import ProtocolError
from ..models.config import ActionConfig, ActionKind, RuleConfig
from ..models.events import ChangeAction, ChangeEvent
from .deleter import Deleter
from .materializer import Materializer
from .rule_resolver import RuleResolver


class Route(Enum):
    """Downstream effect of an event"""
    MATERIALIZE = "materialize"
    DELETE = "delete"
    DROP = "drop"


@dataclass(frozen=True)
class RoutePlan:
    """Where an event goes and which row images it uses"""
    route: Route
    offset: int
    stride: int


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one event"""
    route: Route
    action: ActionKind
    rows: int


# Detected action -> (rule side consulted, action kind that remaps it)
REMAP_TRIGGERS: Dict[ChangeAction, Tuple[str, ActionKind]] = {
    ChangeAction.INSERT: ("delete", ActionKind.REMAP_TO_DELETE),
    ChangeAction.UPDATE: ("delete", ActionKind.REMAP_TO_DELETE),
    ChangeAction.DELETE: ("update", ActionKind.REMAP_TO_UPDATE),
}

# (detected action, remapped) -> route
ROUTES: Dict[Tuple[ChangeAction, bool], RoutePlan] = {
    (ChangeAction.INSERT, True): RoutePlan(Route.DELETE, 0, 1),
    (ChangeAction.INSERT, False): RoutePlan(Route.MATERIALIZE, 0, 1),
    (ChangeAction.DELETE, True): RoutePlan(Route.MATERIALIZE, 0, 1),
    (ChangeAction.DELETE, False): RoutePlan(Route.DELETE, 0, 1),
    (ChangeAction.UPDATE, True): RoutePlan(Route.DELETE, 1, 2),
    (ChangeAction.UPDATE, False): RoutePlan(Route.MATERIALIZE, 1, 2),
}


def route_for(action: ChangeAction, rule: RuleConfig) -> RoutePlan:
    """Look up the route of a detected action under a rule"""
    try:
        side, trigger = REMAP_TRIGGERS[action]
    except KeyError:
        raise ProtocolError(f"Unknown row action: {action!r}")
    remapped = getattr(rule, side).kind is trigger
    return ROUTES[(action, remapped)]


class ChangeEventDispatcher:
    """Routes change events to the Materializer or the Deleter"""

    def __init__(self, resolver: RuleResolver, materializer: Materializer, deleter: Deleter):
        self.resolver = resolver
        self.materializer = materializer
        self.deleter = deleter
        self.logger = structlog.get_logger()

    def dispatch(self, event: ChangeEvent) -> DispatchResult:
        """
        Dispatch one event synchronously

        Errors raised while resolving the rule or by the Materializer or
        Deleter propagate to the caller.
        """
        rule = self.resolver.resolve(event.table_name)
        plan = route_for(event.action, rule)
        action: ActionConfig = rule.update if plan.route is Route.MATERIALIZE else rule.delete

        if action.is_none:
            self.logger.debug("Event dropped by rule",
                              table=event.table.full_name,
                              action=event.action.value,
                              rule=rule.table,
                              route=plan.route.value)
            return DispatchResult(Route.DROP, action.kind, 0)

        self.logger.debug("Dispatching event",
                          table=event.table.full_name,
                          action=event.action.value,
                          rule=rule.table,
                          route=plan.route.value,
                          action_kind=action.kind.value,
                          position=event.position.token)

        if plan.route is Route.MATERIALIZE:
            rows = self.materializer.materialize(action, event, plan.offset, plan.stride)
        else:
            rows = self.deleter.delete(action, event, plan.offset, plan.stride)
        return DispatchResult(plan.route, action.kind, rows)
