"""Plan resolution, provider routing and the sequential fallback loop."""

from .router import (
    ProviderRouter,
    RouteEntry,
    RoutingConfigError,
    RoutingTable,
    default_routing_table,
)
from .plan import PlanResolver, tier_for_balances
from .fallback import FallbackOrchestrator

__all__ = [
    "ProviderRouter",
    "RouteEntry",
    "RoutingConfigError",
    "RoutingTable",
    "default_routing_table",
    "PlanResolver",
    "tier_for_balances",
    "FallbackOrchestrator",
]
