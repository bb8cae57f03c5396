"""Wire settings, routing table, adapters and the usage store into an orchestrator."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .config import OcrSettings, load_routing_table, load_settings
from .extraction.engine import ExtractionEngine
from .logging import get_logger
from .orchestrator import FallbackOrchestrator, PlanResolver, ProviderRouter, RoutingTable
from .providers import BaseProvider, build_adapters
from .usage import UsageDatabase

LOG = get_logger("service")


def build_orchestrator(
    *,
    settings: Optional[OcrSettings] = None,
    table: Optional[RoutingTable] = None,
    store: Optional[UsageDatabase] = None,
    adapters: Optional[Dict[str, BaseProvider]] = None,
    script_dir: Optional[str] = None,
) -> FallbackOrchestrator:
    """Return a ready orchestrator; every argument defaults from configuration."""
    settings = settings or load_settings(script_dir)
    table = table or load_routing_table(script_dir, settings)
    if store is None:
        store = UsageDatabase(settings.usage_db_path, root_dir=script_dir)
    engine = ExtractionEngine(adapters if adapters is not None else build_adapters(settings), limiter=store)
    LOG.info(f"Orchestrator ready; terminal provider={table.terminal}")
    return FallbackOrchestrator(
        engine,
        router=ProviderRouter(table),
        resolver=PlanResolver(store),
        recorder=store,
    )


async def close_adapters(orchestrator: FallbackOrchestrator) -> None:
    """Close adapter clients and flush pending usage writes."""
    await orchestrator.drain()
    for adapter in orchestrator.engine.adapters.values():
        closer: Any = getattr(adapter, "aclose", None)
        if closer is not None:
            await closer()
