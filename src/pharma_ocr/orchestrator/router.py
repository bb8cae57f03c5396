"""Plan tier to ordered provider chain.

The routing table is static configuration: providers keyed by name, a
priority-ranked entry list per plan tier and the name of the terminal local
provider that must close every chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple, Union

from ..domain.models import PlanTier, ProviderDescriptor, ProviderFamily
from ..logging import get_logger

LOG = get_logger("orchestrator-router")


class RoutingConfigError(ValueError):
    """The routing table cannot guarantee a chain for every tier."""


@dataclass(frozen=True)
class RouteEntry:
    provider: str
    priority: int = 1


@dataclass(frozen=True)
class RoutingTable:
    providers: Mapping[str, ProviderDescriptor]
    plans: Mapping[PlanTier, Tuple[RouteEntry, ...]]
    terminal: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "providers", MappingProxyType(dict(self.providers)))
        object.__setattr__(
            self,
            "plans",
            MappingProxyType({PlanTier.parse(k): tuple(v) for k, v in self.plans.items()}),
        )
        self.validate()

    def validate(self) -> None:
        if self.terminal not in self.providers:
            raise RoutingConfigError(f"Terminal provider {self.terminal!r} is not configured")
        if not self.providers[self.terminal].is_local:
            raise RoutingConfigError(f"Terminal provider {self.terminal!r} must be a local OCR provider")
        for tier in PlanTier:
            if tier not in self.plans:
                raise RoutingConfigError(f"No provider chain configured for tier {tier.value!r}")
            for entry in self.plans[tier]:
                if entry.provider not in self.providers:
                    raise RoutingConfigError(
                        f"Tier {tier.value!r} references unknown provider {entry.provider!r}"
                    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingTable":
        """Build a table from the ``routing.json`` shape."""
        try:
            providers = {}
            for name, raw in (data.get("providers") or {}).items():
                fields = dict(raw)
                fields.setdefault("adapter", name)
                fields["family"] = ProviderFamily(fields["family"])
                providers[name] = ProviderDescriptor(name=name, **fields)
            plans = {}
            for tier, entries in (data.get("plans") or {}).items():
                plans[PlanTier.parse(tier)] = tuple(_route_entry(e) for e in entries)
            terminal = str(data["terminal"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RoutingConfigError(f"Invalid routing table: {exc}") from exc
        return cls(providers=providers, plans=plans, terminal=terminal)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "providers": {
                name: {k: v for k, v in desc.as_dict().items() if k != "name"}
                for name, desc in self.providers.items()
            },
            "plans": {
                tier.value: [{"provider": e.provider, "priority": e.priority} for e in entries]
                for tier, entries in self.plans.items()
            },
            "terminal": self.terminal,
        }


def _route_entry(raw: Union[str, Dict[str, Any]]) -> RouteEntry:
    if isinstance(raw, str):
        return RouteEntry(provider=raw)
    return RouteEntry(provider=str(raw["provider"]), priority=int(raw.get("priority", 1)))


GOOGLE_VISION = "google-vision"
OPENROUTER_CLAUDE = "openrouter-claude"
OPENAI_VISION = "openai-vision"
TESSERACT = "tesseract"


def default_routing_table(
    *,
    openrouter_model: str = "anthropic/claude-3-haiku",
    openai_model: str = "gpt-4o-mini",
) -> RoutingTable:
    providers = {
        GOOGLE_VISION: ProviderDescriptor(
            name=GOOGLE_VISION,
            adapter="google-vision",
            family=ProviderFamily.VISION_OCR,
            cost_per_call=0.00175,
            max_requests_per_hour=1000,
            max_requests_per_day=10000,
        ),
        OPENROUTER_CLAUDE: ProviderDescriptor(
            name=OPENROUTER_CLAUDE,
            adapter="openrouter",
            family=ProviderFamily.LLM_VISION,
            model=openrouter_model,
            cost_per_input_token=0.00000025,
            cost_per_output_token=0.00000125,
            max_requests_per_hour=100,
            max_requests_per_day=1000,
            priority=2,
        ),
        OPENAI_VISION: ProviderDescriptor(
            name=OPENAI_VISION,
            adapter="openai",
            family=ProviderFamily.LLM_VISION,
            model=openai_model,
            cost_per_input_token=0.00000015,
            cost_per_output_token=0.0000006,
            max_requests_per_hour=200,
            max_requests_per_day=1000,
            priority=2,
        ),
        TESSERACT: ProviderDescriptor(
            name=TESSERACT,
            adapter="tesseract",
            family=ProviderFamily.LOCAL_OCR,
            priority=99,
        ),
    }
    vision_first = RouteEntry(GOOGLE_VISION, 1)
    terminal = RouteEntry(TESSERACT, 99)
    plans = {
        PlanTier.FREE: (vision_first, terminal),
        PlanTier.BASIC: (vision_first, terminal),
        PlanTier.STANDARD: (vision_first, RouteEntry(OPENROUTER_CLAUDE, 2), terminal),
        PlanTier.BUSINESS: (vision_first, RouteEntry(OPENAI_VISION, 2), terminal),
    }
    return RoutingTable(providers=providers, plans=plans, terminal=TESSERACT)


class ProviderRouter:
    """Resolve a plan tier into the ordered chain of providers to attempt."""

    def __init__(self, table: RoutingTable | None = None) -> None:
        self.table = table or default_routing_table()

    def route_for(self, tier: Union[PlanTier, str]) -> Tuple[ProviderDescriptor, ...]:
        tier = PlanTier.parse(tier)
        entries = sorted(self.table.plans.get(tier, ()), key=lambda e: e.priority)
        chain: List[ProviderDescriptor] = []
        seen = set()
        for entry in entries:
            if entry.provider in seen or entry.provider == self.table.terminal:
                continue
            seen.add(entry.provider)
            chain.append(self.table.providers[entry.provider])
        # the terminal local provider always closes the chain
        chain.append(self.table.providers[self.table.terminal])
        LOG.debug("Route for %s: %s", tier.value, [p.name for p in chain])
        return tuple(chain)
