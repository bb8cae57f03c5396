"""Sequential provider fallback for one extraction request.

Providers are attempted strictly one after another in route order; the first
attempt that returns metadata wins regardless of its confidence. When every
provider fails the caller still gets a degraded, low-confidence answer.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, List, Optional, Sequence, Union

from ..domain.models import (
    ExtractedMetadata,
    ExtractionRequest,
    FallbackReport,
    PlanTier,
    ProviderAttemptOutcome,
    ProviderDescriptor,
    ProviderError,
    UsageRecord,
)
from ..extraction.engine import ExtractionEngine
from ..logging import get_logger
from .plan import PlanResolver
from .router import ProviderRouter

LOG = get_logger("orchestrator-fallback")


class FallbackOrchestrator:
    """Ties plan resolution, routing and extraction into one answer.

    ``recorder`` is any object with a synchronous ``record_usage(UsageRecord)``;
    recording runs in a background task and its failures are only logged.
    Attempts refused before reaching the provider are not recorded, since the
    same rows feed the rate-limit counters.
    """

    def __init__(
        self,
        engine: ExtractionEngine,
        *,
        router: Optional[ProviderRouter] = None,
        resolver: Optional[PlanResolver] = None,
        recorder: Optional[Any] = None,
    ) -> None:
        self.engine = engine
        self.router = router or ProviderRouter()
        self.resolver = resolver or PlanResolver()
        self.recorder = recorder
        self._pending: set = set()

    async def run(self, request: ExtractionRequest) -> FallbackReport:
        tier = await self.resolver.resolve_plan(request.user_id)
        route = self.router.route_for(tier)
        LOG.info(f"Tier={tier.value} route={[p.name for p in route]} images={len(request.images)}")
        if not request.images:
            LOG.error("Request carries no images; returning degraded result")
            return FallbackReport(
                metadata=ExtractedMetadata.degraded(),
                tier=tier,
                route=tuple(p.name for p in route),
                degraded=True,
            )

        attempts: List[ProviderAttemptOutcome] = []
        for provider in route:
            outcome = await self._attempt(provider, request, tier)
            attempts.append(outcome)
            if outcome.success and outcome.metadata is not None:
                LOG.info(
                    f"Provider {provider.name} succeeded in {outcome.elapsed_ms:.0f} ms "
                    f"(confidence={outcome.metadata.confidence:.2f})"
                )
                return FallbackReport(
                    metadata=outcome.metadata,
                    tier=tier,
                    route=tuple(p.name for p in route),
                    attempts=attempts,
                )

        LOG.error(f"All {len(route)} provider(s) failed for tier {tier.value}; returning degraded result")
        return FallbackReport(
            metadata=ExtractedMetadata.degraded(),
            tier=tier,
            route=tuple(p.name for p in route),
            attempts=attempts,
            degraded=True,
        )

    async def _attempt(
        self,
        provider: ProviderDescriptor,
        request: ExtractionRequest,
        tier: PlanTier,
    ) -> ProviderAttemptOutcome:
        LOG.info(f"Trying provider {provider.name}")
        started = time.perf_counter()
        try:
            metadata = await self.engine.extract(request.images, provider, hint=request.hint)
        except ProviderError as exc:
            elapsed = (time.perf_counter() - started) * 1000.0
            LOG.warning(f"Provider {provider.name} failed ({exc.kind.value}) after {elapsed:.0f} ms: {exc.message}")
            if exc.dispatched:
                self._record(
                    UsageRecord(
                        provider=provider.name,
                        model=provider.model,
                        success=False,
                        response_time_ms=elapsed,
                        user_id=request.user_id,
                        tier=tier.value,
                        error_kind=exc.kind.value,
                    )
                )
            return ProviderAttemptOutcome(
                provider=provider.name,
                success=False,
                elapsed_ms=elapsed,
                error_kind=exc.kind,
                error_message=exc.message,
            )

        elapsed = (time.perf_counter() - started) * 1000.0
        usage = metadata.usage
        self._record(
            UsageRecord(
                provider=provider.name,
                model=provider.model,
                success=True,
                response_time_ms=elapsed,
                user_id=request.user_id,
                tier=tier.value,
                input_tokens=usage.input_tokens if usage else 0,
                output_tokens=usage.output_tokens if usage else 0,
                cost=usage.cost if usage else 0.0,
            )
        )
        return ProviderAttemptOutcome(provider=provider.name, success=True, elapsed_ms=elapsed, metadata=metadata)

    def _record(self, record: UsageRecord) -> None:
        if self.recorder is None:
            return
        task = asyncio.create_task(self._write_usage(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_usage(self, record: UsageRecord) -> None:
        try:
            await asyncio.to_thread(self.recorder.record_usage, record)
        except Exception as exc:
            LOG.warning(f"Usage recording failed for {record.provider}: {exc}")

    async def drain(self) -> None:
        """Wait for outstanding usage writes (used before shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def extract_with_fallback(
        self,
        images: Sequence[Union[str, bytes]],
        user_id: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> ExtractedMetadata:
        """Always answers: provider failures never escape this call."""
        report = await self.run(ExtractionRequest(images=images, user_id=user_id, hint=hint))
        return report.metadata
