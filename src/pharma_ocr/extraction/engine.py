"""Provider call plus text-to-metadata extraction for one provider attempt."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from ..domain.forms import detect_pharma_form
from ..domain.models import (
    ExtractedMetadata,
    ProviderDescriptor,
    ProviderError,
    ProviderErrorKind,
)
from ..domain.normalize import normalize_ocr_text
from ..logging import get_logger
from .patterns import (
    find_batch_numbers,
    find_expiry_date,
    find_manufacturers,
    find_product_names,
)
from .scoring import confidence_warnings, estimate_usage, score_confidence

LOG = get_logger("extraction-engine")

HOUR = 3600
DAY = 86400


def extract_from_text(
    text: str,
    provider: ProviderDescriptor,
    *,
    prompt: str = "",
    image_count: int = 1,
    today: Optional[date] = None,
) -> ExtractedMetadata:
    """Run the pattern passes over raw provider text and score the result."""
    detected = (text or "").strip()
    try:
        normalized = normalize_ocr_text(detected)
        batch_numbers = find_batch_numbers(normalized)
        product_names = find_product_names(normalized)
        expiry_date = find_expiry_date(normalized)
        manufacturers = find_manufacturers(normalized)
    except Exception as exc:  # pragma: no cover
        LOG.exception(f"Pattern extraction failed for {provider.name}: {exc}")
        return replace(ExtractedMetadata.degraded(detected_text=detected), provider=provider.name)

    confidence = score_confidence(
        provider.family,
        has_product=bool(product_names),
        has_batch=bool(batch_numbers),
        has_expiry=bool(expiry_date),
        has_manufacturer=bool(manufacturers),
    )
    metadata = ExtractedMetadata(
        batch_numbers=batch_numbers,
        product_names=product_names,
        expiry_date=expiry_date,
        manufacturers=manufacturers,
        confidence=confidence,
        detected_text=detected,
        warnings=confidence_warnings(confidence, expiry_date, today),
        provider=provider.name,
        pharmaceutical_form=detect_pharma_form(normalized),
        usage=estimate_usage(provider, prompt=prompt, detected_text=detected, image_count=image_count),
    )
    LOG.info(
        f"{provider.name}: product={metadata.primary_product_name!r} batches={list(batch_numbers)} "
        f"expiry={expiry_date!r} manufacturers={list(manufacturers)} confidence={confidence:.2f}"
    )
    return metadata


class ExtractionEngine:
    """Runs one provider against the images and structures what it read.

    ``adapters`` maps adapter keys to provider adapters. ``limiter`` is any
    object with ``count_requests(provider, window_seconds)``; when given,
    hourly and daily ceilings of the descriptor are enforced before calling
    the provider.
    """

    def __init__(
        self,
        adapters: Mapping[str, Any],
        *,
        limiter: Optional[Any] = None,
        today: Optional[date] = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.limiter = limiter
        self.today = today

    async def _check_rate_limit(self, provider: ProviderDescriptor) -> None:
        if self.limiter is None:
            return
        for window, ceiling in ((HOUR, provider.max_requests_per_hour), (DAY, provider.max_requests_per_day)):
            if not ceiling:
                continue
            try:
                used = await asyncio.to_thread(self.limiter.count_requests, provider.name, window)
            except Exception as exc:
                LOG.warning(f"Rate-limit counter unavailable for {provider.name}: {exc}")
                return
            if used >= ceiling:
                raise ProviderError(
                    ProviderErrorKind.RATE_LIMITED,
                    f"{used} request(s) in the last {window}s (limit {ceiling})",
                    provider=provider.name,
                    dispatched=False,
                )

    async def extract(
        self, images: Sequence[bytes], provider: ProviderDescriptor, *, hint: Optional[str] = None
    ) -> ExtractedMetadata:
        """Return structured metadata or raise :class:`ProviderError`."""
        await self._check_rate_limit(provider)
        adapter = self.adapters.get(provider.adapter)
        if adapter is None:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE,
                f"no adapter registered for {provider.adapter!r}",
                provider=provider.name,
                dispatched=False,
            )
        try:
            text = await adapter.detect_text(images, provider, hint=hint)
        except ProviderError:
            raise
        except Exception as exc:
            LOG.error(f"Adapter {provider.adapter} raised {exc.__class__.__name__}: {exc}")
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, str(exc), provider=provider.name) from exc

        if not text or not text.strip():
            raise ProviderError(ProviderErrorKind.NO_TEXT_DETECTED, "no text detected", provider=provider.name)
        return extract_from_text(
            text,
            provider,
            prompt=adapter.prompt_for(hint) if hasattr(adapter, "prompt_for") else "",
            image_count=len(images),
            today=self.today,
        )
