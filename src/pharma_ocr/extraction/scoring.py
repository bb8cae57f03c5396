"""Confidence scoring and usage bookkeeping for extracted metadata."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from ..domain.models import (
    CONFIDENCE_BASE,
    LOW_CONFIDENCE_WARNING,
    ProviderDescriptor,
    ProviderFamily,
    UsageEstimate,
)
from ..domain.normalize import is_expired

CONFIDENCE_CAP = 0.95
LOW_CONFIDENCE_THRESHOLD = 0.5

PRODUCT_WEIGHT = 0.25
BATCH_WEIGHT = 0.25
EXPIRY_WEIGHT = 0.15
MANUFACTURER_WEIGHT = 0.15
CORE_FIELDS_BONUS = 0.10

EXPIRED_WARNING = "Product appears to be past its expiry date"

# Rough token cost of one attached image in a chat completion request.
IMAGE_TOKEN_OVERHEAD = 85
CHARS_PER_TOKEN = 4


def score_confidence(
    family: ProviderFamily,
    *,
    has_product: bool,
    has_batch: bool,
    has_expiry: bool,
    has_manufacturer: bool,
) -> float:
    """Additive confidence: family base plus per-field weights, capped at 0.95."""
    score = CONFIDENCE_BASE[ProviderFamily(family)]
    if has_product:
        score += PRODUCT_WEIGHT
    if has_batch:
        score += BATCH_WEIGHT
    if has_expiry:
        score += EXPIRY_WEIGHT
    if has_manufacturer:
        score += MANUFACTURER_WEIGHT
    if sum((has_product, has_batch, has_expiry)) >= 2:
        score += CORE_FIELDS_BONUS
    return round(max(0.0, min(CONFIDENCE_CAP, score)), 4)


def confidence_warnings(
    confidence: float,
    expiry_date: Optional[str] = None,
    today: Optional[date] = None,
) -> Tuple[str, ...]:
    warnings: List[str] = []
    if confidence < LOW_CONFIDENCE_THRESHOLD:
        warnings.append(LOW_CONFIDENCE_WARNING)
    if expiry_date and is_expired(expiry_date, today or date.today()):
        warnings.append(EXPIRED_WARNING)
    return tuple(warnings)


@dataclass(frozen=True)
class ConfidenceReading:
    level: str
    recommendation: str


_CONFIDENCE_LEVELS: Tuple[Tuple[float, str, str], ...] = (
    (0.9, "Very High", "Proceed with verification using extracted data"),
    (0.8, "High", "Proceed with verification, minor manual review recommended"),
    (0.6, "Medium", "Review extracted data before verification"),
    (0.3, "Low", "Manual data entry recommended"),
)


def interpret_confidence(confidence: float) -> ConfidenceReading:
    """Map a score onto a display level and what the user should do next."""
    for threshold, level, recommendation in _CONFIDENCE_LEVELS:
        if confidence >= threshold:
            return ConfidenceReading(level, recommendation)
    return ConfidenceReading("Very Low", "Complete manual data entry required")


def _approx_tokens(text: str) -> int:
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def estimate_usage(
    descriptor: ProviderDescriptor,
    *,
    prompt: str,
    detected_text: str,
    image_count: int,
) -> UsageEstimate:
    """Approximate token counts and cost of one provider call.

    Vision OCR and the local engine are billed per image; LLM providers are
    billed on the approximated token counts.
    """
    input_tokens = _approx_tokens(prompt) + image_count * IMAGE_TOKEN_OVERHEAD
    output_tokens = _approx_tokens(detected_text)
    if descriptor.family is ProviderFamily.LLM_VISION:
        cost = (
            input_tokens * descriptor.cost_per_input_token
            + output_tokens * descriptor.cost_per_output_token
        )
    else:
        cost = image_count * descriptor.cost_per_call
    return UsageEstimate(input_tokens=input_tokens, output_tokens=output_tokens, cost=round(cost, 6))
