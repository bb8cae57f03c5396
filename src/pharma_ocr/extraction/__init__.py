"""Text-to-metadata extraction: pattern passes, scoring and the engine."""

from .patterns import (
    find_batch_numbers,
    find_expiry_date,
    find_manufacturers,
    find_product_names,
)
from .scoring import ConfidenceReading, estimate_usage, interpret_confidence, score_confidence
from .engine import ExtractionEngine, extract_from_text

__all__ = [
    "find_batch_numbers",
    "find_expiry_date",
    "find_manufacturers",
    "find_product_names",
    "ConfidenceReading",
    "estimate_usage",
    "interpret_confidence",
    "score_confidence",
    "ExtractionEngine",
    "extract_from_text",
]
