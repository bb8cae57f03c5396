"""
Pharma OCR router: multi-provider text extraction for pharmaceutical packaging.

Resolves a user's plan tier, routes the request through an ordered chain of
OCR/vision providers and turns the first usable transcription into batch,
product, expiry and manufacturer candidates with a confidence score.
"""

__all__ = [
    "config",
    "logging",
    "paths",
]
