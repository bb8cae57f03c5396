"""OCR/vision provider adapters.

Importing this package registers every built-in adapter.
"""

from .base import (
    EXTRACTION_PROMPT,
    BaseProvider,
    build_adapters,
    classify_http_error,
    register,
    registered_keys,
)
from .google_vision import GoogleVisionProvider
from .openrouter import OpenRouterConfig, OpenRouterProvider
from .openai_vision import OpenAIVisionProvider
from .tesseract import TesseractProvider, preprocess_image

__all__ = [
    "EXTRACTION_PROMPT",
    "BaseProvider",
    "build_adapters",
    "classify_http_error",
    "register",
    "registered_keys",
    "GoogleVisionProvider",
    "OpenRouterConfig",
    "OpenRouterProvider",
    "OpenAIVisionProvider",
    "TesseractProvider",
    "preprocess_image",
]
