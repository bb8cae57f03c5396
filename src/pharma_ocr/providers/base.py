"""Provider adapter interface and registry.

An adapter turns a list of decoded images into raw text or raises a typed
:class:`ProviderError`. Adapters are registered by key; a
:class:`ProviderDescriptor` names the adapter it runs on.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from ..config import OcrSettings
from ..domain.models import ProviderDescriptor, ProviderError, ProviderErrorKind
from ..logging import get_logger

LOG = get_logger("providers-registry")

EXTRACTION_PROMPT = (
    "Transcribe every piece of printed text visible on this pharmaceutical "
    "package exactly as it appears: product name and strength, batch or lot "
    "number, expiry and manufacturing dates, manufacturer name and address. "
    "Return plain text only, one line per printed line, without commentary."
)

_QUOTA_HINTS = ("quota", "rate limit", "rate_limit", "billing", "insufficient credits", "too many requests")


class BaseProvider:
    """Interface for OCR/vision adapters.

    Subclasses implement :meth:`detect_text` and translate every library
    failure into a :class:`ProviderError`; an empty string is a valid return
    value meaning nothing was read.
    """

    key: str = ""
    prompt: str = ""

    async def detect_text(
        self, images: Sequence[bytes], descriptor: ProviderDescriptor, hint: Optional[str] = None
    ) -> str:
        raise NotImplementedError

    def prompt_for(self, hint: Optional[str] = None) -> str:
        if self.prompt and hint and hint.strip():
            return f"{self.prompt}\n\nContext from the user: {hint.strip()}"
        return self.prompt

    async def aclose(self) -> None:
        return None

    def error(self, kind: ProviderErrorKind, message: str, descriptor: ProviderDescriptor) -> ProviderError:
        return ProviderError(kind, message, provider=descriptor.name)


def classify_http_error(status_code: int, body: str = "") -> ProviderErrorKind:
    """Map an HTTP failure onto the error kind the fallback loop understands."""
    lowered = (body or "").lower()
    if status_code == 429 or any(hint in lowered for hint in _QUOTA_HINTS):
        return ProviderErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ProviderErrorKind.NETWORK_FAILURE
    return ProviderErrorKind.INVALID_RESPONSE


_REGISTRY: List[Tuple[str, Type[BaseProvider]]] = []


def register(key: str, provider_cls: Type[BaseProvider]) -> None:
    """Register an adapter class under the key descriptors refer to."""

    _REGISTRY.append((key, provider_cls))
    LOG.debug(f"Registered provider adapter {key} -> {provider_cls.__name__}")


def registered_keys() -> Tuple[str, ...]:
    return tuple(key for key, _ in _REGISTRY)


def build_adapters(settings: Optional[OcrSettings] = None, **overrides: Any) -> Dict[str, BaseProvider]:
    """Instantiate every registered adapter from settings.

    ``overrides`` replaces individual adapters by key (used by tests and by
    embedders that bring their own clients).
    """
    settings = settings or OcrSettings()
    adapters: Dict[str, BaseProvider] = {}
    for key, provider_cls in _REGISTRY:
        if key in overrides:
            adapters[key] = overrides[key]
            continue
        adapters[key] = provider_cls.from_settings(settings)  # type: ignore[attr-defined]
    for key, adapter in overrides.items():
        adapters.setdefault(key, adapter)
    LOG.info(f"Built {len(adapters)} provider adapter(s): {', '.join(adapters)}")
    return adapters
