"""Typed records shared by the router, the extraction engine and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .normalize import decode_image


LOW_CONFIDENCE_WARNING = "Low confidence in extracted data - please verify manually"
FAILED_TO_PROCESS_WARNING = "Failed to process extracted text"
DEGRADED_CONFIDENCE = 0.1


class PlanTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    STANDARD = "standard"
    BUSINESS = "business"

    @classmethod
    def parse(cls, value: Union[str, "PlanTier"]) -> "PlanTier":
        if isinstance(value, PlanTier):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown plan tier: {value!r}") from None


class ProviderFamily(str, Enum):
    """How a provider produces text; decides the confidence base."""

    VISION_OCR = "vision_ocr"
    LLM_VISION = "llm_vision"
    LOCAL_OCR = "local_ocr"


CONFIDENCE_BASE: Dict[ProviderFamily, float] = {
    ProviderFamily.VISION_OCR: 0.4,
    ProviderFamily.LLM_VISION: 0.5,
    ProviderFamily.LOCAL_OCR: 0.3,
}


@dataclass(frozen=True)
class ProviderDescriptor:
    """Read-only description of one OCR/vision backend.

    ``adapter`` names the adapter class registered in
    :mod:`pharma_ocr.providers`; ``cost_per_call`` is charged per image for
    OCR families, token rates apply to LLM-backed providers.
    """

    name: str
    adapter: str
    family: ProviderFamily
    model: Optional[str] = None
    cost_per_call: float = 0.0
    cost_per_input_token: float = 0.0
    cost_per_output_token: float = 0.0
    max_requests_per_hour: Optional[int] = None
    max_requests_per_day: Optional[int] = None
    priority: int = 1

    @property
    def confidence_base(self) -> float:
        return CONFIDENCE_BASE[self.family]

    @property
    def is_local(self) -> bool:
        return self.family is ProviderFamily.LOCAL_OCR

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "adapter": self.adapter,
            "family": self.family.value,
            "model": self.model,
            "cost_per_call": self.cost_per_call,
            "cost_per_input_token": self.cost_per_input_token,
            "cost_per_output_token": self.cost_per_output_token,
            "max_requests_per_hour": self.max_requests_per_hour,
            "max_requests_per_day": self.max_requests_per_day,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class PointBalances:
    basic: int = 0
    standard: int = 0
    business: int = 0


@dataclass(frozen=True)
class ExtractionRequest:
    """One scan: decoded image bytes plus optional hint and user id.

    Images may be given as raw bytes, base64 strings or ``data:`` URLs; they
    are decoded once on construction.
    """

    images: Tuple[bytes, ...]
    hint: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.images, (str, bytes)) or not isinstance(self.images, Sequence):
            raise TypeError("images must be a list of base64 strings or bytes")
        object.__setattr__(self, "images", tuple(decode_image(img) for img in self.images))
        if self.user_id is not None and not isinstance(self.user_id, str):
            raise TypeError("user_id must be a string")


@dataclass(frozen=True)
class UsageEstimate:
    input_tokens: int
    output_tokens: int
    cost: float


@dataclass(frozen=True)
class ExtractedMetadata:
    batch_numbers: Tuple[str, ...] = ()
    product_names: Tuple[str, ...] = ()
    expiry_date: Optional[str] = None
    manufacturers: Tuple[str, ...] = ()
    confidence: float = 0.0
    detected_text: str = ""
    warnings: Tuple[str, ...] = ()
    provider: Optional[str] = None
    pharmaceutical_form: str = "general"
    usage: Optional[UsageEstimate] = None

    @property
    def primary_product_name(self) -> Optional[str]:
        return self.product_names[0] if self.product_names else None

    @classmethod
    def degraded(cls, detected_text: str = "") -> "ExtractedMetadata":
        """Result returned when every provider in a chain failed."""
        return cls(
            confidence=DEGRADED_CONFIDENCE,
            detected_text=detected_text,
            warnings=(FAILED_TO_PROCESS_WARNING,),
        )

    def to_response(self) -> Dict[str, Any]:
        """Return the caller-facing JSON shape."""
        out: Dict[str, Any] = {
            "batchNumbers": list(self.batch_numbers),
            "drugNames": list(self.product_names),
            "expiryDates": [self.expiry_date] if self.expiry_date else [],
            "manufacturerInfo": list(self.manufacturers),
            "detectedText": self.detected_text,
            "confidence": self.confidence,
        }
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out


class ProviderErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NETWORK_FAILURE = "network_failure"
    INVALID_RESPONSE = "invalid_response"
    NO_TEXT_DETECTED = "no_text_detected"


class ProviderError(Exception):
    """A provider could not produce usable text. Always recoverable via fallback.

    ``dispatched`` is False when the call was refused locally (ceiling reached,
    no adapter) and never reached the provider.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str = "",
        *,
        provider: Optional[str] = None,
        dispatched: bool = True,
    ) -> None:
        self.kind = kind
        self.provider = provider
        self.dispatched = dispatched
        self.message = message or kind.value
        super().__init__(f"{provider or 'provider'}: {kind.value}: {self.message}")


@dataclass(frozen=True)
class ProviderAttemptOutcome:
    provider: str
    success: bool
    elapsed_ms: float
    error_kind: Optional[ProviderErrorKind] = None
    error_message: Optional[str] = None
    metadata: Optional[ExtractedMetadata] = None


@dataclass(frozen=True)
class UsageRecord:
    provider: str
    success: bool
    response_time_ms: float
    model: Optional[str] = None
    user_id: Optional[str] = None
    tier: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    error_kind: Optional[str] = None


@dataclass
class FallbackReport:
    """Everything one orchestration produced; ``metadata`` is the answer."""

    metadata: ExtractedMetadata
    tier: PlanTier
    route: Tuple[str, ...]
    attempts: List[ProviderAttemptOutcome] = field(default_factory=list)
    degraded: bool = False

    @property
    def winning_provider(self) -> Optional[str]:
        return self.metadata.provider
