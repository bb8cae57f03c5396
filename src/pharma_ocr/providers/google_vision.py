"""Google Cloud Vision TEXT_DETECTION adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import OcrSettings
from ..domain.models import ProviderDescriptor, ProviderErrorKind
from ..domain.normalize import encode_image_b64
from ..logging import get_logger
from .base import BaseProvider, classify_http_error, register

LOG = get_logger("providers-google-vision")


class GoogleVisionProvider(BaseProvider):
    """Calls ``images:annotate`` with one TEXT_DETECTION request per image."""

    key = "google-vision"
    ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: OcrSettings) -> "GoogleVisionProvider":
        return cls(settings.google_vision_api_key, timeout=settings.provider_timeout)

    def _payload(self, images: Sequence[bytes]) -> Dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": encode_image_b64(img)},
                    "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
                }
                for img in images
            ]
        }

    async def detect_text(
        self, images: Sequence[bytes], descriptor: ProviderDescriptor, hint: Optional[str] = None
    ) -> str:
        if not self.api_key:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "GOOGLE_VISION_API_KEY is not configured", descriptor)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.ENDPOINT, params={"key": self.api_key}, json=self._payload(images))
        except httpx.TimeoutException as exc:
            raise self.error(ProviderErrorKind.NETWORK_FAILURE, f"timeout: {exc}", descriptor) from exc
        except httpx.TransportError as exc:
            raise self.error(ProviderErrorKind.NETWORK_FAILURE, str(exc), descriptor) from exc

        if resp.status_code >= 400:
            LOG.error("Google Vision HTTP %s: %s", resp.status_code, resp.text[:500])
            kind = classify_http_error(resp.status_code, resp.text)
            raise self.error(kind, f"HTTP {resp.status_code}", descriptor)

        try:
            body = resp.json()
        except ValueError as exc:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "response is not JSON", descriptor) from exc

        texts: List[str] = []
        for item in body.get("responses") or []:
            err = item.get("error")
            if err:
                message = str(err.get("message") or err)
                LOG.warning("Google Vision per-image error: %s", message)
                if classify_http_error(400, message) is ProviderErrorKind.RATE_LIMITED:
                    raise self.error(ProviderErrorKind.RATE_LIMITED, message, descriptor)
                continue
            annotations = item.get("textAnnotations") or []
            if annotations:
                # the first annotation holds the full detected text block
                texts.append(str(annotations[0].get("description") or "").strip())
        return "\n".join(t for t in texts if t)


register(GoogleVisionProvider.key, GoogleVisionProvider)
