"""Claude (or any vision model) through the OpenRouter chat completions API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import OcrSettings
from ..domain.models import ProviderDescriptor, ProviderErrorKind
from ..domain.normalize import image_data_url
from ..logging import get_logger
from .base import EXTRACTION_PROMPT, BaseProvider, classify_http_error, register

LOG = get_logger("providers-openrouter")


@dataclass(frozen=True)
class OpenRouterConfig:
    """Configuration set required to talk to the OpenRouter API."""

    api_key: Optional[str]
    model_name: str
    temperature: float = 0.0
    max_tokens: int = 1500
    timeout_seconds: float = 30.0


class OpenRouterProvider(BaseProvider):
    """Thin wrapper around OpenRouter chat requests returning the transcription."""

    key = "openrouter"
    prompt = EXTRACTION_PROMPT
    ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, config: OpenRouterConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.config = config
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: OcrSettings) -> "OpenRouterProvider":
        return cls(
            OpenRouterConfig(
                api_key=settings.openrouter_api_key,
                model_name=settings.openrouter_model,
                timeout_seconds=settings.provider_timeout,
            )
        )

    def _messages(self, images: Sequence[bytes], hint: Optional[str] = None) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": self.prompt_for(hint)}]
        for img in images:
            content.append({"type": "image_url", "image_url": {"url": image_data_url(img)}})
        return [{"role": "user", "content": content}]

    async def detect_text(
        self, images: Sequence[bytes], descriptor: ProviderDescriptor, hint: Optional[str] = None
    ) -> str:
        if not self.config.api_key:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "OPEN_ROUTER_API_KEY is not configured", descriptor)
        payload = {
            "model": descriptor.model or self.config.model_name,
            "messages": self._messages(images, hint),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self.transport) as client:
                resp = await client.post(self.ENDPOINT, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise self.error(ProviderErrorKind.NETWORK_FAILURE, f"timeout: {exc}", descriptor) from exc
        except httpx.TransportError as exc:
            LOG.error("OpenRouter request failed: %s", exc)
            raise self.error(ProviderErrorKind.NETWORK_FAILURE, str(exc), descriptor) from exc

        if resp.status_code >= 400:
            LOG.error("OpenRouter HTTP %s: %s", resp.status_code, resp.text[:500])
            raise self.error(classify_http_error(resp.status_code, resp.text), f"HTTP {resp.status_code}", descriptor)

        try:
            body = resp.json()
        except ValueError as exc:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "response is not JSON", descriptor) from exc
        choices = body.get("choices") or []
        if not choices:
            LOG.error("OpenRouter returned no choices: %s", str(body)[:500])
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "no choices in response", descriptor)
        message = choices[0].get("message") or {}
        return str(message.get("content") or "").strip()


register(OpenRouterProvider.key, OpenRouterProvider)
