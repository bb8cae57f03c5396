"""OpenAI chat completions vision adapter (GPT-4o mini by default)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from ..config import OcrSettings
from ..domain.models import ProviderDescriptor, ProviderErrorKind
from ..domain.normalize import image_data_url
from ..logging import get_logger
from .base import EXTRACTION_PROMPT, BaseProvider, classify_http_error, register

LOG = get_logger("providers-openai")


class OpenAIVisionProvider(BaseProvider):
    key = "openai"
    prompt = EXTRACTION_PROMPT

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model_name: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: OcrSettings) -> "OpenAIVisionProvider":
        return cls(settings.openai_api_key, model_name=settings.openai_model, timeout=settings.provider_timeout)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
            self._client = AsyncOpenAI(api_key=self.api_key, http_client=http_client, max_retries=0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _messages(self, images: Sequence[bytes], hint: Optional[str] = None) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": self.prompt_for(hint)}]
        for img in images:
            content.append({"type": "image_url", "image_url": {"url": image_data_url(img), "detail": "high"}})
        return [{"role": "user", "content": content}]

    async def detect_text(
        self, images: Sequence[bytes], descriptor: ProviderDescriptor, hint: Optional[str] = None
    ) -> str:
        if not self.api_key and self._client is None:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "OPENAI_API_KEY is not configured", descriptor)
        model = descriptor.model or self.model_name
        try:
            LOG.info("Calling OpenAI chat completions (vision) model='%s'", model)
            completion = await self._get_client().chat.completions.create(
                model=model,
                messages=self._messages(images, hint),
                temperature=0,
                max_tokens=1500,
                timeout=self.timeout,
            )
        except RateLimitError as exc:
            raise self.error(ProviderErrorKind.RATE_LIMITED, str(exc), descriptor) from exc
        except (APIConnectionError, APITimeoutError) as exc:
            LOG.error("Network/timeout while calling OpenAI: %s", exc)
            raise self.error(ProviderErrorKind.NETWORK_FAILURE, str(exc), descriptor) from exc
        except APIStatusError as exc:
            body = getattr(getattr(exc, "response", None), "text", None) or ""
            LOG.error("OpenAI API returned %s. Body preview: %r", exc.status_code, body[:300])
            raise self.error(classify_http_error(exc.status_code, body), f"HTTP {exc.status_code}", descriptor) from exc

        choice = completion.choices[0] if getattr(completion, "choices", None) else None
        text = choice.message.content if choice and getattr(choice, "message", None) else None
        usage = getattr(completion, "usage", None)
        LOG.info(
            "Chat completion finished id=%s prompt_tokens=%s completion_tokens=%s",
            getattr(completion, "id", None),
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
        )
        return (text or "").strip()


register(OpenAIVisionProvider.key, OpenAIVisionProvider)
