"""In-process doubles for provider adapters and collaborators."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Tuple

from pharma_ocr.domain.models import PointBalances, ProviderError, ProviderErrorKind

SCENARIO_TEXT = "PARACETAMOL 500mg Batch: PCT2023002 Exp: 12/2025 Manufactured by ABC Pharma Ltd"


class ScriptedProvider:
    """Returns ``result`` (text) or raises it (exception), logging call order."""

    def __init__(self, result: Any, *, events: Optional[List[Tuple[str, str]]] = None, delay: float = 0.0) -> None:
        self.result = result
        self.events = events if events is not None else []
        self.delay = delay
        self.calls = 0
        self.hints: List[Optional[str]] = []

    async def detect_text(self, images, descriptor, hint=None):
        self.calls += 1
        self.hints.append(hint)
        self.events.append(("start", descriptor.name))
        await asyncio.sleep(self.delay)
        self.events.append(("end", descriptor.name))
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def failing(kind: ProviderErrorKind, **kwargs: Any) -> ScriptedProvider:
    return ScriptedProvider(ProviderError(kind, "scripted failure"), **kwargs)


class StaticBalances:
    def __init__(self, balances: PointBalances) -> None:
        self.balances = balances
        self.calls: List[str] = []

    def get_balances(self, user_id: str) -> PointBalances:
        self.calls.append(user_id)
        return self.balances


class BrokenStore:
    """Collaborator whose every call fails like an unreachable database."""

    def get_balances(self, user_id: str) -> PointBalances:
        raise ConnectionError("balance store unreachable")

    def record_usage(self, record) -> None:
        raise ConnectionError("usage store unreachable")

    def count_requests(self, provider: str, window_seconds: float) -> int:
        raise ConnectionError("counter store unreachable")


class MemoryRecorder:
    def __init__(self) -> None:
        self.records: List[Any] = []

    def record_usage(self, record) -> None:
        self.records.append(record)


class FixedCounter:
    def __init__(self, counts: dict) -> None:
        self.counts = counts

    def count_requests(self, provider: str, window_seconds: float) -> int:
        return self.counts.get((provider, window_seconds), 0)
