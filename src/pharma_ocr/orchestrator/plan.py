"""Resolve the effective plan tier of a request from point balances."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from ..domain.models import PlanTier, PointBalances
from ..logging import get_logger

LOG = get_logger("orchestrator-plan")


def tier_for_balances(balances: PointBalances) -> PlanTier:
    """Highest non-empty bucket wins: business > standard > basic > free."""
    if balances.business > 0:
        return PlanTier.BUSINESS
    if balances.standard > 0:
        return PlanTier.STANDARD
    if balances.basic > 0:
        return PlanTier.BASIC
    return PlanTier.FREE


class PlanResolver:
    """Derive a :class:`PlanTier` per request.

    ``balances`` is any object with a synchronous
    ``get_balances(user_id) -> PointBalances``; it runs in a worker thread.
    Any failure of the lookup resolves to ``free``.
    """

    def __init__(self, balances: Optional[Any] = None) -> None:
        self.balances = balances

    async def resolve_plan(self, user_id: Optional[str] = None) -> PlanTier:
        if not user_id or self.balances is None:
            return PlanTier.FREE
        try:
            balances = await asyncio.to_thread(self.balances.get_balances, user_id)
            tier = tier_for_balances(balances)
        except Exception as exc:
            LOG.warning(f"Balance lookup failed for user {user_id!r}; using free tier: {exc}")
            return PlanTier.FREE
        LOG.debug(f"User {user_id!r} resolved to tier {tier.value}")
        return tier
