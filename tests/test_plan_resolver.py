import asyncio

from pharma_ocr.domain.models import PlanTier, PointBalances
from pharma_ocr.orchestrator.plan import PlanResolver, tier_for_balances
from pharma_ocr.orchestrator.router import ProviderRouter

from fakes import BrokenStore, StaticBalances


def test_no_user_is_free_without_lookup():
    store = StaticBalances(PointBalances(business=10))
    assert asyncio.run(PlanResolver(store).resolve_plan(None)) is PlanTier.FREE
    assert store.calls == []


def test_precedence_business_standard_basic():
    assert tier_for_balances(PointBalances(basic=1, standard=1, business=1)) is PlanTier.BUSINESS
    assert tier_for_balances(PointBalances(basic=5, standard=2)) is PlanTier.STANDARD
    assert tier_for_balances(PointBalances(basic=3)) is PlanTier.BASIC
    assert tier_for_balances(PointBalances()) is PlanTier.FREE


def test_resolves_from_balances():
    resolver = PlanResolver(StaticBalances(PointBalances(standard=4)))
    assert asyncio.run(resolver.resolve_plan("user-1")) is PlanTier.STANDARD


def test_lookup_failure_falls_back_to_free():
    assert asyncio.run(PlanResolver(BrokenStore()).resolve_plan("user-1")) is PlanTier.FREE


def test_zero_balances_route_to_two_provider_chain():
    tier = asyncio.run(PlanResolver(StaticBalances(PointBalances())).resolve_plan("user-0"))
    assert tier is PlanTier.FREE
    chain = ProviderRouter().route_for(tier)
    assert [p.name for p in chain] == ["google-vision", "tesseract"]
