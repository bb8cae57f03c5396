import asyncio
from datetime import date

import pytest

from pharma_ocr.domain.models import ProviderError, ProviderErrorKind
from pharma_ocr.extraction.engine import DAY, HOUR, ExtractionEngine, extract_from_text
from pharma_ocr.orchestrator.router import default_routing_table

from fakes import SCENARIO_TEXT, BrokenStore, FixedCounter, ScriptedProvider

TABLE = default_routing_table()
GOOGLE = TABLE.providers["google-vision"]
TESSERACT = TABLE.providers["tesseract"]


def test_scenario_text_scores_high():
    md = extract_from_text(SCENARIO_TEXT, GOOGLE, today=date(2025, 6, 1))
    assert md.primary_product_name == "PARACETAMOL 500mg"
    assert md.batch_numbers == ("PCT2023002",)
    assert md.expiry_date == "12/2025"
    assert any("ABC Pharma Ltd" in m for m in md.manufacturers)
    assert md.confidence >= 0.9
    assert md.warnings == ()
    assert md.provider == "google-vision"
    assert md.detected_text == SCENARIO_TEXT


def test_manufacturer_address_does_not_become_primary_product():
    md = extract_from_text(
        "PARACETAMOL 500mg Tablets Batch: PCT2023002 Exp: 12/2025 "
        "Manufactured by Emzor Pharmaceutical Industries Ltd, Lagos",
        GOOGLE,
        today=date(2025, 6, 1),
    )
    assert md.primary_product_name == "PARACETAMOL 500mg"
    assert md.manufacturers[0] == "Emzor Pharmaceutical Industries Ltd"


def test_pharmaceutical_form_is_attached():
    md = extract_from_text("PARACETAMOL 500mg Tablets", TESSERACT)
    assert md.pharmaceutical_form == "tablets"


def test_response_shape():
    md = extract_from_text(SCENARIO_TEXT, GOOGLE, today=date(2025, 6, 1))
    out = md.to_response()
    assert out["batchNumbers"] == ["PCT2023002"]
    assert out["drugNames"][0] == "PARACETAMOL 500mg"
    assert out["expiryDates"] == ["12/2025"]
    assert out["detectedText"] == SCENARIO_TEXT
    assert "warnings" not in out


def test_extract_returns_metadata_with_usage():
    engine = ExtractionEngine({"google-vision": ScriptedProvider(SCENARIO_TEXT)})
    md = asyncio.run(engine.extract([b"img"], GOOGLE))
    assert md.usage is not None
    assert md.usage.cost == pytest.approx(GOOGLE.cost_per_call)


def test_empty_text_is_no_text_detected():
    engine = ExtractionEngine({"tesseract": ScriptedProvider("   \n")})
    with pytest.raises(ProviderError) as info:
        asyncio.run(engine.extract([b"img"], TESSERACT))
    assert info.value.kind is ProviderErrorKind.NO_TEXT_DETECTED
    assert info.value.provider == "tesseract"


def test_unexpected_adapter_error_becomes_invalid_response():
    engine = ExtractionEngine({"tesseract": ScriptedProvider(KeyError("boom"))})
    with pytest.raises(ProviderError) as info:
        asyncio.run(engine.extract([b"img"], TESSERACT))
    assert info.value.kind is ProviderErrorKind.INVALID_RESPONSE
    assert info.value.dispatched is True


def test_missing_adapter_is_invalid_response():
    with pytest.raises(ProviderError) as info:
        asyncio.run(ExtractionEngine({}).extract([b"img"], GOOGLE))
    assert info.value.kind is ProviderErrorKind.INVALID_RESPONSE
    assert info.value.dispatched is False


def test_hourly_ceiling_raises_rate_limited_without_calling_provider():
    provider = ScriptedProvider(SCENARIO_TEXT)
    counter = FixedCounter({("google-vision", HOUR): GOOGLE.max_requests_per_hour})
    engine = ExtractionEngine({"google-vision": provider}, limiter=counter)
    with pytest.raises(ProviderError) as info:
        asyncio.run(engine.extract([b"img"], GOOGLE))
    assert info.value.kind is ProviderErrorKind.RATE_LIMITED
    assert provider.calls == 0
    assert info.value.dispatched is False


def test_daily_ceiling_raises_rate_limited():
    counter = FixedCounter({("google-vision", DAY): GOOGLE.max_requests_per_day})
    engine = ExtractionEngine({"google-vision": ScriptedProvider(SCENARIO_TEXT)}, limiter=counter)
    with pytest.raises(ProviderError) as info:
        asyncio.run(engine.extract([b"img"], GOOGLE))
    assert info.value.kind is ProviderErrorKind.RATE_LIMITED


def test_broken_counter_does_not_block_extraction():
    engine = ExtractionEngine({"google-vision": ScriptedProvider(SCENARIO_TEXT)}, limiter=BrokenStore())
    md = asyncio.run(engine.extract([b"img"], GOOGLE))
    assert md.batch_numbers == ("PCT2023002",)


def test_hint_is_passed_to_adapter():
    provider = ScriptedProvider(SCENARIO_TEXT)
    engine = ExtractionEngine({"google-vision": provider})
    asyncio.run(engine.extract([b"img"], GOOGLE, hint="blister pack"))
    assert provider.hints == ["blister pack"]
