from pharma_ocr.domain.models import PointBalances, UsageRecord
from pharma_ocr.usage import UsageDatabase


def _record(provider="google-vision", success=True, cost=0.00175):
    return UsageRecord(provider=provider, success=success, response_time_ms=120.0, cost=cost, tier="free")


def test_schema_created_at_given_path(tmp_path):
    path = tmp_path / "nested" / "usage.sqlite3"
    db = UsageDatabase(str(path))
    assert path.exists()
    assert db.db_path == str(path)


def test_default_location_under_var(tmp_path):
    (tmp_path / "pyproject.toml").write_text("[project]\nname='x'\n", encoding="utf-8")
    db = UsageDatabase(root_dir=str(tmp_path))
    assert db.db_path == str(tmp_path / "var" / "usage" / "usage.sqlite3")


def test_count_requests_honours_window(tmp_path):
    db = UsageDatabase(str(tmp_path / "u.sqlite3"))
    now = 1_000_000.0
    db.record_usage(_record(), at=now - 10)
    db.record_usage(_record(success=False), at=now - 1800)
    db.record_usage(_record(), at=now - 7200)
    db.record_usage(_record(provider="tesseract", cost=0.0), at=now - 5)
    assert db.count_requests("google-vision", 3600, now=now) == 2
    assert db.count_requests("google-vision", 86400, now=now) == 3
    assert db.count_requests("tesseract", 3600, now=now) == 1
    assert db.count_requests("openai-vision", 3600, now=now) == 0


def test_balances_default_to_zero_and_upsert(tmp_path):
    db = UsageDatabase(str(tmp_path / "u.sqlite3"))
    assert db.get_balances("nobody") == PointBalances()
    db.set_balances("u1", PointBalances(basic=3))
    db.set_balances("u1", PointBalances(standard=2, business=1))
    assert db.get_balances("u1") == PointBalances(basic=0, standard=2, business=1)


def test_provider_summary(tmp_path):
    db = UsageDatabase(str(tmp_path / "u.sqlite3"))
    db.record_usage(_record())
    db.record_usage(_record(success=False, cost=0.0))
    rows = {r["provider"]: r for r in db.provider_summary()}
    assert rows["google-vision"]["attempts"] == 2
    assert rows["google-vision"]["successes"] == 1
    assert abs(rows["google-vision"]["total_cost"] - 0.00175) < 1e-9
