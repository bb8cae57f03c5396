import json

import pytest

from pharma_ocr.cli.main import main


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    for key in ("USAGE_DB_PATH", "GOOGLE_VISION_API_KEY", "OPEN_ROUTER_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(key, raising=False)


def test_route_prints_chain(capsys):
    assert main(["route", "--tier", "standard"]) == 0
    chain = json.loads(capsys.readouterr().out)
    assert [p["name"] for p in chain] == ["google-vision", "openrouter-claude", "tesseract"]


def test_usage_init_set_balance_and_plan(tmp_path, capsys):
    db = str(tmp_path / "usage.sqlite3")
    assert main(["usage", "--db", db, "init"]) == 0
    assert capsys.readouterr().out.strip() == db
    assert main(["usage", "--db", db, "set-balance", "--user-id", "u1", "--business", "2"]) == 0
    assert main(["plan", "--user-id", "u1", "--db", db]) == 0
    assert capsys.readouterr().out.strip() == "business"
    assert main(["plan", "--user-id", "nobody", "--db", db]) == 0
    assert capsys.readouterr().out.strip() == "free"


def test_negative_balance_rejected(tmp_path):
    db = str(tmp_path / "usage.sqlite3")
    assert main(["usage", "--db", db, "set-balance", "--user-id", "u1", "--basic", "-1"]) == 2


def test_extract_missing_file_exits_2(tmp_path):
    assert main(["extract", "--image", str(tmp_path / "missing.jpg")]) == 2
