from pharma_ocr.domain.normalize import normalize_ocr_text
from pharma_ocr.extraction.patterns import (
    find_batch_numbers,
    find_expiry_date,
    find_manufacturers,
    find_product_names,
)

from fakes import SCENARIO_TEXT


def _norm(text: str) -> str:
    return normalize_ocr_text(text)


def test_normalize_collapses_whitespace_and_drops_unsafe_chars():
    assert _norm("  Batch:\n T36184B  |  Exp:\t12/2025 ") == "Batch T36184B Exp 12/2025"
    assert _norm("") == ""


def test_scenario_fields():
    text = _norm(SCENARIO_TEXT)
    assert find_product_names(text)[0] == "PARACETAMOL 500mg"
    assert find_batch_numbers(text) == ("PCT2023002",)
    assert find_expiry_date(text) == "12/2025"
    assert any("ABC Pharma Ltd" in m for m in find_manufacturers(text))


def test_labeled_batch_is_found():
    assert find_batch_numbers(_norm("Batch: T36184B")) == ("T36184B",)
    assert find_batch_numbers(_norm("Lot No. 4471-B2")) == ("4471-B2",)


def test_year_alone_is_not_a_batch_number():
    assert find_batch_numbers(_norm("2024")) == ()
    assert find_batch_numbers(_norm("Made in 2024")) == ()


def test_numeric_runs_outside_bounds_are_rejected():
    assert find_batch_numbers(_norm("Ref 1234567890 12345")) == ()


def test_batch_candidates_ranked_by_weight_then_first_seen():
    text = _norm("Lot 55A12 code ABC1234 ref 998877")
    assert find_batch_numbers(text) == ("55A12", "ABC1234", "998877")


def test_batch_candidates_capped_at_three():
    text = _norm("Batch B1234X AB1111 CD2222 EF3333 445566")
    found = find_batch_numbers(text)
    assert len(found) == 3
    assert found[0] == "B1234X"


def test_registration_number_is_not_a_batch():
    assert find_batch_numbers(_norm("NAFDAC Reg No. A4-1234")) == ()


def test_product_name_with_dosage_form_words():
    assert find_product_names(_norm("Amoxicillin Capsules 250mg"))[0] == "Amoxicillin Capsules 250mg"


def test_product_stopwords_and_company_names_are_dropped():
    assert find_product_names(_norm("Each Tablet Contains")) == ()
    assert find_product_names(_norm("Pharma Ltd")) == ()


def test_manufacturer_line_with_trailing_address_is_not_a_product():
    text = _norm(
        "PARACETAMOL 500mg Tablets Batch: PCT2023002 Exp: 12/2025 "
        "Manufactured by Emzor Pharmaceutical Industries Ltd, Lagos"
    )
    names = find_product_names(text)
    assert names[0] == "PARACETAMOL 500mg"
    assert not any("Ltd" in name or "Industries" in name for name in names)
    assert find_manufacturers(text)[0] == "Emzor Pharmaceutical Industries Ltd"


def test_product_candidates_longest_first_without_substrings():
    names = find_product_names(_norm("PARACETAMOL 500mg"))
    assert names == ("PARACETAMOL 500mg",)


def test_expiry_label_wins_over_bare_dates():
    assert find_expiry_date(_norm("Mfg 01/02/2023 Exp 01/02/2026")) == "01/02/2026"


def test_expiry_label_variants():
    assert find_expiry_date(_norm("Best before 2026-03-01")) == "2026-03-01"
    assert find_expiry_date(_norm("Use by: 03.2027.")) == "03.2027"


def test_expiry_bare_date_and_missing():
    assert find_expiry_date(_norm("Date 15.06.2027")) == "15.06.2027"
    assert find_expiry_date(_norm("no dates here")) is None


def test_manufacturer_label_and_bare_suffix():
    assert find_manufacturers(_norm("Marketed by Emzor Pharmaceutical Industries Ltd")) == (
        "Emzor Pharmaceutical Industries Ltd",
    )
    assert find_manufacturers(_norm("Glaxo Labs Nigeria")) == ("Glaxo Labs",)


def test_manufacturer_candidates_deduplicated_and_capped():
    found = find_manufacturers(_norm("Made by Alpha Pharma Ltd. Beta Labs Gamma Inc"))
    assert found[0] == "Alpha Pharma Ltd."
    assert len(found) <= 2
    assert len({m.upper() for m in found}) == len(found)
