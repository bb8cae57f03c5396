"""Keyword classification of the dosage form printed on a pack."""

import re
from typing import Tuple

# Ordered: the first form whose keywords appear wins.
_FORM_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("tablets", ("tablet", "tab", "caplet")),
    ("capsules", ("capsule", "cap", "softgel")),
    ("injectables", ("injection", "injectable", "vial", "ampoule", "syringe")),
    ("syrups", ("syrup", "suspension", "solution", "elixir")),
    ("creams", ("cream", "ointment", "gel", "lotion")),
    ("inhalers", ("inhaler", "aerosol", "mdi", "dpi")),
    ("patches", ("patch", "transdermal")),
    ("drops", ("drop", "eye", "ear", "otic")),
    ("suppositories", ("suppository", "suppositories", "rectal", "vaginal")),
    ("sprays", ("spray", "nasal")),
)

GENERAL_FORM = "general"


def _matches(token: str, keyword: str) -> bool:
    if token == keyword or token == keyword + "s" or token == keyword + "es":
        return True
    # long stems also cover inflections ("suspensions", "injectables")
    return len(keyword) >= 6 and token.startswith(keyword)


def detect_pharma_form(text: str) -> str:
    """Return the dosage form suggested by the text, or ``general``."""
    if not text:
        return GENERAL_FORM
    tokens = set(re.findall(r"[a-z]+", text.lower()))
    for form, keywords in _FORM_KEYWORDS:
        if any(_matches(tok, kw) for kw in keywords for tok in tokens):
            return form
    return GENERAL_FORM
