"""Ordered pattern passes over normalized OCR text.

Every ``find_*`` function is pure (text in, candidates out) and expects text
already passed through :func:`pharma_ocr.domain.normalize.normalize_ocr_text`.
Candidates deduplicate on their uppercased value and keep first-match order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..logging import get_logger

LOG = get_logger("extraction-patterns")

BATCH_LIMIT = 3
PRODUCT_LIMIT = 3
MANUFACTURER_LIMIT = 2

# Generic pack words that are never a product name on their own.
PRODUCT_STOPWORDS: FrozenSet[str] = frozenset(
    {
        "batch", "lot", "tablet", "tablets", "capsule", "capsules", "syrup",
        "syrups", "cream", "creams", "expiry", "exp", "manufactured", "mfg",
        "mfd", "date", "made", "best", "before", "use", "by", "no", "each",
        "contains", "reg", "nafdac",
    }
)

_SUFFIX_WORDS = (
    "ltd", "limited", "plc", "pharma", "pharmaceutical", "pharmaceuticals",
    "lab", "labs", "laboratories", "industries", "inc", "corp", "co", "gmbh",
)
CORPORATE_SUFFIXES: FrozenSet[str] = frozenset(_SUFFIX_WORDS)
_SUFFIX_ALT = "|".join(sorted(_SUFFIX_WORDS, key=len, reverse=True))

_MANUFACTURER_LEAD_WORDS: FrozenSet[str] = frozenset(
    {"by", "for", "mfg", "mfd", "manufactured", "made", "marketed", "date"}
)


# ---------------------------------------------------------------------------
# Batch numbers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchPattern:
    name: str
    regex: re.Pattern
    weight: float


BATCH_PATTERNS: Tuple[BatchPattern, ...] = (
    BatchPattern("letter-prefixed", re.compile(r"\b([A-Z]{2,10}\d{2,8}[A-Z0-9]*)\b"), 0.7),
    BatchPattern("digit-run", re.compile(r"\b(\d{6,10})\b"), 0.5),
    BatchPattern(
        "batch-label",
        re.compile(
            r"\b(?:batch|lot)(?:\s*(?:number|num|no|nr))?\.?\s*([A-Z0-9][A-Z0-9\-]{3,14})\b",
            re.IGNORECASE,
        ),
        0.9,
    ),
    BatchPattern(
        "no-label",
        re.compile(r"\bno(?:\.\s*|\s+)([A-Z0-9][A-Z0-9\-]{3,14})\b", re.IGNORECASE),
        0.9,
    ),
)

_YEAR = re.compile(r"^(?:19|20)\d{2}$")
_DIGITS = re.compile(r"^\d+$")


def _rejected_batch(value: str) -> bool:
    if not 4 <= len(value) <= 15:
        return True
    if _YEAR.match(value):
        return True
    if _DIGITS.match(value) and (len(value) >= 10 or len(value) <= 5):
        return True
    return not any(ch.isdigit() for ch in value)


def _is_registration_number(text: str, start: int) -> bool:
    """True when a "No." value belongs to a "Reg. No." registration label."""
    window = text[max(0, start - 12):start].lower()
    return "reg" in window or "nafdac" in window


def find_batch_numbers(text: str, *, limit: int = BATCH_LIMIT) -> Tuple[str, ...]:
    """Return up to ``limit`` batch candidates, best-weighted first."""
    if not text:
        return ()
    best: Dict[str, float] = {}
    for pattern in BATCH_PATTERNS:
        for match in pattern.regex.finditer(text):
            value = match.group(1).strip("-").upper()
            if pattern.name == "no-label" and _is_registration_number(text, match.start()):
                LOG.debug("Skipping registration number %s", value)
                continue
            if _rejected_batch(value):
                continue
            LOG.debug("Batch candidate %s via %s", value, pattern.name)
            if value not in best or best[value] < pattern.weight:
                # dict keeps first insertion position for the tie-break
                best[value] = pattern.weight
    ranked = sorted(enumerate(best.items()), key=lambda item: (-item[1][1], item[0]))
    return tuple(value for _, (value, _) in ranked[:limit])


# ---------------------------------------------------------------------------
# Product names
# ---------------------------------------------------------------------------

PRODUCT_PATTERNS: Tuple[re.Pattern, ...] = (
    # name words followed by a strength, e.g. "PARACETAMOL 500mg"
    re.compile(
        r"\b([A-Z][A-Za-z]{2,}(?:\s+[A-Z][A-Za-z]{2,}){0,3}\s+\d+(?:\.\d+)?\s*(?i:mg|mcg|ml|iu|g))(?![A-Za-z])"
    ),
    # Title Case multi-word
    re.compile(r"\b([A-Z][a-z]{2,}(?:\s+[A-Z][a-z]{2,})+)\b"),
    # UPPER CASE multi-word
    re.compile(r"\b([A-Z]{3,}(?:\s+[A-Z]{3,})+)\b"),
    # single long capitalized word
    re.compile(r"\b([A-Z][a-z]{4,}|[A-Z]{5,})\b"),
)


def _trim_stopwords(candidate: str) -> str:
    words = candidate.split()
    while words and words[0].lower() in PRODUCT_STOPWORDS:
        words.pop(0)
    while words and words[-1].lower() in PRODUCT_STOPWORDS:
        words.pop()
    return " ".join(words)


def _acceptable_product(candidate: str) -> bool:
    if not 3 < len(candidate) < 50:
        return False
    if candidate.lower() in PRODUCT_STOPWORDS:
        return False
    # corporate names belong to the manufacturer pass, wherever the suffix sits
    return not any(word.lower().rstrip(".") in CORPORATE_SUFFIXES for word in candidate.split())


def find_product_names(text: str, *, limit: int = PRODUCT_LIMIT) -> Tuple[str, ...]:
    """Return product name candidates, longest (most specific) first.

    Candidates wholly contained in a longer kept candidate are dropped, so
    the first entry is the primary product name.
    """
    if not text:
        return ()
    found: List[str] = []
    seen = set()
    for pattern in PRODUCT_PATTERNS:
        for match in pattern.finditer(text):
            candidate = _trim_stopwords(match.group(1).strip())
            if not candidate or not _acceptable_product(candidate):
                continue
            key = candidate.upper()
            if key in seen:
                continue
            seen.add(key)
            LOG.debug("Product candidate %r", candidate)
            found.append(candidate)

    # stable sort keeps first-match order among equal lengths
    found.sort(key=len, reverse=True)
    kept: List[str] = []
    for candidate in found:
        upper = candidate.upper()
        if any(upper in longer.upper() for longer in kept):
            continue
        kept.append(candidate)
    return tuple(kept[:limit])


# ---------------------------------------------------------------------------
# Expiry date
# ---------------------------------------------------------------------------

_DATE_VALUE = r"(\d{1,4}[/\-.]\d{1,4}(?:[/\-.]\d{1,4})?)"

EXPIRY_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\bexp(?:iry|ires|iration)?(?:\s*date)?\.?\s*" + _DATE_VALUE, re.IGNORECASE),
    re.compile(r"\bbest\s*before\.?\s*" + _DATE_VALUE, re.IGNORECASE),
    re.compile(r"\buse\s*by\.?\s*" + _DATE_VALUE, re.IGNORECASE),
    re.compile(r"\b(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})\b"),
    re.compile(r"\b(\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})\b"),
)


def find_expiry_date(text: str) -> Optional[str]:
    """Return the first expiry match in pattern priority order."""
    if not text:
        return None
    for pattern in EXPIRY_PATTERNS:
        match = pattern.search(text)
        if match:
            value = match.group(1).strip("./-")
            LOG.debug("Expiry candidate %s via %s", value, pattern.pattern[:24])
            return value
    return None


# ---------------------------------------------------------------------------
# Manufacturer
# ---------------------------------------------------------------------------

MANUFACTURER_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(
        r"\b(?i:manufactured\s+(?:by|for)|mfd\.?\s+by|mfg\.?(?:\s+by)?|made\s+by|marketed\s+by)"
        r"\.?\s*([A-Z][A-Za-z]*(?:\s+[A-Z][A-Za-z]*\.?){0,6})"
    ),
    re.compile(
        r"\b((?:[A-Z][A-Za-z]+\s+){0,2}[A-Z][A-Za-z]*"
        r"(?:\s+(?i:" + _SUFFIX_ALT + r")\b\.?)+)"
    ),
)


def _clean_manufacturer(candidate: str) -> str:
    words = candidate.split()
    while words and words[0].lower() in _MANUFACTURER_LEAD_WORDS | PRODUCT_STOPWORDS:
        words.pop(0)
    # cut after the run of corporate suffixes, e.g. "Pharma Ltd"
    for idx, word in enumerate(words):
        if word.lower().rstrip(".") in CORPORATE_SUFFIXES and idx > 0:
            end = idx + 1
            while end < len(words) and words[end].lower().rstrip(".") in CORPORATE_SUFFIXES:
                end += 1
            words = words[:end]
            break
    else:
        words = words[:4]
    return " ".join(words)


def find_manufacturers(text: str, *, limit: int = MANUFACTURER_LIMIT) -> Tuple[str, ...]:
    """Return up to ``limit`` manufacturer candidates, labeled matches first."""
    if not text:
        return ()
    kept: List[str] = []
    for pattern in MANUFACTURER_PATTERNS:
        for match in pattern.finditer(text):
            candidate = _clean_manufacturer(match.group(1).strip())
            if len(candidate) <= 3:
                continue
            upper = candidate.upper()
            if any(upper in other.upper() or other.upper() in upper for other in kept):
                continue
            LOG.debug("Manufacturer candidate %r", candidate)
            kept.append(candidate)
    return tuple(kept[:limit])
