import base64
import binascii
import re
from datetime import date
from typing import Optional, Union


_DATA_URL = re.compile(r"^data:[\w/+.-]+;base64,", re.IGNORECASE)
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9 \-/.]")
_WHITESPACE = re.compile(r"\s+")


def decode_image(value: Union[str, bytes, bytearray]) -> bytes:
    """Return raw image bytes from bytes, a base64 string or a data URL."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise TypeError(f"image must be bytes or a base64 string, got {type(value).__name__}")
    payload = _DATA_URL.sub("", value.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"image is not valid base64: {exc}") from exc


def encode_image_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def guess_image_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:3] == b"GIF":
        return "image/gif"
    return "image/jpeg"


def image_data_url(data: bytes) -> str:
    return f"data:{guess_image_mime(data)};base64,{encode_image_b64(data)}"


def normalize_ocr_text(text: str) -> str:
    """Collapse whitespace and drop characters outside the batch-safe set.

    Kept: letters, digits, space, hyphen, slash and period. Everything else
    (smudges, borders, colons) becomes a space.
    """
    if not text:
        return ""
    cleaned = _UNSAFE_CHARS.sub(" ", _WHITESPACE.sub(" ", text))
    return _WHITESPACE.sub(" ", cleaned).strip()


def expiry_year_month(value: str) -> Optional[tuple]:
    """Best-effort (year, month) from an expiry string like 12/2025 or 2025-12-31.

    Two-digit years map to 20xx. Returns None when no plausible pair is found.
    """
    if not value:
        return None
    parts = [p for p in re.split(r"[/\-.]", value.strip()) if p]
    if not all(p.isdigit() for p in parts) or len(parts) not in (2, 3):
        return None
    nums = [int(p) for p in parts]
    if len(parts[0]) == 4:
        year, month = nums[0], nums[1]
    else:
        year = nums[-1]
        # D/M/Y keeps the month in the middle; M/Y has it first
        month = nums[-2]
        if len(parts[-1]) == 2:
            year += 2000
    if not 1 <= month <= 12:
        return None
    return year, month


def is_expired(value: str, today: date) -> bool:
    ym = expiry_year_month(value)
    if ym is None:
        return False
    year, month = ym
    return (year, month) < (today.year, today.month)
