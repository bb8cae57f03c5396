"""Local Tesseract OCR: the terminal, network-free fallback.

Only the first two images are read and each call carries a hard timeout so
the whole pass stays within ``TESSERACT_TIMEOUT``.
"""

from __future__ import annotations

import asyncio
import io
import time
from typing import List, Optional, Sequence

import pytesseract
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from ..config import OcrSettings
from ..domain.models import ProviderDescriptor, ProviderErrorKind
from ..logging import get_logger
from .base import BaseProvider, register

LOG = get_logger("providers-tesseract")

MAX_IMAGES = 2
MIN_WIDTH = 1000
TESSERACT_CONFIG = "--oem 3 --psm 6"


def preprocess_image(data: bytes) -> Image.Image:
    """Grayscale, auto-contrast and sharpen; upscale narrow photos."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        gray = ImageOps.grayscale(img)
    if gray.width < MIN_WIDTH:
        scale = MIN_WIDTH / float(gray.width)
        gray = gray.resize((MIN_WIDTH, max(1, int(gray.height * scale))), Image.Resampling.LANCZOS)
    gray = ImageOps.autocontrast(gray)
    return gray.filter(ImageFilter.SHARPEN)


class TesseractProvider(BaseProvider):
    key = "tesseract"

    def __init__(self, *, tesseract_cmd: Optional[str] = None, timeout: float = 10.0, lang: str = "eng") -> None:
        self.tesseract_cmd = tesseract_cmd
        self.timeout = timeout
        self.lang = lang

    @classmethod
    def from_settings(cls, settings: OcrSettings) -> "TesseractProvider":
        return cls(tesseract_cmd=settings.tesseract_cmd, timeout=settings.tesseract_timeout)

    def _read_all(self, images: Sequence[bytes]) -> str:
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        deadline = time.monotonic() + self.timeout
        texts: List[str] = []
        for idx, data in enumerate(images[:MAX_IMAGES]):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LOG.warning("Tesseract budget exhausted after %s image(s)", idx)
                break
            img = preprocess_image(data)
            text = pytesseract.image_to_string(img, lang=self.lang, config=TESSERACT_CONFIG, timeout=remaining)
            LOG.debug("Tesseract image %s: %s chars", idx + 1, len(text or ""))
            texts.append((text or "").strip())
        return "\n".join(t for t in texts if t)

    async def detect_text(
        self, images: Sequence[bytes], descriptor: ProviderDescriptor, hint: Optional[str] = None
    ) -> str:
        try:
            return await asyncio.to_thread(self._read_all, list(images))
        except pytesseract.TesseractNotFoundError as exc:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, "tesseract binary not found", descriptor) from exc
        except UnidentifiedImageError as exc:
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, f"unreadable image: {exc}", descriptor) from exc
        except (RuntimeError, OSError, pytesseract.TesseractError) as exc:
            # pytesseract signals its own timeout with RuntimeError
            raise self.error(ProviderErrorKind.INVALID_RESPONSE, str(exc), descriptor) from exc


register(TesseractProvider.key, TesseractProvider)
