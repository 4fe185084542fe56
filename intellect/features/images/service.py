"""
intellect/features/images/service.py

Image generation (Stability) and the square resize applied to every result.
"""

import io
import logging
from typing import Optional, Protocol

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from intellect.core.config import settings
from intellect.core.errors import ImageGenerationError

logger = logging.getLogger("intellect")


class ImageGenerator(Protocol):
    def generate(self, prompt: str) -> bytes:
        ...


class StabilityImageGenerator:
    """Calls the Stability image endpoint and returns the raw PNG bytes."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.STABILITY_API_KEY
        self.url = url or settings.STABILITY_API_URL
        self.timeout = timeout if timeout is not None else settings.IMAGE_TIMEOUT_SECONDS
        self.transport = transport

    def generate(self, prompt: str) -> bytes:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "image/*",
        }
        files = {
            "prompt": (None, prompt),
            "output_format": (None, "png"),
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.url, headers=headers, files=files)
        except httpx.HTTPError as e:
            logger.error(f"[images] Stability request failed: {e}")
            raise ImageGenerationError() from e

        if resp.status_code != 200:
            logger.error(f"[images] Stability returned {resp.status_code}: {resp.text[:200]}")
            raise ImageGenerationError()
        return resp.content


def resize_square(image_bytes: bytes, size: int = 512) -> bytes:
    """Cover-fit the image into a size x size square, centred, as PNG."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            fitted = ImageOps.fit(img, (size, size), method=Image.LANCZOS, centering=(0.5, 0.5))
    except (UnidentifiedImageError, OSError) as e:
        logger.error(f"[images] could not decode generated image: {e}")
        raise ImageGenerationError() from e

    buf = io.BytesIO()
    fitted.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
