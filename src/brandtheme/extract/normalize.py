"""Validation and downsampling of raster images into pixel samples."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..config import ExtractionSettings
from ..errors import ExtractionFailed, InvalidInput

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}
SAMPLE_BACKGROUND = (255, 255, 255)

_DATA_URI = re.compile(r"^data:image/(jpeg|png|gif|webp);base64,", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ImageInfo:
    format: str
    mime: str
    width: int
    height: int


def sniff_format(image_bytes: bytes) -> str | None:
    """Identify a supported raster format from its magic bytes."""
    head = image_bytes[:16]
    if head.startswith(b"\xff\xd8\xff"):
        return "JPEG"
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "PNG"
    if head.startswith((b"GIF87a", b"GIF89a")):
        return "GIF"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "WEBP"
    return None


def validate_image_bytes(
    image_bytes: bytes, settings: ExtractionSettings | None = None
) -> ImageInfo:
    """Check size, magic bytes, parseability and dimensions of an uploaded image."""
    settings = settings or ExtractionSettings()
    if not image_bytes:
        raise InvalidInput("Invalid image format. Supported: JPEG, PNG, GIF, WebP")
    if len(image_bytes) > settings.max_image_bytes:
        raise InvalidInput(f"Image exceeds {settings.max_image_bytes // (1024 * 1024)}MB limit")

    sniffed = sniff_format(image_bytes)
    if sniffed is None:
        raise InvalidInput("Invalid image format. Supported: JPEG, PNG, GIF, WebP")

    try:
        with Image.open(BytesIO(image_bytes)) as img:
            fmt = (img.format or "").upper()
            width, height = img.size
    except (UnidentifiedImageError, DecompressionBombError, OSError) as exc:
        raise InvalidInput("Could not parse image") from exc

    if fmt != sniffed or fmt not in ALLOWED_FORMATS:
        raise InvalidInput("Invalid image format")
    if width > settings.max_dimension or height > settings.max_dimension:
        raise InvalidInput(f"Image dimensions exceed {settings.max_dimension}px limit")
    return ImageInfo(format=fmt, mime=ALLOWED_FORMATS[fmt], width=width, height=height)


def decode_data_uri(uri: str, settings: ExtractionSettings | None = None) -> bytes:
    """Decode a ``data:image/<format>;base64,`` payload."""
    settings = settings or ExtractionSettings()
    if len(uri) > settings.max_base64_length:
        raise InvalidInput("Image data too large")
    match = _DATA_URI.match(uri)
    if not match:
        raise InvalidInput("Invalid image format")
    payload = re.sub(r"\s+", "", uri[match.end():])
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Invalid base64 image data") from exc


def to_rgb(img: Image.Image) -> Image.Image:
    """Flatten *img* onto a white canvas and return it in RGB mode."""
    if img.mode == "RGB":
        return img
    rgba = img.convert("RGBA")
    canvas = Image.new("RGBA", rgba.size, SAMPLE_BACKGROUND + (255,))
    flattened = Image.alpha_composite(canvas, rgba).convert("RGB")
    canvas.close()
    rgba.close()
    return flattened


def downsample(img: Image.Image, size: int = 100) -> Image.Image:
    """Return a copy of *img* that fits inside a size-by-size box."""
    if size <= 0:
        raise ValueError("Size must be a positive integer")
    sample = img.copy()
    sample.thumbnail((size, size), Image.Resampling.LANCZOS)
    return sample


def sample_pixels(image_bytes: bytes, size: int = 100) -> np.ndarray:
    """Decode *image_bytes* and return an ``(N, 3)`` uint8 array of at most size*size pixels."""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.seek(0)
            rgb = to_rgb(img)
            sample = downsample(rgb, size)
            if rgb is not img:
                rgb.close()
    except (UnidentifiedImageError, DecompressionBombError, OSError, ValueError) as exc:
        raise ExtractionFailed("Failed to extract colors from image") from exc
    width, height = sample.size
    try:
        pixels = np.asarray(sample, dtype=np.uint8).reshape(-1, 3)
    finally:
        sample.close()
    if len(pixels) == 0:
        raise ExtractionFailed("Failed to extract colors from image")
    logger.debug("Sampled %d pixels at %dx%d", len(pixels), width, height)
    return pixels
