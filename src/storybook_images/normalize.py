"""Fit provider images onto the fixed print canvas.

Whatever the provider returned (size, ratio, format), the output is a JPEG of
exactly the canvas size with the image centred inside the safe area on a
plain background. Nothing is cropped.
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from storybook_images.errors import NormalizationError
from storybook_images.layout import A4_CANVAS_PIXELS, DEFAULT_SAFE_MARGIN_PX, Size, format_resolution
from storybook_images.logging import logger

JPEG_QUALITY = 92
OUTPUT_MIME_TYPE = "image/jpeg"
WHITE = (255, 255, 255)

# Declared mime type -> format name Pillow reports after decoding.
SUPPORTED_MIME_TYPES: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/tiff": "TIFF",
    "image/webp": "WEBP",
}
# Multi-picture JPEGs decode as MPO.
_FORMAT_ALIASES = {"MPO": "JPEG"}


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes
    mime_type: str
    original_resolution: Size
    resized_from: Size
    resized_to: Size
    final_resolution: Size
    offset: tuple[int, int]

    def resolution_strings(self) -> dict[str, str]:
        return {
            "original_resolution": format_resolution(self.original_resolution),
            "resized_from": format_resolution(self.resized_from),
            "resized_to": format_resolution(self.resized_to),
            "final_resolution": format_resolution(self.final_resolution),
        }


def fit_contain(width: int, height: int, max_width: int, max_height: int) -> Size:
    """Largest size with the source ratio that fits inside ``max_width x max_height``.

    Same as flooring ``dim * min(max_w / w, max_h / h)`` but in integers, so the
    constrained side always lands exactly on the bound.
    """
    if max_width * height <= max_height * width:
        return Size(max_width, max(1, height * max_width // width))
    return Size(max(1, width * max_height // height), max_height)


def centered_offset(size: Size, safe_area: Size, margin: int) -> tuple[int, int]:
    return (
        math.floor(margin + (safe_area.width - size.width) / 2),
        math.floor(margin + (safe_area.height - size.height) / 2),
    )


def _decode(data: bytes, mime_type: str) -> Image.Image:
    normalized_mime = (mime_type or "").split(";", 1)[0].strip().lower()
    expected_format = SUPPORTED_MIME_TYPES.get(normalized_mime)
    if expected_format is None:
        raise NormalizationError(f"Unsupported image mime type: {mime_type or 'unknown'}")
    if not data:
        raise NormalizationError("Image payload is empty")

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    # Corrupt PNG chunks surface from load() as SyntaxError.
    except (UnidentifiedImageError, Image.DecompressionBombError, SyntaxError, OSError, ValueError) as exc:
        raise NormalizationError(f"Could not decode {normalized_mime} image: {exc}") from exc

    detected_format = _FORMAT_ALIASES.get(img.format or "", img.format)
    if detected_format != expected_format:
        raise NormalizationError(
            f"Declared mime type {normalized_mime} does not match decoded format {img.format or 'unknown'}"
        )
    return img


def normalize_for_layout(
    data: bytes,
    mime_type: str,
    *,
    canvas: Size = A4_CANVAS_PIXELS,
    safe_margin_px: int = DEFAULT_SAFE_MARGIN_PX,
    background: tuple[int, int, int] = WHITE,
    quality: int = JPEG_QUALITY,
) -> NormalizedImage:
    """Decode, fit into the safe area, centre on the canvas and encode as JPEG."""
    safe_area = Size(canvas.width - 2 * safe_margin_px, canvas.height - 2 * safe_margin_px)
    if safe_area.width <= 0 or safe_area.height <= 0:
        raise NormalizationError(f"Safe margin {safe_margin_px}px leaves no room on a {format_resolution(canvas)} canvas")

    with _decode(data, mime_type) as img:
        original = Size(*img.size)
        if original.width <= 0 or original.height <= 0:
            raise NormalizationError("Decoded image has no pixels")

        target = fit_contain(original.width, original.height, safe_area.width, safe_area.height)
        offset = centered_offset(target, safe_area, safe_margin_px)

        try:
            source = img.convert("RGBA")
            if target != original:
                source = source.resize(target, Image.Resampling.LANCZOS)

            page = Image.new("RGB", canvas, background)
            # Alpha doubles as the paste mask so transparency lands on the background.
            page.paste(source, offset, source)

            buffer = io.BytesIO()
            page.save(buffer, format="JPEG", quality=quality)
        except (OSError, ValueError) as exc:
            raise NormalizationError(f"Failed to compose normalized image: {exc}") from exc

    logger.debug(
        "Normalized image %s -> %s at %s on %s",
        format_resolution(original),
        format_resolution(target),
        offset,
        format_resolution(canvas),
    )
    return NormalizedImage(
        data=buffer.getvalue(),
        mime_type=OUTPUT_MIME_TYPE,
        original_resolution=original,
        resized_from=original,
        resized_to=target,
        final_resolution=Size(*canvas),
        offset=offset,
    )
