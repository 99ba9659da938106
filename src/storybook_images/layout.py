"""Aspect-ratio resolution and print canvas constants.

Callers ask for any ``W:H`` string (or a word such as ``portrait``). The
primary provider only understands a handful of discrete ratios and the
secondary provider only a handful of literal sizes, so every request is
mapped onto both before anything leaves the process.
"""

from dataclasses import dataclass
from typing import Literal, NamedTuple

GeminiAspectRatio = Literal["1:1", "3:4", "4:3", "9:16", "16:9"]


class Size(NamedTuple):
    width: int
    height: int


GEMINI_SUPPORTED_ASPECT_RATIOS: tuple[GeminiAspectRatio, ...] = ("1:1", "3:4", "4:3", "9:16", "16:9")

# First entry is the default for malformed input; order also breaks ties.
GEMINI_ASPECT_RATIO_PRIORITY: tuple[GeminiAspectRatio, ...] = ("3:4", "9:16", "1:1", "4:3", "16:9")

ASPECT_RATIO_ALIASES: dict[str, GeminiAspectRatio] = {
    "4:5": "3:4",
    "2:3": "3:4",
    "portrait": "3:4",
    "vertical": "3:4",
    "5:4": "4:3",
    "landscape": "16:9",
    "wide": "16:9",
    "square": "1:1",
}

OPENAI_LEGACY_SIZES: dict[str, str] = {
    "4:5": "1024x1792",
    "3:4": "1024x1792",
    "9:16": "1024x1792",
    "1:1": "1024x1024",
    "16:9": "1792x1024",
    "4:3": "1792x1024",
}

# Nearest discrete ratio of each legacy size, reported as the effective ratio.
OPENAI_SIZE_ASPECT_RATIOS: dict[str, GeminiAspectRatio] = {
    "1024x1792": "9:16",
    "1024x1024": "1:1",
    "1792x1024": "16:9",
}

GEMINI_PREFERRED_ASPECT_RATIO = "4:5"
DEFAULT_LAYOUT_LABEL = "A4@200dpi"
A4_CANVAS_PIXELS = Size(1654, 2339)
DEFAULT_SAFE_MARGIN_PX = 72
MIN_VERTICAL_RENDER_SIZE = Size(896, 1120)


@dataclass(frozen=True)
class ResolvedAspectRatio:
    requested: str
    resolved: GeminiAspectRatio
    is_fallback: bool
    openai_size: str


@dataclass(frozen=True)
class ImageLayout:
    requested_aspect_ratio: str
    resolved_aspect_ratio: GeminiAspectRatio
    is_fallback: bool
    canvas: Size
    layout_label: str
    canvas_label: str
    safe_margin_px: int
    min_render_size: Size
    openai_fallback_size: str

    def to_dict(self) -> dict[str, object]:
        return {
            "requestedAspectRatio": self.requested_aspect_ratio,
            "resolvedAspectRatio": self.resolved_aspect_ratio,
            "isFallback": self.is_fallback,
            "canvas": {"width": self.canvas.width, "height": self.canvas.height},
            "layoutLabel": self.layout_label,
            "canvasLabel": self.canvas_label,
            "safeMarginPx": self.safe_margin_px,
            "minRenderSize": {"width": self.min_render_size.width, "height": self.min_render_size.height},
            "openaiFallbackSize": self.openai_fallback_size,
        }


def parse_ratio(value: str | None) -> float | None:
    """Return ``width / height`` for a ``W:H`` string, or None when it is not one."""
    if not value or ":" not in value:
        return None
    width_raw, _, height_raw = value.partition(":")
    try:
        width = float(width_raw)
        height = float(height_raw)
    except ValueError:
        return None
    if width != width or height != height:  # NaN
        return None
    if height == 0 or width <= 0 or height < 0:
        return None
    return width / height


def _nearest_supported_ratio(target: float) -> GeminiAspectRatio:
    best = GEMINI_ASPECT_RATIO_PRIORITY[0]
    best_diff = float("inf")
    for candidate in GEMINI_ASPECT_RATIO_PRIORITY:
        candidate_value = parse_ratio(candidate)
        if candidate_value is None:
            continue
        diff = abs(candidate_value - target)
        # Strict comparison keeps the earlier entry on ties.
        if diff < best_diff:
            best = candidate
            best_diff = diff
    return best


def map_aspect_ratio(desired: str | None = GEMINI_PREFERRED_ASPECT_RATIO) -> ResolvedAspectRatio:
    """Map a requested ratio onto the primary provider's discrete set.

    Never raises. Anything unparseable resolves to the first priority entry
    with ``is_fallback`` set.
    """
    requested = (desired or "").strip().lower()
    if not requested:
        requested = GEMINI_PREFERRED_ASPECT_RATIO

    if requested in GEMINI_SUPPORTED_ASPECT_RATIOS:
        resolved: GeminiAspectRatio = requested  # type: ignore[assignment]
        is_fallback = False
    elif requested in ASPECT_RATIO_ALIASES:
        resolved = ASPECT_RATIO_ALIASES[requested]
        is_fallback = True
    else:
        numeric = parse_ratio(requested)
        if numeric is None:
            resolved = GEMINI_ASPECT_RATIO_PRIORITY[0]
        else:
            resolved = _nearest_supported_ratio(numeric)
        is_fallback = True

    return ResolvedAspectRatio(
        requested=requested,
        resolved=resolved,
        is_fallback=is_fallback,
        openai_size=_openai_size_for(requested, resolved),
    )


def _openai_size_for(requested: str, resolved: GeminiAspectRatio) -> str:
    if requested in OPENAI_LEGACY_SIZES:
        return OPENAI_LEGACY_SIZES[requested]
    if resolved in OPENAI_LEGACY_SIZES:
        return OPENAI_LEGACY_SIZES[resolved]
    return OPENAI_LEGACY_SIZES["3:4"]


def get_openai_fallback_size(desired: str | None = GEMINI_PREFERRED_ASPECT_RATIO) -> str:
    """Return the literal ``WxH`` size string the secondary provider accepts."""
    return map_aspect_ratio(desired).openai_size


def format_resolution(size: tuple[int, int]) -> str:
    return f"{size[0]}x{size[1]}"


def format_canvas_layout(canvas: Size = A4_CANVAS_PIXELS, label: str = DEFAULT_LAYOUT_LABEL) -> str:
    return f"{label} ({format_resolution(canvas)})"


def get_image_layout(aspect_ratio: str | None = None, safe_margin_px: int | None = None) -> ImageLayout:
    """Describe where a generated image lands on the printed page."""
    ratio = map_aspect_ratio(aspect_ratio or GEMINI_PREFERRED_ASPECT_RATIO)
    margin = DEFAULT_SAFE_MARGIN_PX if safe_margin_px is None else max(0, safe_margin_px)
    return ImageLayout(
        requested_aspect_ratio=ratio.requested,
        resolved_aspect_ratio=ratio.resolved,
        is_fallback=ratio.is_fallback,
        canvas=A4_CANVAS_PIXELS,
        layout_label=DEFAULT_LAYOUT_LABEL,
        canvas_label=format_canvas_layout(),
        safe_margin_px=margin,
        min_render_size=MIN_VERTICAL_RENDER_SIZE,
        openai_fallback_size=ratio.openai_size,
    )
