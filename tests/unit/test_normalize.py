import io

import pytest
from PIL import Image, ImageChops

from storybook_images.errors import NormalizationError
from storybook_images.normalize import fit_contain, normalize_for_layout

CANVAS = (1654, 2339)
MARGIN = 72
SAFE = (CANVAS[0] - 2 * MARGIN, CANVAS[1] - 2 * MARGIN)


def _decode(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _content_bbox(img: Image.Image, threshold: int = 64) -> tuple[int, int, int, int] | None:
    white = Image.new("RGB", img.size, (255, 255, 255))
    diff = ImageChops.difference(img.convert("RGB"), white).convert("L")
    return diff.point(lambda value: 255 if value > threshold else 0).getbbox()


@pytest.mark.parametrize(
    ("width", "height"),
    [(1, 1), (4000, 10), (10, 4000), (1024, 1365), (1792, 1024), (1654, 2339), (3000, 3000)],
)
def test_output_is_always_the_canvas(make_image, width: int, height: int) -> None:
    result = normalize_for_layout(make_image(width, height), "image/png")

    decoded = _decode(result.data)
    assert decoded.format == "JPEG"
    assert decoded.size == CANVAS
    assert result.mime_type == "image/jpeg"
    assert result.final_resolution == CANVAS
    assert result.original_resolution == (width, height)
    assert result.resized_to[0] <= SAFE[0]
    assert result.resized_to[1] <= SAFE[1]


def test_portrait_image_is_centered_in_safe_area(make_image) -> None:
    result = normalize_for_layout(make_image(1024, 1365), "image/png")

    assert result.resized_to == (1510, 2012)
    assert result.offset == (72, 163)
    assert result.resolution_strings() == {
        "original_resolution": "1024x1365",
        "resized_from": "1024x1365",
        "resized_to": "1510x2012",
        "final_resolution": "1654x2339",
    }

    bbox = _content_bbox(_decode(result.data))
    assert bbox is not None
    expected = (72, 163, 72 + 1510, 163 + 2012)
    for actual, wanted in zip(bbox, expected, strict=True):
        assert abs(actual - wanted) <= 3
    assert bbox[0] >= MARGIN - 1
    assert bbox[1] >= MARGIN - 1
    assert bbox[2] <= CANVAS[0] - MARGIN + 1
    assert bbox[3] <= CANVAS[1] - MARGIN + 1


def test_landscape_image_is_letterboxed_vertically(make_image) -> None:
    result = normalize_for_layout(make_image(1792, 1024), "image/png")

    width, height = result.resized_to
    assert width == SAFE[0]
    assert height == 862
    left, top = result.offset
    assert left == MARGIN
    assert top == MARGIN + (SAFE[1] - height) // 2


def test_extreme_ratios_keep_at_least_one_pixel(make_image) -> None:
    wide = normalize_for_layout(make_image(4000, 10), "image/png")
    tall = normalize_for_layout(make_image(10, 4000), "image/png")

    assert wide.resized_to == (1510, 3)
    assert tall.resized_to == (5, 2195)


def test_small_image_is_enlarged_to_fit(make_image) -> None:
    result = normalize_for_layout(make_image(1, 1), "image/png")
    assert result.resized_to == (1510, 1510)


def test_jpeg_input_is_accepted(make_image) -> None:
    result = normalize_for_layout(make_image(800, 600, fmt="JPEG"), "image/jpg")
    assert _decode(result.data).size == CANVAS


def test_transparent_pixels_become_background(make_image) -> None:
    transparent = make_image(200, 200, color=(0, 0, 0, 0), mode="RGBA")

    decoded = _decode(normalize_for_layout(transparent, "image/png").data).convert("RGB")

    for low, _high in decoded.getextrema():
        assert low >= 250


def test_encoding_is_deterministic(make_image) -> None:
    source = make_image(640, 480)
    assert normalize_for_layout(source, "image/png").data == normalize_for_layout(source, "image/png").data


def test_output_carries_no_exif(make_image) -> None:
    buffer = io.BytesIO()
    exif = Image.Exif()
    exif[0x010E] = "provider watermark"
    Image.new("RGB", (300, 400), (10, 120, 10)).save(buffer, format="JPEG", exif=exif)

    decoded = _decode(normalize_for_layout(buffer.getvalue(), "image/jpeg").data)

    assert len(decoded.getexif()) == 0


def test_mime_type_mismatch_is_rejected(make_image) -> None:
    with pytest.raises(NormalizationError, match="does not match"):
        normalize_for_layout(make_image(100, 100, fmt="PNG"), "image/jpeg")


def test_unsupported_mime_type_is_rejected(make_image) -> None:
    with pytest.raises(NormalizationError, match="Unsupported"):
        normalize_for_layout(make_image(100, 100, fmt="GIF", color=1, mode="P"), "image/gif")


def test_undecodable_bytes_are_rejected() -> None:
    with pytest.raises(NormalizationError) as exc_info:
        normalize_for_layout(b"definitely not an image", "image/png")
    assert exc_info.value.status_code == 502


def test_broken_png_chunk_is_rejected(broken_png: bytes) -> None:
    with pytest.raises(NormalizationError, match="Could not decode"):
        normalize_for_layout(broken_png, "image/png")


def test_oversized_raster_is_rejected(make_image, monkeypatch: pytest.MonkeyPatch) -> None:
    source = make_image(100, 100)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(NormalizationError) as exc_info:
        normalize_for_layout(source, "image/png")

    assert exc_info.value.status_code == 502


def test_empty_payload_is_rejected() -> None:
    with pytest.raises(NormalizationError):
        normalize_for_layout(b"", "image/png")


def test_fit_contain() -> None:
    assert fit_contain(100, 200, 1510, 2195) == (1097, 2195)
    assert fit_contain(3000, 3000, 1510, 2195) == (1510, 1510)
