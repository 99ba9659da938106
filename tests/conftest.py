import io
import random
import struct
import zlib
from collections.abc import Callable, Iterable
from typing import Any

import pytest
from PIL import Image

from storybook_images.layout import map_aspect_ratio
from storybook_images.providers import ProviderName, ProviderResult


class FakeProvider:
    """Scripted provider: each call consumes the next outcome, the last one repeats."""

    def __init__(self, name: ProviderName | str, outcomes: Iterable[Any]) -> None:
        self.name = ProviderName(name)
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def generate(self, prompt: str, aspect_ratio: str, timeout_ms: int, style_id: str | None = None) -> ProviderResult:
        self.calls.append(
            {"prompt": prompt, "aspect_ratio": aspect_ratio, "timeout_ms": timeout_ms, "style_id": style_id}
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, bytes):
            return ProviderResult(
                data=outcome,
                mime_type="image/png",
                provider=self.name,
                latency_ms=12,
                requested_aspect_ratio=aspect_ratio,
                effective_aspect_ratio=map_aspect_ratio(aspect_ratio).resolved,
            )
        return outcome


def _encode_image(
    width: int,
    height: int,
    fmt: str = "PNG",
    color: tuple[int, ...] = (200, 30, 30),
    mode: str = "RGB",
) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return _encode_image


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    return FakeProvider


def _chunk(chunk_type: bytes, body: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + body) & 0xFFFFFFFF
    return struct.pack(">I", len(body)) + chunk_type + body + struct.pack(">I", crc)


def _break_png(data: bytes) -> bytes:
    """Split the first IDAT so its second half sits behind an invalid chunk type."""
    out = [data[:8]]
    pos = 8
    split = False
    while pos < len(data):
        (length,) = struct.unpack(">I", data[pos : pos + 4])
        chunk_type = data[pos + 4 : pos + 8]
        body = data[pos + 8 : pos + 8 + length]
        if chunk_type == b"IDAT" and not split:
            half = len(body) // 2
            out.append(_chunk(b"IDAT", body[:half]))
            out.append(_chunk(b"I\x00AT", body[half:]))
            split = True
        else:
            out.append(data[pos : pos + 12 + length])
        pos += 12 + length
    return b"".join(out)


@pytest.fixture
def broken_png() -> bytes:
    # Noise keeps the IDAT large enough that half of it cannot decode the image.
    noise = random.Random(0).randbytes(64 * 48 * 3)
    buffer = io.BytesIO()
    Image.frombytes("RGB", (64, 48), noise).save(buffer, format="PNG")
    return _break_png(buffer.getvalue())
