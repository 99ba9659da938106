"""Illustration style catalogue shared by the prompt layer and the providers."""

from dataclasses import dataclass
from typing import Literal

OpenAIImageStyle = Literal["vivid", "natural"]


@dataclass(frozen=True)
class IllustrationStyle:
    id: str
    label: str
    prompt_descriptor: str
    openai_style: OpenAIImageStyle


DEFAULT_STYLE_ID = "watercolor_child"

ILLUSTRATION_STYLES: tuple[IllustrationStyle, ...] = (
    IllustrationStyle(
        id="watercolor_child",
        label="Children's watercolor",
        prompt_descriptor=(
            "soft watercolor with a pastel palette, blurred edges and paper texture, "
            "a gentle look for young readers"
        ),
        openai_style="vivid",
    ),
    IllustrationStyle(
        id="animation_magic",
        label="Magical animation",
        prompt_descriptor=(
            "bright expressive cinematic animation, studio finish, big-eyed characters and vibrant lighting"
        ),
        openai_style="vivid",
    ),
    IllustrationStyle(
        id="anime_bright",
        label="Bright anime",
        prompt_descriptor="anime look with clean linework, soft shading, saturated colors and vivid backgrounds",
        openai_style="vivid",
    ),
    IllustrationStyle(
        id="storybook_classic",
        label="Classic storybook",
        prompt_descriptor="ink strokes with flat color, editorial feel, light textures and soft grain",
        openai_style="vivid",
    ),
    IllustrationStyle(
        id="realistic_soft",
        label="Soft realism",
        prompt_descriptor="warm realism with natural light, shallow depth of field and delicate textures, never harsh",
        openai_style="natural",
    ),
)

_STYLES_BY_ID = {style.id: style for style in ILLUSTRATION_STYLES}


def valid_style_ids() -> list[str]:
    return list(_STYLES_BY_ID)


def is_valid_style_id(style_id: str | None) -> bool:
    return bool(style_id) and style_id in _STYLES_BY_ID


def normalize_style_id(style_id: str | None) -> str:
    """Return ``style_id`` when known, otherwise the default style."""
    if is_valid_style_id(style_id):
        return style_id  # type: ignore[return-value]
    return DEFAULT_STYLE_ID


def get_style(style_id: str | None) -> IllustrationStyle:
    return _STYLES_BY_ID[normalize_style_id(style_id)]


def get_prompt_descriptor(style_id: str | None) -> str:
    """Style phrase for the story prompt builder to weave into its prompts.

    Exported for that collaborator only; prompts reaching this package are
    forwarded to providers unchanged.
    """
    return get_style(style_id).prompt_descriptor


def get_openai_style(style_id: str | None) -> OpenAIImageStyle:
    return get_style(style_id).openai_style
