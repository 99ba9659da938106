"""HTTP gateway for story image generation."""

__version__ = "0.1.0"
