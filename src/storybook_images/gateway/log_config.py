import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("storybook_images.gateway")


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the gateway process."""
    resolved = (level or os.getenv("GATEWAY_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("storybook_images").setLevel(resolved)
    # SDK transports log every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
