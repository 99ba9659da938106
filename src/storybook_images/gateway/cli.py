import argparse

import uvicorn

from storybook_images.gateway.config import load_config
from storybook_images.gateway.log_config import configure_logging, logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storybook-image-gateway",
        description="Serve the storybook illustration gateway.",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--host", default=None, help="Override the configured bind host")
    parser.add_argument("--port", type=int, default=None, help="Override the configured port")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    from storybook_images.gateway.server import create_app

    config = load_config(args.config)
    host = args.host or config.host
    port = args.port or config.port
    logger.info("Starting storybook-image-gateway on %s:%d", host, port)
    uvicorn.run(create_app(config), host=host, port=port, log_level=(args.log_level or "info").lower())


if __name__ == "__main__":
    main()
