"""Main entry point for the WetroCloud MCP server."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .server import WetroCloudMCPServer
from .config import WetroCloudConfig
from .errors import ConfigurationError


logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path. If None, logs to stderr only.
    """
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    # stdout carries the MCP protocol, so logs go to stderr
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {e}")


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="WetroCloud MCP Server - Model Context Protocol server for the WetroCloud API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  WETROCLOUD_API_KEY      WetroCloud API key (required)
  WETROCLOUD_API_URL      API base URL (default: https://api.wetrocloud.com)
  WETROCLOUD_API_VERSION  API version segment (default: v1)

Examples:
  python -m wetrocloud
  python -m wetrocloud --log-level DEBUG
  python -m wetrocloud --validate-config
        """
    )

    parser.add_argument("--api-key", type=str, help="WetroCloud API key (overrides WETROCLOUD_API_KEY)")
    parser.add_argument("--base-url", type=str, help="API base URL (overrides WETROCLOUD_API_URL)")
    parser.add_argument("--api-version", type=str, help="API version segment (overrides WETROCLOUD_API_VERSION)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set logging level (default: INFO)"
    )
    parser.add_argument("--log-file", type=str, help="Log file path (logs to stderr if not specified)")
    parser.add_argument("--validate-config", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--version", action="version", version=f"WetroCloud MCP Server {__version__}")

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> WetroCloudConfig:
    """Create configuration from command line arguments and environment.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    load_dotenv()

    api_key = args.api_key or os.getenv("WETROCLOUD_API_KEY")
    if not api_key:
        raise ConfigurationError(
            "WetroCloud API key is required (set WETROCLOUD_API_KEY or use --api-key)",
            config_key="api_key"
        )

    config = WetroCloudConfig.build(
        api_key=api_key,
        base_url=args.base_url or os.getenv("WETROCLOUD_API_URL"),
        api_version=args.api_version or os.getenv("WETROCLOUD_API_VERSION"),
        referrer=os.getenv("WETROCLOUD_REFERRER"),
    )
    logger.info(f"Configuration loaded: api_url={config.api_url}")
    return config


async def main(argv: Optional[list] = None) -> None:
    """Main entry point for the MCP server."""
    args = parse_arguments(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        config = create_config_from_args(args)

        async with WetroCloudMCPServer(config) as server:
            if args.validate_config:
                await server._validate_config()
                logger.info("Configuration validation completed successfully")
                return
            await server.run()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
