"""
monitor-pprof Application Entry Point
Author: Drmusab
Last Modified: 2026-10-19 14:02:37 UTC

Loads the configuration, sets up logging, wires the capture components and
serves the pprof endpoints with uvicorn.
"""

import argparse
import sys
import traceback
from typing import List, Optional

import asyncio

from monitor_pprof import __version__
from monitor_pprof.api.rest.setup import setup_rest_api, start_api_server
from monitor_pprof.core.config.settings import ServiceSettings
from monitor_pprof.core.config.yaml_loader import YamlConfigLoader
from monitor_pprof.core.di_config import create_configured_container
from monitor_pprof.observability.logging.config import configure_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monitor-pprof",
        description="Serve pprof CPU profiles captured through dotnet-monitor",
    )
    parser.add_argument("--config-dir", type=str, help="Directory holding config.yaml")
    parser.add_argument("--environment", type=str, help="Configuration environment")
    parser.add_argument("--host", type=str, help="Override api.rest.host")
    parser.add_argument("--port", type=int, help="Override api.rest.port")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    return parser


async def async_main(args: Optional[List[str]] = None):
    """Async entry point."""
    parsed_args = build_parser().parse_args(args)

    if parsed_args.version:
        print(f"monitor-pprof v{__version__}")
        return

    loader = YamlConfigLoader(environment=parsed_args.environment, config_dir=parsed_args.config_dir)
    loader.load()

    container = create_configured_container(loader)
    settings = container.get(ServiceSettings)

    logging_config = dict(settings.logging)
    if parsed_args.debug:
        logging_config["level"] = "DEBUG"
    configure_logging(logging_config)

    if parsed_args.host:
        settings.api.host = parsed_args.host
    if parsed_args.port:
        settings.api.port = parsed_args.port

    logger = get_logger(__name__)
    logger.info(f"monitor-pprof v{__version__} starting ({loader.environment})")
    if not settings.controller.dotnet_monitor_url:
        logger.warning("controller.dotnet_monitor_url is not set; profile requests will fail")

    app = setup_rest_api(container)
    await start_api_server(app, settings.api)


def main(args: Optional[List[str]] = None):
    """Main entry point."""
    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        print("\nShutdown completed")
    except Exception as e:
        print(f"Fatal error: {str(e)}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
