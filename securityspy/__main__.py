#!/usr/bin/env python
import sys
import asyncio
import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from securityspy.server import Server
from securityspy.models import EventType
from securityspy.exceptions import RequestError
from securityspy.utils.config import Config, LoggingConfig, load_config
from securityspy.version import FULL_VERSION

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(config: LoggingConfig):
    """Configure the root logger from the [LOGGING] section."""
    logging.basicConfig(level=config.level.upper(), format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_log_size,
            backupCount=config.backup_count,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def log_event(event):
    """Default subscriber: one log line per event."""
    camera = event.camera.name if event.camera is not None else "-"
    errors = f" errors={[str(e) for e in event.parse_errors]}" if event.parse_errors else ""
    logger.info(f"[{event.kind}] #{event.sequence_id} {camera}: {event.message}{errors}")


async def main(config: Config) -> int:
    """Connect to the server and log every event until interrupted."""
    server = Server.from_config(config.server)

    try:
        await server.refresh()
    except RequestError as e:
        logger.error(f"Could not load server info from {config.server.url}: {e}")
        await server.close()
        return 1

    logger.info(
        f"Connected to {server.info.name} {server.info.version}, cameras: {', '.join(server.cameras.names)}"
    )
    server.events.bind_callback(EventType.ALL, log_event)

    try:
        await server.events.watch(
            retry_interval=config.events.retry_interval,
            refresh_interval=config.events.refresh_interval,
            refresh_on_config_change=config.events.refresh_on_config_change,
        )
    except asyncio.CancelledError:
        logger.info("Watcher is shutting down.")
    finally:
        await server.close()
    return 0


def main_entry():
    """Entry point for console script."""
    parser = argparse.ArgumentParser(description="Watch a SecuritySpy server's event stream")
    parser.add_argument(
        "config", nargs="?", default="config.ini", help="Path to the configuration file"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {FULL_VERSION}")
    args = parser.parse_args()

    try:
        config = load_config(Path(args.config))
    except FileNotFoundError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(str(e))
        sys.exit(1)

    setup_logging(config.logging)

    try:
        exit_code = asyncio.run(main(config))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main_entry()
