#!/usr/bin/env python3
"""
File Ledger - watch a directory and record file metadata.

Every file created or modified in the target directory is stat'ed by a pool
of workers and appended (path, size) to a JSON ledger on disk.

Usage:
    file-ledger --config configuration.yaml
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.config import DEFAULT_CONFIG_PATH, load_settings
from app.utils.errors import ConfigLoadError, WatchError
from app.utils.logging_setup import configure_logging
from domains.file_ledger.service import IngestionPipeline


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Watch a directory and record file metadata in a JSON ledger.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the configuration file (default: {DEFAULT_CONFIG_PATH}).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    configure_logging()

    try:
        settings = load_settings(args.config)
    except ConfigLoadError as e:
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level)
    logger.info("File Ledger")
    logger.info(f"Ledger: {settings.storage_location}")
    logger.info(f"Workers: {settings.concurrency_level}")

    pipeline = IngestionPipeline(settings)
    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        pipeline.start()
    except WatchError as e:
        logger.error(str(e))
        return 1

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    finally:
        pipeline.stop()

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
