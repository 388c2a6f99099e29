"""Application entry point."""
from __future__ import annotations

import logging

from apphook.cli import app as cli
from apphook.config import load_settings

LOG_FILE = "apphook.log"


def configure_logging() -> None:
    log_dir = load_settings().log_dir
    handlers: list = [logging.StreamHandler()]
    file_error = None
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8"))
    except OSError as exc:
        file_error = exc
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    if file_error is not None:
        logging.getLogger(__name__).warning("Logging to console only: %s", file_error)


def main() -> None:
    configure_logging()
    cli()


if __name__ == "__main__":
    main()
