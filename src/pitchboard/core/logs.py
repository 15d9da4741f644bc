from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"pitchboard.{component}")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    # urllib3 connection chatter drowns out formation events at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
