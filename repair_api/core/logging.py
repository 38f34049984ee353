"""
Log setup for the estimate API process and the operator scripts.

Records go to stdout tagged with the logger name, so limiter, estimator and
research-tool messages can be filtered apart. Client libraries that log every
request are held at WARNING unless the service itself runs at DEBUG.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# httpx and httpcore log each research call; redis logs reconnect attempts.
CHATTY_LOGGERS = ("httpx", "httpcore", "redis", "google.auth")


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once per process."""
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
    )
    library_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


__all__ = ["CHATTY_LOGGERS", "configure_logging"]
