from __future__ import annotations

import logging

from conflictmeter.core.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Transport libraries log every feed and estimator request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    transport_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
