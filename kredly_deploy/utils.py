"""Console logging for deployment scripts."""

import logging
import os
from pathlib import Path

import coloredlogs


def setup_console_logging(
    default_log_level="info",
    log_file: Path | None = None,
    clear_log_file=True,
) -> logging.Logger:
    """Set up coloured log output.

    - Log level is read from ``LOG_LEVEL`` environment variable
    - Tune down some noisy dependency library logging

    :param log_file:
        Also write the log to this file.

        The file always gets at least ``INFO`` level.

    :return:
        Root logger
    """

    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert isinstance(numeric_level, int), f"Unknown log level: {level}"

    fmt = "%(asctime)s %(name)-36s %(message)s"
    date_fmt = "%H:%M:%S"

    coloredlogs.install(level=numeric_level, fmt=fmt, datefmt=date_fmt)

    if log_file:
        assert isinstance(log_file, Path), f"log_file must be Path, got {type(log_file)}"
        log_file.parent.mkdir(parents=True, exist_ok=True)

        min_level = min(logging.INFO, numeric_level)
        file_handler = logging.FileHandler(log_file, mode="w" if clear_log_file else "a", encoding="utf-8")
        file_handler.setLevel(min_level)
        file_handler.setFormatter(logging.Formatter(fmt, date_fmt))

        root = logging.getLogger()
        root.setLevel(min_level)
        root.addHandler(file_handler)

    # Mute noise
    logging.getLogger("web3.providers.HTTPProvider").setLevel(logging.WARNING)
    logging.getLogger("web3.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("web3.manager.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    return logging.getLogger()
