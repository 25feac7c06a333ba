"""Logging setup for ETF Planner.

All modules log through ``get_logger(__name__)``; the CLI calls
``setup_logging`` once with the configured level. Price lookups go through
yfinance, whose HTTP stack logs every request, so those loggers are held at
WARNING unless the planner itself runs at DEBUG.
"""

import logging
import sys
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that flood INFO output during price lookups
NOISY_LOGGERS = ("yfinance", "urllib3", "peewee")


def setup_logging(level: str = "INFO", log_format: str | None = None) -> None:
    """Configure the root logger to write to stdout.

    Args:
        level: Level name, case-insensitive; unknown names fall back to INFO
        log_format: Format string, defaults to DEFAULT_FORMAT

    Example:
        >>> setup_logging(level="DEBUG")
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _format_value(value: Any) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value) or "-"
    return str(value)


def log_with_context(logger: logging.Logger, level: str, message: str, **context: Any) -> None:
    """Log ``message | key=value ...``.

    Floats are shown with two decimals (budgets, costs, leftovers), None as
    ``n/a`` and lists as comma-separated ids.

    Example:
        >>> log_with_context(logger, "info", "Plan computed",
        ...                  investments=2, total_cost=1000.0, excluded=["C"])
        # Plan computed | investments=2 total_cost=1000.00 excluded=C
    """
    if context:
        fields = " ".join(f"{k}={_format_value(v)}" for k, v in context.items())
        message = f"{message} | {fields}"
    logger.log(getattr(logging, level.upper(), logging.INFO), message)
