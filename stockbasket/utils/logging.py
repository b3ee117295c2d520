"""Logging configuration for StockBasket.

The engine logs through the standard library. Plan summaries go out at INFO,
missing prices at WARNING and invariant violations at ERROR. Context fields
are rendered as ``key=value`` pairs after a ``|`` so plan logs stay greppable:

    Buy plan calculated | cash=10000 orders=2 spent=8000 leftover=2000
"""

import logging
import sys
from datetime import date
from decimal import Decimal
from typing import Any, Optional, TextIO

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the root logger.

    Unknown level names fall back to INFO. Any handlers installed earlier are
    replaced, so the CLI can call this once per invocation.

    Args:
        level: Logging level name, case-insensitive
        log_format: Format string (default: time, logger, level, message)
        stream: Destination stream (default: stdout)

    Example:
        >>> from stockbasket.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG")
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format or DEFAULT_FORMAT,
        stream=stream or sys.stdout,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, usually ``get_logger(__name__)``."""
    return logging.getLogger(name)


def _format_value(value: Any) -> str:
    # (exchange, symbol) keys read better as EXCHANGE:SYMBOL
    if isinstance(value, tuple) and len(value) == 2 and all(isinstance(v, str) for v in value):
        return f"{value[0]}:{value[1]}"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log ``message`` followed by ``key=value`` context fields.

    Nothing is formatted when the level is disabled for ``logger``.

    Args:
        logger: Logger instance
        level: Level name (debug, info, warning, error, critical)
        message: Log message
        **context: Context fields, rendered in the order given

    Example:
        >>> log_with_context(
        ...     logger, "warning", "Price missing",
        ...     exchange="NSE", symbol="TCS"
        ... )
        # Logs: "Price missing | exchange=NSE symbol=TCS"
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if not logger.isEnabledFor(numeric_level):
        return

    if context:
        fields = " ".join(f"{key}={_format_value(value)}" for key, value in context.items())
        message = f"{message} | {fields}"

    logger.log(numeric_level, message)
