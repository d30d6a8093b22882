"""
Rich-based logger with store and transaction context support.

Provides context-aware logging: messages emitted inside a transaction are
prefixed with the store name and the transaction id.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from persista.core.config.settings import settings


class CompactFormatter(logging.Formatter):
    """Custom formatter that shortens long module names for better readability."""

    def format(self, record):
        if record.name.startswith("persista."):
            # persista.database.adapters.postgresql_adapter -> adapters.postgresql_adapter
            parts = record.name.split(".")
            if len(parts) > 2:
                record.name = ".".join(parts[-2:])

        return super().format(record)


_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)
_console = Console(theme=_theme)


class ContextLogger:
    """
    Logger wrapper that adds store and transaction context to messages.

    Context is added as a message prefix instead of modifying the format
    string, so any handler configuration keeps working.
    """

    def __init__(
        self,
        logger: logging.Logger,
        store: str | None = None,
        transaction_id: str | None = None,
    ):
        self.logger = logger
        self.store = store or "---"
        self.transaction_id = transaction_id or "---"

    def _format_message(self, message: str) -> str:
        """Add context prefix to message."""
        from .context import (
            get_current_store_context,
            get_current_transaction_context,
        )

        current_store = get_current_store_context() or self.store
        current_tx = get_current_transaction_context() or self.transaction_id

        if current_store and current_store != "---":
            if current_tx and current_tx != "---":
                return f"[S:{current_store}][TX:{current_tx}] {message}"
            return f"[S:{current_store}] {message}"
        elif current_tx and current_tx != "---":
            return f"[TX:{current_tx}] {message}"
        return message

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(self._format_message(message), *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(self._format_message(message), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(self._format_message(message), *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(self._format_message(message), *args, **kwargs)

    def exception(self, message: str, *args, **kwargs) -> None:
        self.logger.exception(self._format_message(message), *args, **kwargs)

    def bind(self, **kwargs) -> ContextLogger:
        """
        Create a new ContextLogger with additional or updated context.

        Returns a new logger instance rather than modifying the current one.

        Args:
            **kwargs: ``store`` and/or ``transaction_id``

        Example:
            pg_logger = logger.bind(store="postgresql")
        """
        return ContextLogger(
            self.logger,
            store=kwargs.get("store", self.store),
            transaction_id=kwargs.get("transaction_id", self.transaction_id),
        )


def setup_logging(
    *,
    level: str = "INFO",
    mode: str = "PROD",
    log_dir: str | None = None,
    console_fmt: str | None = None,
    file_fmt: str | None = None,
) -> None:
    """
    Initialize the root logger with Rich formatting.

    Parameters
    ----------
    level : str
        Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
    mode : str
        "DEV" creates daily log files + console; anything else → console only
    log_dir : str, optional
        Directory for log files (DEV mode only)
    console_fmt : str, optional
        Console format string
    file_fmt : str, optional
        File format string
    """
    lvl = level.upper()
    lvl = lvl if lvl in ("DEBUG", "INFO", "WARNING", "ERROR") else "INFO"

    # RichHandler already shows level and time
    console_format = console_fmt or "[%(name)s] %(message)s"
    file_format = file_fmt or "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    rich_handler = RichHandler(
        console=_console,
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
        markup=False,
    )
    rich_handler.setFormatter(CompactFormatter(console_format))

    handlers: list[logging.Handler] = [rich_handler]

    if mode.upper() == "DEV" and log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, f"persista_{datetime.now():%Y%m%d}.log")
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(CompactFormatter(file_format))
        handlers.append(file_handler)
        _console.print(f"[green]DEV mode:[/] console + file → {logfile}")

    logging.basicConfig(level=lvl, handlers=handlers, force=True)

    logging.getLogger("persista.logging").info(f"Logging initialized ({lvl})")


def setup_app_logging() -> None:
    """Initialize logging from the environment settings."""
    setup_logging(
        level=settings.log_level,
        mode="DEV" if settings.is_development else "PROD",
        log_dir=settings.log_dir if settings.is_development else None,
    )


def get_logger(name: str) -> ContextLogger:
    """
    Get a logger that automatically uses the store/transaction context.

    Args:
        name: Logger name (usually __name__)

    Returns:
        ContextLogger instance with automatic context from context variables
    """
    from .context import get_current_store_context, get_current_transaction_context

    return ContextLogger(
        logging.getLogger(name),
        store=get_current_store_context(),
        transaction_id=get_current_transaction_context(),
    )
