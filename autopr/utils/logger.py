"""Logging utilities for autopr."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


class AutoPRLogger:
    """Logger wrapper with rich console output and a debug log file."""

    _handlers_setup = False

    def __init__(self, name: str = "autopr", level: str = "INFO"):
        """Initialize logger with rich formatting.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        # Handlers live on the root "autopr" logger only
        if not AutoPRLogger._handlers_setup:
            root_logger = logging.getLogger("autopr")
            if not root_logger.handlers:
                self._setup_handlers(root_logger)
            AutoPRLogger._handlers_setup = True

        if name != "autopr" and not self.logger.handlers:
            self.logger.propagate = True

    def _setup_handlers(self, logger: logging.Logger) -> None:
        """Setup console and file handlers."""
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(logging.INFO)
        logger.addHandler(console_handler)

        log_dir = Path.home() / ".autopr" / "logs"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / "autopr.log")
        except OSError:
            # Read-only home directories still get console logging
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)


logger = AutoPRLogger()


def get_logger(name: Optional[str] = None, level: str = "INFO") -> AutoPRLogger:
    """Get logger instance.

    Args:
        name: Logger name (defaults to 'autopr')
        level: Log level

    Returns:
        Logger instance
    """
    if name is None:
        return logger
    return AutoPRLogger(name, level)


def enable_verbose_logging() -> None:
    """Switch the autopr loggers and the console handler to DEBUG."""
    root_logger = logging.getLogger("autopr")
    root_logger.setLevel(logging.DEBUG)

    for name, child_logger in logging.Logger.manager.loggerDict.items():
        if isinstance(child_logger, logging.Logger) and name.startswith("autopr"):
            child_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(logging.DEBUG)
