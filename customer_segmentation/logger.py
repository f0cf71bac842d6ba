"""
Logging for the Customer Segmentation Engine

Every module obtains its logger through ``get_logger(__name__)``. Loggers
are cached by name and do not propagate, so a run configured from a
SegmentationConfig writes each message once, to stdout and optionally to
a log file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SegmentationConfig

PACKAGE_LOGGER = 'customer_segmentation'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(log_file: str, level: int) -> logging.Handler:
    """Append-mode handler; the parent directory is created on demand."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _close_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


class SegmentationLogger:
    """
    Cache of configured loggers, keyed by logger name.

    Example:
        >>> logger = SegmentationLogger.setup_logger('customer_segmentation.kmeans')
        >>> logger.warning("Cluster 3 is empty; reseeding")
    """

    _loggers: Dict[str, logging.Logger] = {}

    @staticmethod
    def setup_logger(
        name: str = PACKAGE_LOGGER,
        level: int = logging.INFO,
        log_file: Optional[str] = None,
        verbose: bool = True
    ) -> logging.Logger:
        """
        Return the cached logger ``name``, configuring it on first use.

        Args:
            name: Logger name (typically the calling module's ``__name__``)
            level: Level applied to the logger and its handlers
            log_file: Optional file receiving timestamped lines
            verbose: If False, no console handler is attached

        Returns:
            Configured logger instance
        """
        if name in SegmentationLogger._loggers:
            return SegmentationLogger._loggers[name]

        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers = []
        logger.propagate = False

        if verbose:
            logger.addHandler(_console_handler(level))
        if log_file:
            logger.addHandler(_file_handler(log_file, level))
            logger.info(f"Logging session started: {datetime.now().isoformat()}")

        SegmentationLogger._loggers[name] = logger
        return logger

    @staticmethod
    def discard(name: str) -> None:
        """Close and forget one cached logger; the next lookup rebuilds it."""
        logger = SegmentationLogger._loggers.pop(name, None)
        if logger is not None:
            _close_handlers(logger)

    @staticmethod
    def reset_loggers() -> None:
        """Close and forget every cached logger."""
        for name in list(SegmentationLogger._loggers):
            SegmentationLogger.discard(name)

    @staticmethod
    def package_loggers() -> List[str]:
        """Cached names belonging to this package, the package logger included."""
        names = [
            name for name in SegmentationLogger._loggers
            if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + '.')
        ]
        if PACKAGE_LOGGER not in names:
            names.append(PACKAGE_LOGGER)
        return names


def get_logger(
    name: str = PACKAGE_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    verbose: bool = True
) -> logging.Logger:
    """
    Convenience wrapper around ``SegmentationLogger.setup_logger``.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Growing decision tree")
    """
    return SegmentationLogger.setup_logger(name, level, log_file, verbose)


def configure_logging_from_config(config: 'SegmentationConfig') -> logging.Logger:
    """
    Rebuild the package's loggers from a SegmentationConfig.

    Module loggers are created at import time with defaults, so each one
    already cached is discarded and set up again with the configured
    level, console setting and log file. Loggers of other packages are
    left alone.

    Returns:
        The package logger
    """
    settings = config.logging
    level = getattr(logging, settings.level.upper(), logging.INFO)

    for name in SegmentationLogger.package_loggers():
        SegmentationLogger.discard(name)
        get_logger(name=name, level=level, log_file=settings.log_file, verbose=config.verbose)

    return SegmentationLogger._loggers[PACKAGE_LOGGER]
