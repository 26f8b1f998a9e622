"""
Unified logging configuration for the stereo processing pipeline.

This module provides a centralized logging configuration that can be inherited
by all other modules in the project, ensuring consistent logging behavior.
It also provides rate-limited warnings for diagnostics that would otherwise
repeat on every synchronized frame.
"""

import logging
import sys
import time
from typing import Optional, Dict, Hashable, Callable
from pathlib import Path


class LoggerConfig:
    """Centralized logger configuration manager."""

    _configured = False
    _root_logger_name = 'stereo_proc'

    @classmethod
    def setup_root_logger(
        cls,
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        log_file: Optional[Path] = None
    ) -> logging.Logger:
        """
        Setup the root logger for the entire application.

        Args:
            level: Logging level (default: INFO)
            format_string: Custom format string (optional)
            log_file: Optional file path for logging to file

        Returns:
            logging.Logger: Configured root logger
        """
        if cls._configured:
            return logging.getLogger(cls._root_logger_name)

        root_logger = logging.getLogger(cls._root_logger_name)
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if format_string is None:
            format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        formatter = logging.Formatter(format_string)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if log_file is not None:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        # Prevent propagation to avoid duplicate messages
        root_logger.propagate = False

        cls._configured = True

        root_logger.debug(f"Root logger configured: level={logging.getLevelName(level)}")
        if log_file:
            root_logger.info(f"Logging to file: {log_file}")

        return root_logger

    @classmethod
    def reconfigure(
        cls,
        level: int = logging.INFO,
        log_file: Optional[Path] = None
    ) -> logging.Logger:
        """
        Drop the current handlers and configure the root logger again.

        Used by the entry point once the configuration file has been read.
        """
        cls._configured = False
        return cls.setup_root_logger(level=level, log_file=log_file)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger that inherits from the root logger configuration.

        Args:
            name: Logger name (typically __name__ from calling module)

        Returns:
            logging.Logger: Configured logger
        """
        if not cls._configured:
            cls.setup_root_logger()

        full_name = f"{cls._root_logger_name}.{name}"
        logger = logging.getLogger(full_name)
        logger.propagate = True

        return logger

    @classmethod
    def is_configured(cls) -> bool:
        """Check if the root logger has been configured."""
        return cls._configured


class ThrottledLogger:
    """
    Emits a message at most once per period for each key.

    Keys are arbitrary hashables, so one instance can throttle several
    independent diagnostics (one per topic, one per encoding, ...).
    """

    def __init__(
        self,
        logger: logging.Logger,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            logger: Logger that receives the throttled records
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.logger = logger
        self._clock = clock
        self._last_emitted: Dict[Hashable, float] = {}

    def log(self, level: int, key: Hashable, period: float, message: str) -> bool:
        """
        Log message unless the same key was logged less than period seconds ago.

        Returns:
            bool: True if the record was emitted
        """
        now = self._clock()
        last = self._last_emitted.get(key)
        if last is not None and now - last < period:
            return False

        self._last_emitted[key] = now
        self.logger.log(level, message)
        return True

    def warning(self, key: Hashable, period: float, message: str) -> bool:
        return self.log(logging.WARNING, key, period, message)

    def reset(self) -> None:
        self._last_emitted.clear()


def get_logger(name: str = None) -> logging.Logger:
    """
    Convenience function to get a properly configured logger.

    Args:
        name: Logger name (if None, uses calling module's __name__)

    Returns:
        logging.Logger: Configured logger
    """
    if name is None:
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return LoggerConfig.get_logger(name)


def initialize_default_logger():
    """Initialize the default logger configuration."""
    if not LoggerConfig.is_configured():
        LoggerConfig.setup_root_logger()


# Auto-initialize when imported
initialize_default_logger()
