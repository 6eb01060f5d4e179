"""
Centralized logging configuration for the bidder.

Provides colored console output, an optional log file, and separate
loggers for each subsystem (auction, engine, pipeline, registry, chain).

Records emitted while the engine processes a block carry that block's
number: block_context() sets it, BlockContextFilter stamps it on each
record as the `block` field used by both formats.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator, Optional

import colorlog

CONSOLE_FORMAT = (
    "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(block)s%(message)s"
)
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(block)s%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_current_block: ContextVar[Optional[int]] = ContextVar("cca_bidder_block", default=None)


# =============================================================================
# Block Context
# =============================================================================


@contextmanager
def block_context(block_number: int) -> Iterator[None]:
    """Tag every record logged inside the block with its number."""
    token = _current_block.set(block_number)
    try:
        yield
    finally:
        _current_block.reset(token)


def current_block() -> Optional[int]:
    return _current_block.get()


class BlockContextFilter(logging.Filter):
    """Adds `block` ("[block N] " or "") to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        number = _current_block.get()
        record.block = f"[block {number}] " if number is not None else ""
        return True


# =============================================================================
# Setup
# =============================================================================


class BidderLogger:
    """Centralized logger for bidder components"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        force: bool = False,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to write logs to file
            force: Reconfigure even if already initialized
        """
        if cls._initialized and not force:
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger("cca_bidder")
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        block_filter = BlockContextFilter()

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.addFilter(block_filter)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(
                CONSOLE_FORMAT,
                datefmt=DATE_FORMAT,
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            )
        )
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / "cca_bidder.log")
            file_handler.setLevel(level)
            file_handler.addFilter(block_filter)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'engine', 'auction', 'pipeline')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"cca_bidder.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return BidderLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Setup logging configuration"""
    BidderLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, force=True)


__all__ = [
    "BidderLogger",
    "BlockContextFilter",
    "block_context",
    "current_block",
    "get_logger",
    "setup_logging",
]
