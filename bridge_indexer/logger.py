"""
Bridge Indexer Logging
======================

Every module logs through ``get_logger(__name__)``. The first call sets up the
root logger once for the whole process: a ``rich`` console handler (or a plain
stream handler when highlighting is off) and, if enabled in ``.env``, a
rotating log file. Chain data reaches log lines verbatim, so every record is
stripped of terminal control sequences before it is emitted.

Usage:
    >>> from bridge_indexer.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Indexed l1 block 12 0x...")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
    LOG_FILE_PATH,
)

# Driver loggers that flood DEBUG output with per-statement lines
QUIET_LIBRARIES = ("asyncpg", "aiosqlite")

INDEXER_THEME = Theme(
    {
        "indexer.address":   "cyan",
        "indexer.hash":      "bold cyan",
        "indexer.scope":     "bold magenta",
        "indexer.logger":    "magenta",
        "indexer.timestamp": "dim cyan",
        "indexer.debug":     "bold dim",
        "indexer.info":      "bold green",
        "indexer.warning":   "bold yellow",
        "indexer.error":     "bold red",
        "indexer.critical":  "bold red reverse",
    }
)


def _numeric_level(level: Optional[str]) -> int:
    return getattr(logging, str(level or "INFO").upper(), logging.INFO)


def _warn_stderr(message: str) -> None:
    # logging is not usable yet when the formats themselves are broken
    stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime())
    print(f"{stamp} UTC - bridge_indexer.logger - {message}", file=sys.stderr)


class LogManager:
    """
    Process-wide logging setup, created once and shared.

    ``configure`` is idempotent: only the first call installs handlers, later
    level changes go through ``set_level``.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    @staticmethod
    def checked_formats(log_format: str, date_format: str) -> Tuple[str, str]:
        """
        Return ``(log_format, date_format)``, replacing either one with its
        default when it cannot format a probe record.
        """
        fmt = str(log_format or "") or str(LOG_FORMAT.default())
        datefmt = str(date_format or "") or str(LOG_DATE_FORMAT.default())

        probe = logging.LogRecord("probe", logging.INFO, __file__, 0, "probe", (), None)
        try:
            logging.Formatter(fmt=fmt, validate=True).format(probe)
        except (ValueError, KeyError, TypeError) as e:
            _warn_stderr(f"Invalid LOG_FORMAT {fmt!r} ({e}), using default")
            fmt = str(LOG_FORMAT.default())

        if "%" not in datefmt or time.strftime(datefmt) == datefmt:
            _warn_stderr(f"Invalid LOG_DATE_FORMAT {datefmt!r}, using default")
            datefmt = str(LOG_DATE_FORMAT.default())

        return fmt, datefmt

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install the root handlers.

        Args:
            log_level: Level name; falls back to ``LOG_LEVEL`` from ``.env``.
            log_file: Rotating log file; falls back to ``LOG_FILE_PATH``.
            console_output: Attach the console handler.
            file_output: Attach the file handler; falls back to ``LOG_FILE_OUTPUT``.
        """
        with self._lock:
            if self._configured:
                return

            level = _numeric_level(log_level or LOG_LEVEL)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            for name in QUIET_LIBRARIES:
                logging.getLogger(name).setLevel(logging.WARNING)

            fmt, datefmt = self.checked_formats(LOG_FORMAT, LOG_DATE_FORMAT)
            formatter = TerminalSafeFormatter(fmt=fmt, datefmt=datefmt + " UTC")
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if LOG_FILE_OUTPUT if file_output is None else file_output:
                handlers.append(self._file_handler(Path(log_file or str(LOG_FILE_PATH))))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stdout)
        # level, time and path are already part of the formatted line
        return RichHandler(
            console=Console(theme=INDEXER_THEME, highlight=False),
            highlighter=IndexerLogHighlighter(),
            keywords=[],
            markup=False,
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
            show_time=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    def set_level(self, log_level: str) -> None:
        """Change the level of the root logger and every installed handler."""
        level = _numeric_level(log_level)
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that drops ANSI escape sequences and control characters.

    Token names and symbols come from arbitrary contracts and are logged as-is.
    """

    # CSI sequences, two-byte ESC sequences, then C0 controls except \t and \n, and DEL
    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
        r"|[\x00-\x08\x0B-\x1F\x7F]"
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._unsafe_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class IndexerLogHighlighter(RegexHighlighter):
    """Colours hashes, addresses, chain scopes and level names."""

    base_style = "indexer."
    highlights = [
        r"(?P<hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<scope>\bl[12]\b)",
        r"(?P<debug>\bDEBUG\b)",
        r"(?P<info>\bINFO\b)",
        r"(?P<warning>\bWARNING\b)",
        r"(?P<error>\bERROR\b)",
        r"(?P<critical>\bCRITICAL\b)",
        r"\s-\s(?P<logger>bridge_indexer[\w.]*)\s-\s",
        r"(?P<timestamp>^\S+ UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Apply a level chosen at runtime, e.g. from ``[indexer] log_level``."""
    if _manager.is_configured:
        _manager.set_level(log_level)
    else:
        _manager.configure(log_level=log_level)
