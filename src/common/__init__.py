"""
Game Manager Common Utilities

Exceptions, logging and decorators shared by every package.
"""

from .exceptions import (
    GameManagerError, NetworkError, IndexFetchError, DownloadError,
    ParseError, IndexParseError, ArchiveError, FilesystemError,
    SubprocessError, InterpreterNotFoundError, InterpreterCheckError,
    LaunchError, NotFoundError, GameNotFoundError, GameNotInstalledError,
    ConfigError, InvalidConfigError, MissingConfigError,
)
from .decorators import best_effort, call_with_retry, timed
from .logging_config import setup_logging, JSONFormatter, LogContext

__all__ = [
    # Exceptions
    "GameManagerError", "NetworkError", "IndexFetchError", "DownloadError",
    "ParseError", "IndexParseError", "ArchiveError", "FilesystemError",
    "SubprocessError", "InterpreterNotFoundError", "InterpreterCheckError",
    "LaunchError", "NotFoundError", "GameNotFoundError", "GameNotInstalledError",
    "ConfigError", "InvalidConfigError", "MissingConfigError",
    # Decorators
    "best_effort", "call_with_retry", "timed",
    # Logging
    "setup_logging", "JSONFormatter", "LogContext",
]
