"""
Game Manager Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any


class GameManagerError(Exception):
    """
    Base exception for all game manager errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Network errors
# =============================================================================

class NetworkError(GameManagerError):
    """Base for network-related errors."""
    pass


class IndexFetchError(NetworkError):
    """Repository index could not be fetched."""
    def __init__(self, repository: str, url: str, reason: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to fetch repository '{repository}': {reason}",
            code="INDEX_FETCH_FAILED",
            details={"repository": repository, "url": url, "reason": reason},
            cause=cause,
        )


class DownloadError(NetworkError):
    """Download failed."""
    def __init__(self, url: str, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to download: {reason}",
            code="DOWNLOAD_FAILED",
            details={"url": url, "reason": reason},
            cause=cause,
        )


# =============================================================================
# Parse errors
# =============================================================================

class ParseError(GameManagerError):
    """Base for malformed documents and records."""
    pass


class IndexParseError(ParseError):
    """Repository index document is malformed."""
    def __init__(self, repository: str, reason: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Malformed index for repository '{repository}': {reason}",
            code="INDEX_MALFORMED",
            details={"repository": repository, "reason": reason},
            cause=cause,
        )


class ArchiveError(ParseError):
    """Downloaded archive is corrupt or unsupported."""
    def __init__(self, archive: str, reason: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Cannot extract {archive}: {reason}",
            code="ARCHIVE_INVALID",
            details={"archive": archive, "reason": reason},
            cause=cause,
        )


# =============================================================================
# Filesystem errors
# =============================================================================

class FilesystemError(GameManagerError):
    """Filesystem operation failed (permission denied, disk full, ...)."""
    def __init__(self, path: str, operation: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Cannot {operation} {path}",
            code="FILESYSTEM_ERROR",
            details={"path": path, "operation": operation},
            cause=cause,
        )


# =============================================================================
# Subprocess errors
# =============================================================================

class SubprocessError(GameManagerError):
    """Base for interpreter process errors."""
    pass


class InterpreterNotFoundError(SubprocessError):
    """No interpreter configured or detected."""
    def __init__(self):
        super().__init__(
            "Interpreter not found. Set interpreter_command in the config "
            "or run 'game-manager find-interpreter'",
            code="INTERPRETER_NOT_FOUND",
            recoverable=False,
        )


class InterpreterCheckError(SubprocessError):
    """Interpreter exists (maybe) but did not report a version."""
    def __init__(self, command: str, reason: str, builtin: bool = False,
                 cause: Optional[Exception] = None):
        kind = "built-in interpreter" if builtin else "interpreter"
        super().__init__(
            f"The {kind} '{command}' failed its check: {reason}",
            code="BUILTIN_INTERPRETER_BROKEN" if builtin else "INTERPRETER_CHECK_FAILED",
            details={"command": command, "reason": reason, "builtin": builtin},
            cause=cause,
        )
        self.builtin = builtin


class LaunchError(SubprocessError):
    """Interpreter process could not be spawned."""
    def __init__(self, command: str, reason: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to launch '{command}': {reason}",
            code="LAUNCH_FAILED",
            details={"command": command, "reason": reason},
            cause=cause,
        )


# =============================================================================
# Lookup errors
# =============================================================================

class NotFoundError(GameManagerError):
    """Base for user-facing lookup failures."""
    pass


class GameNotFoundError(NotFoundError):
    """No game matches a keyword."""
    def __init__(self, keyword: str):
        super().__init__(
            f"Game '{keyword}' not found",
            code="GAME_NOT_FOUND",
            details={"keyword": keyword},
        )


class GameNotInstalledError(NotFoundError):
    """Game must be installed for the operation."""
    def __init__(self, name: str):
        super().__init__(
            f"Game '{name}' is not installed",
            code="GAME_NOT_INSTALLED",
            details={"game": name},
        )


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(GameManagerError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )


class MissingConfigError(ConfigError):
    """Required configuration missing."""
    def __init__(self, field: str):
        super().__init__(
            f"Missing required configuration: {field}",
            code="MISSING_CONFIG",
            details={"field": field},
        )
