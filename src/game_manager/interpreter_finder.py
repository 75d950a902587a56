"""
Interpreter Finder - Locate and verify the INSTEAD interpreter.

Detection only checks that a candidate file exists. Whether that file is a
working interpreter is established separately by :meth:`InterpreterFinder.check`,
which runs it with ``-version``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List

from common.exceptions import InterpreterCheckError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Name of the interpreter binary looked up on PATH.
BINARY_NAME = "sdl-instead"

#: Flag making the interpreter print its version and exit.
VERSION_FLAG = "-version"

#: Seconds to wait for ``-version``.
CHECK_TIMEOUT = 10

#: Interpreter shipped with the application, relative to its directory.
_BUILTIN_RELATIVE_PATHS = {
    "win32": Path("instead") / "sdl-instead.exe",
    "darwin": Path("instead") / "sdl-instead",
    "linux": Path("instead") / "sdl-instead",
}

#: Well-known install locations per platform, in probing order.
_COMMON_PATHS = {
    "win32": [
        Path("C:/Program Files/INSTEAD/sdl-instead.exe"),
        Path("C:/Program Files (x86)/INSTEAD/sdl-instead.exe"),
    ],
    "darwin": [
        Path("/Applications/Instead.app/Contents/MacOS/sdl-instead"),
        Path.home() / "Applications/Instead.app/Contents/MacOS/sdl-instead",
        Path("/usr/local/bin/sdl-instead"),
        Path("/opt/homebrew/bin/sdl-instead"),
    ],
    "linux": [
        Path("/usr/local/bin/sdl-instead"),
        Path("/usr/bin/sdl-instead"),
        Path("/usr/games/sdl-instead"),
        Path("/usr/local/games/sdl-instead"),
        Path("/opt/instead/bin/sdl-instead"),
    ],
}


def _platform_key(platform: str) -> str:
    if platform.startswith("win"):
        return "win32"
    if platform == "darwin":
        return "darwin"
    return "linux"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class InterpreterCandidate:
    """A located interpreter.

    Attributes:
        command_path: Path or command of the interpreter.
        verified_version: Version reported by ``-version``, or None when
            the candidate was not checked or failed the check.
    """
    command_path: str
    verified_version: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.verified_version is not None


# ---------------------------------------------------------------------------
# InterpreterFinder
# ---------------------------------------------------------------------------

class InterpreterFinder:
    """Find the interpreter on this host.

    Example::

        finder = InterpreterFinder(app_dir)
        path = finder.find()
        if path:
            version = finder.check(path)
    """

    def __init__(
        self,
        app_dir: Optional[Path] = None,
        platform: Optional[str] = None,
        common_paths: Optional[List[Path]] = None,
    ) -> None:
        """Initialise the finder.

        Args:
            app_dir: Directory of the application, where a built-in
                interpreter would be bundled. Defaults to the directory
                of the running executable.
            platform: ``sys.platform`` override.
            common_paths: Override the well-known install locations.
        """
        self._platform = _platform_key(platform or sys.platform)
        self._app_dir = Path(app_dir) if app_dir else Path(sys.argv[0] or ".").resolve().parent
        if common_paths is None:
            common_paths = _COMMON_PATHS[self._platform]
        self._common_paths = list(common_paths)

    @property
    def app_dir(self) -> Path:
        return self._app_dir

    # ------------------------------------------------------------------
    # Built-in interpreter
    # ------------------------------------------------------------------

    def builtin_path(self) -> Path:
        return self._app_dir / _BUILTIN_RELATIVE_PATHS[self._platform]

    def has_builtin(self) -> bool:
        """Whether an interpreter is bundled with the application."""
        return self.builtin_path().is_file()

    def find_builtin(self) -> str:
        """Return the bundled interpreter path, or "" when there is none."""
        if self.has_builtin():
            return str(self.builtin_path())
        return ""

    def is_builtin(self, command: str) -> bool:
        """Whether ``command`` designates the bundled interpreter."""
        if not command:
            return False
        try:
            return Path(self.expand_command(command)).resolve() == self.builtin_path().resolve()
        except OSError:
            return False

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def candidate_paths(self) -> List[Path]:
        """All locations probed by :meth:`find`, earliest wins."""
        candidates = [self.builtin_path()]
        candidates.extend(self._common_paths)

        on_path = shutil.which(BINARY_NAME)
        if on_path:
            candidates.append(Path(on_path))

        return candidates

    def find(self) -> Optional[str]:
        """
        Return the first candidate path that exists.

        No permission or version check is made here; see :meth:`check`.

        Returns:
            The path, or None if no candidate exists.
        """
        for path in self.candidate_paths():
            if path.is_file():
                logger.info(f"Interpreter found: {path}")
                return str(path)

        logger.info("No interpreter found")
        return None

    def expand_command(self, command: str) -> str:
        """
        Expand ``~``, environment variables and paths relative to the
        application directory.
        """
        expanded = os.path.expandvars(os.path.expanduser(command.strip()))
        if expanded.startswith("./") or expanded.startswith(".\\"):
            return str(self._app_dir / expanded[2:])
        return expanded

    def check(self, command: str) -> str:
        """
        Run ``<command> -version`` and return the reported version.

        Raises:
            InterpreterCheckError: If the command cannot be spawned, times
                out, exits non-zero or prints nothing. ``builtin`` on the
                error tells whether the bundled interpreter was checked.
        """
        builtin = self.is_builtin(command)
        expanded = self.expand_command(command) if command else ""
        if not expanded:
            raise InterpreterCheckError(command, "no command given", builtin=builtin)

        try:
            result = subprocess.run(
                [expanded, VERSION_FLAG],
                capture_output=True,
                text=True,
                timeout=CHECK_TIMEOUT,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError, OSError) as e:
            logger.warning(f"Interpreter check failed for {expanded}: {e}")
            raise InterpreterCheckError(command, str(e), builtin=builtin, cause=e)

        if result.returncode != 0:
            reason = f"exit status {result.returncode}"
            if result.stderr:
                reason += f": {result.stderr.strip()}"
            raise InterpreterCheckError(command, reason, builtin=builtin)

        version = (result.stdout or "").replace("\r", "").replace("\n", "").strip()
        if not version:
            raise InterpreterCheckError(command, "no version reported", builtin=builtin)

        logger.info(f"Interpreter {expanded} reports version {version}")
        return version

    def detect(self, verify: bool = True) -> Optional[InterpreterCandidate]:
        """
        Find an interpreter and optionally check it.

        A candidate that fails the check is still returned, with no
        verified version, so the caller can tell "nothing found" from
        "found but broken".
        """
        path = self.find()
        if path is None:
            return None

        candidate = InterpreterCandidate(command_path=path)
        if verify:
            try:
                candidate.verified_version = self.check(path)
            except InterpreterCheckError as e:
                logger.warning(e.message)
        return candidate
