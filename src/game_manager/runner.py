"""
Game Runner - Launch installed games through the interpreter.

Launching is fire-and-forget: the interpreter is started in its own
session and the runner returns immediately. Only spawn failures are
reported; how the game itself behaves afterwards is not observed.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Callable, List

from common.exceptions import (
    GameNotInstalledError, InterpreterNotFoundError, LaunchError,
)

from .game_catalog import Game
from .layout import GamesLayout

logger = logging.getLogger(__name__)


class GameRunner:
    """Starts the interpreter against an installed game.

    Args:
        layout: Where games are installed
        resolve_command: Returns the interpreter command to use, or ""
            when none is configured or detected
    """

    def __init__(self, layout: GamesLayout, resolve_command: Callable[[], str]):
        self.layout = layout
        self._resolve_command = resolve_command
        self._launched: List[subprocess.Popen] = []

    def reap(self) -> int:
        """
        Collect the exit status of launched games that have finished.

        Returns:
            Number of games still running.
        """
        self._launched = [p for p in self._launched if p.poll() is None]
        return len(self._launched)

    def build_command(self, game: Game) -> List[str]:
        """
        Return the argv that launches ``game``.

        Raises:
            GameNotInstalledError: If the game directory does not exist
            InterpreterNotFoundError: If there is no interpreter to use
        """
        game_dir = self.layout.game_dir(game)
        if not game_dir.is_dir():
            raise GameNotInstalledError(game.name)

        command = self._resolve_command()
        if not command:
            raise InterpreterNotFoundError()

        return [command, str(game_dir)]

    def run(self, game: Game) -> subprocess.Popen:
        """
        Launch a game without waiting for it to exit.

        Games that exited since the previous launch are reaped first, so a
        long-lived front end does not accumulate zombie processes. The
        runner keeps a reference to the returned process; callers may
        wait on it but do not have to.

        Returns:
            The interpreter process.

        Raises:
            GameNotInstalledError: If the game is not installed
            InterpreterNotFoundError: If there is no interpreter to use
            LaunchError: If the interpreter cannot be spawned
        """
        cmd = self.build_command(game)
        self.reap()

        kwargs = {}
        if sys.platform.startswith("win"):
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        else:
            kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(
                cmd,
                cwd=cmd[1],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,
            )
        except (FileNotFoundError, PermissionError, OSError) as e:
            logger.error(f"Cannot launch {game.name}: {e}")
            raise LaunchError(cmd[0], str(e), cause=e)

        self._launched.append(process)
        logger.info(f"Launched {game.name} (pid {process.pid})")
        return process
