"""
Game Manager - Ties sync, catalog, installer, finder and runner together.

The manager owns the published :class:`Catalog`. A sync builds a complete
new catalog and swaps the reference in one step; readers holding the old
snapshot keep a consistent view.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Optional, List

from .config import ManagerConfig
from .game_catalog import Catalog, Game, SortOrder
from .installer import GameInstaller, ProgressCallback
from .interpreter_finder import InterpreterCandidate, InterpreterFinder
from .layout import GamesLayout
from .repository_sync import RepositorySynchronizer, SyncError, SyncResult
from .runner import GameRunner

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


class GameManager:
    """
    Main entry point of the engine.

    None of the operations start threads. ``update_repositories`` and
    ``install_game`` block on the network and are meant to be called from
    a worker thread by interactive front ends.
    """

    def __init__(
        self,
        config: ManagerConfig,
        layout: Optional[GamesLayout] = None,
        synchronizer: Optional[RepositorySynchronizer] = None,
        installer: Optional[GameInstaller] = None,
        finder: Optional[InterpreterFinder] = None,
        runner: Optional[GameRunner] = None,
    ):
        self.config = config
        self.layout = layout or GamesLayout(config.data_path)
        self.finder = finder or InterpreterFinder()
        self.synchronizer = synchronizer or RepositorySynchronizer(
            self.layout,
            timeout=config.sync_timeout,
            attempts=config.sync_attempts,
        )
        self.installer = installer or GameInstaller(
            self.layout,
            session=self.synchronizer.session,
            timeout=config.sync_timeout,
        )
        self.runner = runner or GameRunner(self.layout, self.launch_command)

        self._catalog = Catalog()
        self._catalog_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> Catalog:
        """The last published snapshot."""
        with self._catalog_lock:
            return self._catalog

    @property
    def repositories(self):
        return list(self.config.repositories)

    def _publish(self, result: SyncResult) -> bool:
        if self.config.repositories and not result.synced:
            logger.warning("No repository could be synced, keeping the current catalog")
            return False

        result.catalog.refresh_installed(self.layout)
        with self._catalog_lock:
            self._catalog = result.catalog
        logger.info(f"Catalog published: {len(result.catalog)} games")
        return True

    def update_repositories(self) -> List[SyncError]:
        """
        Sync every configured repository and publish the merged catalog.

        Returns:
            One SyncError per repository that failed.
        """
        result = self.synchronizer.sync_all(self.config.repositories)
        self._publish(result)
        return result.errors

    def load_cached_repositories(self) -> List[SyncError]:
        """Publish a catalog built from previously synced indexes."""
        result = self.synchronizer.load_cached(self.config.repositories)
        self._publish(result)
        return result.errors

    def has_any_synced_data(self) -> bool:
        """Whether listing can proceed without an initial sync."""
        if not self.catalog.is_empty():
            return True
        return self.synchronizer.has_cached_data(self.config.repositories)

    def ensure_catalog(self) -> List[SyncError]:
        """Load the cached catalog, syncing first if nothing was ever synced."""
        if not self.catalog.is_empty():
            return []
        if self.synchronizer.has_cached_data(self.config.repositories):
            return self.load_cached_repositories()
        return self.update_repositories()

    def get_sorted_games(self, order: SortOrder = SortOrder.PUBLISHED_DESC) -> List[Game]:
        return self.catalog.sorted(order)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install_game(self, game: Game, on_progress: Optional[ProgressCallback] = None) -> Path:
        return self.installer.install(game, on_progress)

    def remove_game(self, game: Game) -> None:
        self.installer.remove(game)

    def run_game(self, game: Game) -> subprocess.Popen:
        return self.runner.run(game)

    def get_game_image(self, game: Game) -> Optional[Path]:
        """Return the game's icon, downloading it if needed."""
        cached = self.layout.find_icon(game)
        if cached is not None:
            return cached
        return self.installer.fetch_icon(game)

    # ------------------------------------------------------------------
    # Interpreter
    # ------------------------------------------------------------------

    def interpreter_command(self) -> str:
        """Configured interpreter, else the built-in one, else ""."""
        if self.config.interpreter_command:
            return self.finder.expand_command(self.config.interpreter_command)
        return self.finder.find_builtin()

    def is_builtin_interpreter_command(self) -> bool:
        return self.finder.is_builtin(self.interpreter_command())

    def find_interpreter(self) -> Optional[str]:
        return self.finder.find()

    def check_interpreter(self, command: Optional[str] = None) -> InterpreterCandidate:
        """
        Verify an interpreter (the current one by default).

        Raises:
            InterpreterCheckError: If the check fails.
        """
        command = command if command is not None else self.interpreter_command()
        version = self.finder.check(command)
        return InterpreterCandidate(command_path=command, verified_version=version)

    def launch_command(self) -> str:
        return self.interpreter_command() or self.finder.find() or ""
