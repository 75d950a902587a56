"""
Local storage layout.

Everything the manager writes lives under one data directory::

    <data_path>/
        games/<dir_name>/          installed games
        games/.<dir_name>.*/       staging dirs of installs in progress
        images/<dir_name>.<ext>    cached game icons
        repositories/<repo>.xml    cached repository indexes
"""

from __future__ import annotations

from pathlib import Path, PurePath
from typing import Optional

from .game_catalog import Game, safe_path_component


#: Default data directory.
DEFAULT_DATA_PATH = Path.home() / ".local/share/game-manager"

#: Entry points looked up inside a game directory, in order.
ENTRY_POINTS = ("main3.lua", "main.lua")


def check_dir_name(name: str) -> str:
    """
    Return ``name`` if it can be used as one directory under the games root.

    Raises:
        ValueError: For empty names, ``.``/``..``, absolute or drive paths
            and names containing a path separator.
    """
    if (
        not name
        or name in (".", "..")
        or any(sep in name for sep in ("/", "\\", "\0"))
        or PurePath(name).anchor
    ):
        raise ValueError(f"unsafe directory name {name!r}")
    return name


def ensure_within_directory(directory: Path, target: Path) -> None:
    """Raise ValueError if ``target`` resolves outside ``directory``."""
    directory = directory.resolve()
    resolved = target.resolve()
    if resolved != directory and directory not in resolved.parents:
        raise ValueError(f"{target} escapes {directory}")


class GamesLayout:
    """Paths of installed games, icons and index caches."""

    def __init__(self, data_path: Optional[Path] = None):
        self._data_path = Path(data_path) if data_path else DEFAULT_DATA_PATH

    @property
    def data_path(self) -> Path:
        return self._data_path

    @property
    def games_root(self) -> Path:
        return self._data_path / "games"

    @property
    def images_dir(self) -> Path:
        return self._data_path / "images"

    @property
    def cache_dir(self) -> Path:
        return self._data_path / "repositories"

    def game_dir(self, game: Game) -> Path:
        """
        Directory the game is (or would be) installed in.

        Raises:
            ValueError: If the game's directory name would leave the games
                root.
        """
        path = self.games_root / check_dir_name(game.dir_name)
        ensure_within_directory(self.games_root, path)
        return path

    def has_game_dir(self, dir_name: str) -> bool:
        return (self.games_root / check_dir_name(dir_name)).is_dir()

    def is_installed(self, game: Game) -> bool:
        return self.game_dir(game).is_dir()

    def entry_point(self, game: Game) -> Optional[Path]:
        """Return the game's main script, if the game ships a known one."""
        game_dir = self.game_dir(game)
        for name in ENTRY_POINTS:
            candidate = game_dir / name
            if candidate.is_file():
                return candidate
        return None

    def icon_path(self, game: Game, suffix: str = ".png") -> Path:
        return self.images_dir / f"{game.dir_name}{suffix}"

    def find_icon(self, game: Game) -> Optional[Path]:
        """Return the cached icon of a game, whatever its extension."""
        if not self.images_dir.is_dir():
            return None
        for path in sorted(self.images_dir.glob(f"{game.dir_name}.*")):
            if path.is_file() and path.stem == game.dir_name:
                return path
        return None

    def index_cache_path(self, repository_name: str) -> Path:
        return self.cache_dir / f"{safe_path_component(repository_name)}.xml"

    def ensure_dirs(self) -> None:
        for path in (self.games_root, self.images_dir, self.cache_dir):
            path.mkdir(parents=True, exist_ok=True)
