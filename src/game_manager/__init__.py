"""
Game Manager

Repository sync, game catalog, install/remove and interpreter launch for
INSTEAD games.
"""

from .game_catalog import (
    Catalog, Game, Repository, SortOrder,
    filter_games, find_languages, resolve_by_keyword, sort_games,
)
from .installer import GameInstaller
from .interpreter_finder import InterpreterCandidate, InterpreterFinder
from .layout import GamesLayout
from .manager import GameManager, __version__
from .repository_sync import RepositorySynchronizer, SyncError, SyncResult
from .runner import GameRunner

__all__ = [
    "Catalog",
    "Game",
    "Repository",
    "SortOrder",
    "filter_games",
    "find_languages",
    "resolve_by_keyword",
    "sort_games",
    "GameInstaller",
    "InterpreterCandidate",
    "InterpreterFinder",
    "GamesLayout",
    "GameManager",
    "RepositorySynchronizer",
    "SyncError",
    "SyncResult",
    "GameRunner",
    "__version__",
]
