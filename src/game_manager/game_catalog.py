"""
Game Catalog - Game records and the merged, queryable catalog.

A Catalog is an immutable snapshot built from the games of every repository
that synced successfully. Queries never modify it; a new sync produces a new
Catalog which the manager swaps in as a whole.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Iterator, Sequence, Tuple

from common.exceptions import GameNotFoundError

logger = logging.getLogger(__name__)

#: Sort key for games without a publication date (they list last).
UNDATED = datetime.min


def safe_path_component(name: str, default: str = "repository") -> str:
    """Reduce ``name`` to characters that are safe in a single file name."""
    return re.sub(r"[^\w.@-]", "_", name).lstrip(".") or default


class SortOrder(Enum):
    """Available listing orders."""
    TITLE = "title"
    PUBLISHED_DESC = "published_desc"


@dataclass(frozen=True)
class Repository:
    """A configured source of games, identified by its name."""
    name: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Repository":
        return cls(name=str(data["name"]), url=str(data["url"]))


@dataclass
class Game:
    """A game offered by a repository.

    ``installed`` is a cache of a filesystem check; see
    :meth:`Catalog.refresh_installed`.
    """
    name: str
    title: str
    download_url: str
    size_bytes: int
    repository_name: str = ""

    # Optional index fields
    description: str = ""
    version: str = ""
    languages: List[str] = field(default_factory=list)
    description_url: str = ""
    image_url: str = ""
    published_at: Optional[datetime] = None

    installed: bool = False

    # Directory name under the games root, set by the Catalog when
    # several repositories publish the same name
    install_key: str = field(default="", repr=False)

    @property
    def key(self) -> Tuple[str, str]:
        """Catalog identity: ``(repository_name, name)``."""
        return (self.repository_name, self.name)

    @property
    def dir_name(self) -> str:
        return self.install_key or self.name

    @property
    def scoped_dir_name(self) -> str:
        """``<name>@<repository>``, used when the plain name is ambiguous."""
        return f"{self.name}@{safe_path_component(self.repository_name)}"

    def human_size(self) -> str:
        """Return the package size in human-readable units."""
        size = float(self.size_bytes)
        for unit in ("B", "KB", "MB", "GB"):
            if size < 1024 or unit == "GB":
                return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} GB"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "version": self.version,
            "languages": list(self.languages),
            "repository": self.repository_name,
            "description_url": self.description_url,
            "download_url": self.download_url,
            "image_url": self.image_url,
            "size_bytes": self.size_bytes,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "installed": self.installed,
        }


# ---------------------------------------------------------------------------
# Pure queries
# ---------------------------------------------------------------------------

def _title_key(game: Game) -> Tuple[str, str]:
    return (game.title.casefold(), game.name.casefold())


def sort_games(games: Iterable[Game], order: SortOrder = SortOrder.PUBLISHED_DESC) -> List[Game]:
    """
    Return the games in the requested order.

    ``PUBLISHED_DESC`` lists the newest first; games published at the same
    moment are ordered by title, case-insensitively.
    """
    by_title = sorted(games, key=_title_key)
    if order == SortOrder.TITLE:
        return by_title

    # reverse=True keeps the sort stable, so the title order survives ties
    return sorted(
        by_title,
        key=lambda g: g.published_at or UNDATED,
        reverse=True,
    )


def filter_games(
    games: Iterable[Game],
    keyword: Optional[str] = None,
    repository_name: Optional[str] = None,
    language: Optional[str] = None,
    only_installed: bool = False,
) -> List[Game]:
    """
    Filter games, preserving their relative order.

    Args:
        games: Games to filter
        keyword: Case-insensitive substring of the name or the title
        repository_name: Repository the game comes from
        language: One of the game's languages (exact, case-insensitive)
        only_installed: Keep installed games only

    Returns:
        Games matching every given criterion.
    """
    keyword_cf = keyword.casefold() if keyword else None
    repository_cf = repository_name.casefold() if repository_name else None
    language_cf = language.casefold() if language else None

    results = []
    for game in games:
        if keyword_cf is not None:
            if keyword_cf not in game.name.casefold() and keyword_cf not in game.title.casefold():
                continue

        if repository_cf is not None and game.repository_name.casefold() != repository_cf:
            continue

        if language_cf is not None:
            if language_cf not in (lang.casefold() for lang in game.languages):
                continue

        if only_installed and not game.installed:
            continue

        results.append(game)

    return results


def find_languages(games: Iterable[Game]) -> List[str]:
    """Return the distinct languages of the games, sorted.

    Languages differing only by case count once; the first spelling seen
    is kept.
    """
    seen: Dict[str, str] = {}
    for game in games:
        for lang in game.languages:
            seen.setdefault(lang.casefold(), lang)
    return [seen[k] for k in sorted(seen)]


def resolve_by_keyword(candidates: Sequence[Game], keyword: str) -> Game:
    """
    Pick one game out of keyword search results.

    A game whose name equals the keyword (case-insensitively) wins.
    Otherwise the first candidate is returned.

    Raises:
        GameNotFoundError: If there are no candidates.
    """
    if not candidates:
        raise GameNotFoundError(keyword)

    keyword_cf = keyword.casefold()
    for game in candidates:
        if game.name.casefold() == keyword_cf:
            return game

    return candidates[0]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class Catalog:
    """
    Immutable snapshot of every synced game.

    The game sequence is fixed at construction. Only the per-game
    ``installed`` cache changes afterwards.
    """

    def __init__(self, games: Iterable[Game] = ()):
        self._games: Tuple[Game, ...] = tuple(games)

        repos_per_name = Counter(
            name for name, _ in {(g.name, g.repository_name) for g in self._games}
        )
        for game in self._games:
            if repos_per_name[game.name] > 1:
                game.install_key = game.scoped_dir_name
            else:
                game.install_key = ""

    def __len__(self) -> int:
        return len(self._games)

    def __iter__(self) -> Iterator[Game]:
        return iter(self._games)

    def __repr__(self) -> str:
        return f"Catalog({len(self._games)} games)"

    @property
    def games(self) -> Tuple[Game, ...]:
        return self._games

    def is_empty(self) -> bool:
        return not self._games

    def get(self, repository_name: str, name: str) -> Optional[Game]:
        """Get a game by its catalog identity."""
        for game in self._games:
            if game.repository_name == repository_name and game.name == name:
                return game
        return None

    def repository_names(self) -> List[str]:
        """Names of the repositories present in the snapshot, in order."""
        names: List[str] = []
        for game in self._games:
            if game.repository_name not in names:
                names.append(game.repository_name)
        return names

    def sorted(self, order: SortOrder = SortOrder.PUBLISHED_DESC) -> List[Game]:
        return sort_games(self._games, order)

    def filter(
        self,
        keyword: Optional[str] = None,
        repository_name: Optional[str] = None,
        language: Optional[str] = None,
        only_installed: bool = False,
        order: SortOrder = SortOrder.PUBLISHED_DESC,
    ) -> List[Game]:
        return filter_games(
            self.sorted(order), keyword, repository_name, language, only_installed
        )

    def languages(self) -> List[str]:
        return find_languages(self._games)

    def resolve(self, keyword: str) -> Game:
        """Find the game a user most likely means by ``keyword``."""
        return resolve_by_keyword(self.filter(keyword=keyword), keyword)

    def refresh_installed(self, layout) -> int:
        """
        Recompute every ``installed`` flag from the filesystem.

        A game installed as ``<name>@<repository>`` keeps that directory
        even when no other synced repository publishes its name any more.

        Args:
            layout: A :class:`~game_manager.layout.GamesLayout`

        Returns:
            Number of installed games.
        """
        count = 0
        for game in self._games:
            if not game.install_key and layout.has_game_dir(game.scoped_dir_name):
                game.install_key = game.scoped_dir_name
            game.installed = layout.is_installed(game)
            count += game.installed
        logger.debug(f"{count} of {len(self._games)} games installed")
        return count
