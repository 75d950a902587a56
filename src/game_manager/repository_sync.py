"""
Repository Sync - Fetch repository indexes and merge them into a Catalog.

Each repository is fetched and parsed independently. A repository that
fails (network error, bad status, malformed document) is reported as a
:class:`SyncError` and skipped; the games of the other repositories are
still published. The merged :class:`Catalog` is only built once every
repository has been attempted.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, List, Sequence

import requests

from common.decorators import call_with_retry, timed
from common.exceptions import (
    GameManagerError, IndexFetchError, IndexParseError, FilesystemError,
)
from utils.atomic_write import atomic_write_bytes

from .game_catalog import Catalog, Game, Repository
from .layout import GamesLayout, check_dir_name

logger = logging.getLogger(__name__)

#: Seconds to wait for a repository server.
DEFAULT_TIMEOUT = 30.0

USER_AGENT = "game-manager/1.0"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SyncError:
    """A repository that could not be synced and why."""
    repository: Repository
    cause: GameManagerError

    def __str__(self) -> str:
        return f"{self.repository.name}: {self.cause.message}"


@dataclass
class SyncResult:
    """Outcome of syncing a set of repositories."""
    catalog: Catalog
    errors: List[SyncError] = field(default_factory=list)
    synced: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Index parsing
# ---------------------------------------------------------------------------

def _text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _languages(element: ET.Element) -> List[str]:
    # <langs><lang>en</lang>...</langs> or bare <lang>en</lang> elements
    langs = [
        lang.text.strip()
        for lang in element.iterfind("langs/lang")
        if lang.text and lang.text.strip()
    ]
    if not langs:
        langs = [
            lang.text.strip()
            for lang in element.iterfind("lang")
            if lang.text and lang.text.strip()
        ]
    unique: List[str] = []
    for lang in langs:
        if lang not in unique:
            unique.append(lang)
    return unique


def parse_date(value: str) -> Optional[datetime]:
    """
    Parse an index date.

    Accepts ISO-8601 dates and datetimes as well as RFC 2822 dates.
    Timezone-aware values are converted to naive UTC so that every
    date in the catalog compares with every other.

    Returns:
        The parsed datetime, or None when ``value`` is empty or unreadable.
    """
    value = value.strip()
    if not value:
        return None

    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_game(element: ET.Element, repository_name: str) -> Game:
    """
    Build a Game from one ``<game>`` element.

    Raises:
        ValueError: If a mandatory field is missing or invalid.
    """
    name = _text(element, "name")
    if not name:
        raise ValueError("missing name")
    check_dir_name(name)

    download_url = _text(element, "url")
    if not download_url:
        raise ValueError(f"{name}: missing url")

    size_text = _text(element, "size")
    if not size_text:
        raise ValueError(f"{name}: missing size")
    try:
        size_bytes = int(size_text)
    except ValueError:
        raise ValueError(f"{name}: invalid size {size_text!r}") from None
    if size_bytes < 0:
        raise ValueError(f"{name}: negative size {size_bytes}")

    date_text = _text(element, "date")
    published_at = parse_date(date_text)
    if date_text and published_at is None:
        logger.debug(f"{repository_name}/{name}: unreadable date {date_text!r}")

    return Game(
        name=name,
        title=_text(element, "title") or name,
        download_url=download_url,
        size_bytes=size_bytes,
        repository_name=repository_name,
        description=_text(element, "description"),
        version=_text(element, "version"),
        languages=_languages(element),
        description_url=_text(element, "descurl"),
        image_url=_text(element, "image"),
        published_at=published_at,
    )


def parse_index(document: bytes, repository_name: str) -> List[Game]:
    """
    Parse a repository index document.

    Invalid records are dropped one by one; a record repeating a name
    already seen in this document is dropped too.

    Args:
        document: Raw XML index
        repository_name: Name every parsed game is tagged with

    Returns:
        The valid games, in document order.

    Raises:
        IndexParseError: If the document itself is not a game list.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise IndexParseError(repository_name, f"invalid XML: {e}", cause=e)

    if root.tag == "game":
        elements = [root]
    elif root.tag == "game_list" or root.find("game") is not None:
        elements = root.findall("game")
    else:
        raise IndexParseError(repository_name, f"unexpected root element <{root.tag}>")

    games: List[Game] = []
    names = set()
    for element in elements:
        try:
            game = parse_game(element, repository_name)
        except ValueError as e:
            logger.warning(f"Skipping record in {repository_name}: {e}")
            continue

        if game.name in names:
            logger.warning(f"Skipping duplicate game {game.name} in {repository_name}")
            continue

        names.add(game.name)
        games.append(game)

    return games


# ---------------------------------------------------------------------------
# Synchronizer
# ---------------------------------------------------------------------------

class RepositorySynchronizer:
    """
    Fetches repository indexes and merges them into a Catalog.

    Fetched documents are cached under the layout's cache directory so a
    catalog can be rebuilt at startup without network access.
    """

    def __init__(
        self,
        layout: Optional[GamesLayout] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        attempts: int = 1,
        retry_delay: float = 1.0,
    ):
        """
        Initialize RepositorySynchronizer.

        Args:
            layout: Storage layout for the index cache (no cache when None)
            session: HTTP session to use (a new one by default)
            timeout: Per-request timeout in seconds
            attempts: Tries per repository for connection errors and timeouts
            retry_delay: Seconds before the first retry
        """
        self.layout = layout
        self.session = session or requests.Session()
        self.timeout = timeout
        self.attempts = attempts
        self.retry_delay = retry_delay

    def fetch_index(self, repository: Repository) -> bytes:
        """
        Download a repository's index document.

        Raises:
            IndexFetchError: On network errors and non-2xx statuses.
        """
        try:
            response = call_with_retry(
                self.session.get,
                repository.url,
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                attempts=self.attempts,
                delay=self.retry_delay,
                exceptions=(requests.ConnectionError, requests.Timeout),
            )
        except requests.RequestException as e:
            raise IndexFetchError(repository.name, repository.url, str(e), cause=e)

        if not 200 <= response.status_code < 300:
            raise IndexFetchError(
                repository.name, repository.url, f"HTTP {response.status_code}"
            )

        return response.content

    def sync_repository(self, repository: Repository) -> List[Game]:
        """Fetch, parse and cache one repository."""
        document = self.fetch_index(repository)
        games = parse_index(document, repository.name)
        self._write_cache(repository, document)
        logger.info(f"Repository {repository.name}: {len(games)} games")
        return games

    @timed
    def sync_all(self, repositories: Sequence[Repository]) -> SyncResult:
        """
        Sync every repository and merge the results.

        One repository's failure never prevents the others from syncing.

        Returns:
            A SyncResult with the merged catalog and one SyncError per
            failed repository.
        """
        games: List[Game] = []
        errors: List[SyncError] = []
        synced: List[str] = []

        for repository in repositories:
            try:
                games.extend(self.sync_repository(repository))
                synced.append(repository.name)
            except (IndexFetchError, IndexParseError) as e:
                logger.warning(f"Sync failed for {repository.name}: {e.message}")
                errors.append(SyncError(repository, e))

        return SyncResult(Catalog(games), errors, synced)

    def load_cached(self, repositories: Sequence[Repository]) -> SyncResult:
        """
        Rebuild a catalog from cached index documents.

        Repositories without a readable cache are reported as errors.
        """
        games: List[Game] = []
        errors: List[SyncError] = []
        synced: List[str] = []

        for repository in repositories:
            path = self._cache_path(repository)
            if path is None or not path.is_file():
                errors.append(SyncError(
                    repository,
                    IndexFetchError(repository.name, repository.url, "not synced yet"),
                ))
                continue

            try:
                games.extend(parse_index(path.read_bytes(), repository.name))
                synced.append(repository.name)
            except OSError as e:
                errors.append(SyncError(
                    repository, FilesystemError(str(path), "read", cause=e)
                ))
            except IndexParseError as e:
                logger.warning(f"Cached index of {repository.name} is unreadable: {e.message}")
                errors.append(SyncError(repository, e))

        return SyncResult(Catalog(games), errors, synced)

    def has_cached_data(self, repositories: Sequence[Repository]) -> bool:
        """Whether any of the repositories has been synced before."""
        for repository in repositories:
            path = self._cache_path(repository)
            if path is not None and path.is_file():
                return True
        return False

    def _cache_path(self, repository: Repository):
        if self.layout is None:
            return None
        return self.layout.index_cache_path(repository.name)

    def _write_cache(self, repository: Repository, document: bytes) -> None:
        path = self._cache_path(repository)
        if path is None:
            return
        try:
            atomic_write_bytes(path, document)
        except OSError as e:
            # The synced games are still valid; only the next offline start loses them
            logger.warning(f"Cannot cache index of {repository.name}: {e}")
