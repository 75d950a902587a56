"""
Game Installer - Download, unpack and remove game packages.

An install streams the package into a staging directory next to the game
directories, unpacks it there and moves the result into place with a
single rename. Whatever fails along the way, the staging directory is
deleted and the game directory is left absent, so a failed install is
never mistaken for an installed game.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import Optional, Callable
from urllib.parse import urlparse

import py7zr
import requests

from common.decorators import best_effort, timed
from common.exceptions import (
    ArchiveError, DownloadError, FilesystemError, GameManagerError,
)
from common.logging_config import LogContext

from .game_catalog import Game
from .layout import GamesLayout, ensure_within_directory

logger = logging.getLogger(__name__)

#: Receives the cumulative number of bytes downloaded so far.
ProgressCallback = Callable[[int], None]

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 60.0


def _safe_filename(url: str, default: str = "download") -> str:
    """Return the last path component of a URL, without any traversal."""
    name = os.path.basename(urlparse(url).path.replace("\\", "/"))
    if not name or name in (".", ".."):
        return default
    return name


def extract_archive(archive: Path, destination: Path) -> None:
    """
    Unpack a zip or 7z archive into ``destination``.

    Raises:
        ArchiveError: If the archive is corrupt, unsupported or contains
            members that would land outside ``destination``.
    """
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    ensure_within_directory(destination, destination / member)
                bad = zf.testzip()
                if bad is not None:
                    raise ArchiveError(archive.name, f"corrupt member {bad}")
                zf.extractall(destination)
        elif py7zr.is_7zfile(archive):
            with py7zr.SevenZipFile(archive, mode="r") as sz:
                for member in sz.getnames():
                    ensure_within_directory(destination, destination / member)
                sz.extractall(path=destination)
        else:
            raise ArchiveError(archive.name, "unsupported archive format")
    except ArchiveError:
        raise
    except ValueError as e:
        raise ArchiveError(archive.name, str(e), cause=e)
    except (zipfile.BadZipFile, py7zr.Bad7zFile, EOFError, zlib.error) as e:
        raise ArchiveError(archive.name, "archive is corrupt", cause=e)
    except OSError as e:
        raise FilesystemError(str(destination), "extract into", cause=e)


def _content_root(extracted: Path) -> Path:
    """A lone top-level directory in an archive is the game itself."""
    entries = [p for p in extracted.iterdir() if p.name != "__MACOSX"]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return extracted


class GameInstaller:
    """
    Installs and removes games under a :class:`GamesLayout`.

    Callers must not run ``install`` and ``remove`` concurrently for the
    same game.
    """

    def __init__(
        self,
        layout: GamesLayout,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.layout = layout
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    def is_installed(self, game: Game) -> bool:
        """Check the filesystem, not the cached flag."""
        return self.layout.is_installed(game)

    @timed
    def install(self, game: Game, on_progress: Optional[ProgressCallback] = None) -> Path:
        """
        Download and unpack a game.

        Args:
            game: Game to install
            on_progress: Called with the cumulative byte count after every
                chunk written

        Returns:
            The game directory.

        Raises:
            DownloadError: Network failure or bad HTTP status
            ArchiveError: The package cannot be unpacked
            FilesystemError: Disk errors (permissions, disk full)
        """
        games_root = self.layout.games_root
        target = self._game_dir(game)

        with LogContext(game=game.name, repository=game.repository_name):
            try:
                games_root.mkdir(parents=True, exist_ok=True)
                staging = Path(tempfile.mkdtemp(prefix=f".{game.dir_name}.", dir=games_root))
            except OSError as e:
                raise FilesystemError(str(games_root), "create", cause=e)

            try:
                archive = staging / _safe_filename(game.download_url, f"{game.name}.zip")
                self._download(game, archive, on_progress)

                extracted = staging / "content"
                extract_archive(archive, extracted)
                self._move_into_place(game, _content_root(extracted), target)
            except GameManagerError:
                logger.error(f"Installation of {game.name} failed")
                raise
            except OSError as e:
                logger.error(f"Installation of {game.name} failed")
                raise FilesystemError(str(staging), "install from", cause=e)
            finally:
                shutil.rmtree(staging, ignore_errors=True)

            game.installed = True
            logger.info(f"Installed {game.name} into {target}")

        self.fetch_icon(game)
        return target

    def remove(self, game: Game) -> None:
        """
        Delete a game's directory and cached icon.

        Removing a game that is not installed is not an error.

        Raises:
            FilesystemError: If the directory cannot be deleted.
        """
        target = self._game_dir(game)

        if target.exists():
            try:
                shutil.rmtree(target)
            except OSError as e:
                raise FilesystemError(str(target), "remove", cause=e)
            logger.info(f"Removed {game.name} from {target}")
        else:
            logger.debug(f"{game.name} has no install directory")

        icon = self.layout.find_icon(game)
        if icon is not None:
            try:
                icon.unlink()
            except OSError as e:
                logger.warning(f"Cannot remove icon {icon}: {e}")

        game.installed = False

    @best_effort(requests.RequestException, OSError, message="Icon download failed")
    def fetch_icon(self, game: Game) -> Optional[Path]:
        """
        Download the game's icon into the image cache (best effort).

        Returns:
            The icon path, or None when the game has no icon or the
            download failed.
        """
        if not game.image_url:
            return None

        cached = self.layout.find_icon(game)
        if cached is not None:
            return cached

        response = self.session.get(game.image_url, timeout=self.timeout)
        response.raise_for_status()

        suffix = Path(_safe_filename(game.image_url, "icon.png")).suffix or ".png"
        path = self.layout.icon_path(game, suffix.lower())
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(response.content)
        return path

    def _download(self, game: Game, destination: Path,
                  on_progress: Optional[ProgressCallback]) -> int:
        url = game.download_url
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(url, str(e), cause=e)

        try:
            if not 200 <= response.status_code < 300:
                raise DownloadError(url, f"HTTP {response.status_code}")

            expected = int(response.headers.get("content-length") or 0)
            downloaded = 0

            try:
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        f.write(chunk)
                        downloaded += len(chunk)
                        if on_progress:
                            on_progress(downloaded)
            except requests.RequestException as e:
                raise DownloadError(url, f"interrupted after {downloaded} bytes", cause=e)
            except OSError as e:
                raise FilesystemError(str(destination), "write", cause=e)
        finally:
            close = getattr(response, "close", None)
            if close:
                close()

        if expected and downloaded < expected:
            raise DownloadError(url, f"truncated: {downloaded} of {expected} bytes")
        if downloaded == 0:
            raise DownloadError(url, "empty response")
        if downloaded != game.size_bytes:
            logger.warning(
                f"{game.name}: downloaded {downloaded} bytes, index says {game.size_bytes}"
            )

        return downloaded

    def _game_dir(self, game: Game) -> Path:
        try:
            return self.layout.game_dir(game)
        except ValueError as e:
            raise FilesystemError(str(self.layout.games_root / game.dir_name), "use", cause=e)

    def _move_into_place(self, game: Game, source: Path, target: Path) -> None:
        try:
            if target.exists():
                logger.info(f"Replacing existing install at {target}")
                shutil.rmtree(target)
                game.installed = False
            os.replace(source, target)
        except OSError as e:
            raise FilesystemError(str(target), "install into", cause=e)
