"""
Pytest configuration and shared fixtures for game manager tests.

Provides fake HTTP sessions, archive builders and subprocess mocks so no
test needs the network or a real interpreter.
"""

import io
import zipfile
import pytest
from unittest.mock import MagicMock, patch
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from xml.sax.saxutils import escape
import sys

import requests

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============ HTTP fakes ============

class FakeResponse:
    """Just enough of requests.Response for the sync and install code."""

    def __init__(
        self,
        content: bytes = b"",
        status_code: int = 200,
        chunks: Optional[Iterable[Union[bytes, Exception]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.content = content
        self.status_code = status_code
        self._chunks = list(chunks) if chunks is not None else [content]
        self.headers = headers or {}
        self.closed = False

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def close(self):
        self.closed = True


class FakeSession:
    """Serves canned responses by URL; unknown URLs fail to connect."""

    def __init__(self, routes: Optional[Dict[str, object]] = None):
        self.routes = dict(routes or {})
        self.calls: List[str] = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"cannot connect to {url}")
        if isinstance(route, list):
            route = route.pop(0)
        if isinstance(route, Exception):
            raise route
        return route


def make_index(games: List[Dict[str, object]]) -> bytes:
    """Build a repository index document from field dicts."""
    parts = ["<?xml version='1.0' encoding='utf-8'?>", "<game_list>"]
    for game in games:
        parts.append("<game>")
        for key, value in game.items():
            if key == "langs":
                parts.append("<langs>")
                parts.extend(f"<lang>{escape(lang)}</lang>" for lang in value)
                parts.append("</langs>")
            else:
                parts.append(f"<{key}>{escape(str(value))}</{key}>")
        parts.append("</game>")
    parts.append("</game_list>")
    return "".join(parts).encode("utf-8")


def make_zip(files: Dict[str, str]) -> bytes:
    """Build an in-memory zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, text in files.items():
            zf.writestr(name, text)
    return buffer.getvalue()


def padded_zip(files: Dict[str, str], total: int) -> bytes:
    """A zip archive exactly ``total`` bytes long.

    Padding goes in front of the archive, which zipfile tolerates the
    same way it reads self-extracting archives.
    """
    data = make_zip(files)
    assert len(data) <= total
    return b"\0" * (total - len(data)) + data


def chunked(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


# ============ Environment Fixtures ============

@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Provide a temporary data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def layout(data_dir):
    from game_manager.layout import GamesLayout

    return GamesLayout(data_dir)


# ============ Game Fixtures ============

@pytest.fixture
def make_game():
    """Factory for Game records with sensible defaults."""
    from game_manager.game_catalog import Game

    def factory(name="galaxy", **kwargs):
        kwargs.setdefault("title", name.title())
        kwargs.setdefault("download_url", f"https://games.example.org/{name}.zip")
        kwargs.setdefault("size_bytes", 1000)
        kwargs.setdefault("repository_name", "official")
        return Game(name=name, **kwargs)

    return factory


@pytest.fixture
def sample_game(make_game):
    """The game from the basic sync scenario."""
    return make_game("galaxy", title="Galaxy Quest", size_bytes=1000)


# ============ Subprocess Fixtures ============

@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for tests."""
    with patch('subprocess.run') as mock_run:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr="",
        )
        yield mock_run


@pytest.fixture
def mock_subprocess_popen():
    """Mock subprocess.Popen for tests."""
    with patch('subprocess.Popen') as mock_popen:
        mock_proc = MagicMock()
        mock_proc.pid = 4242
        mock_proc.returncode = None
        mock_popen.return_value = mock_proc
        yield mock_popen


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "integration: tests touching the real filesystem or processes"
    )
