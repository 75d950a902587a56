"""
Tests for the game-manager command line.
"""

import pytest
import json
import logging
from unittest.mock import MagicMock, patch

from common.exceptions import InterpreterCheckError
from common.logging_config import JSONFormatter, setup_logging
from game_manager import cli
from game_manager.config import ConfigStore, ManagerConfig
from game_manager.game_catalog import Repository
from game_manager.interpreter_finder import InterpreterFinder
from game_manager.layout import GamesLayout
from game_manager.manager import GameManager, __version__
from game_manager.repository_sync import RepositorySynchronizer
from conftest import FakeResponse, FakeSession, make_index, make_zip


OFFICIAL = Repository("official", "https://games.example.org/xml.php")

GAMES = [
    {"name": "galaxy", "title": "Galaxy Quest", "size": 1000, "langs": ["en"],
     "url": "https://games.example.org/galaxy.zip", "date": "2020-05-01",
     "description": "Space adventure"},
    {"name": "lost-galaxy", "title": "Lost", "size": 10, "langs": ["ru"],
     "url": "https://games.example.org/lost.zip", "date": "2021-05-01"},
    {"name": "farm", "title": "Happy Farm", "size": 10, "langs": ["en", "ru"],
     "url": "https://games.example.org/farm.zip"},
]


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def manager(data_dir, tmp_path):
    layout = GamesLayout(data_dir)
    session = FakeSession({
        OFFICIAL.url: FakeResponse(make_index(GAMES)),
        GAMES[0]["url"]: FakeResponse(make_zip({"main3.lua": "--"})),
    })
    return GameManager(
        ManagerConfig(data_path=data_dir, repositories=[OFFICIAL]),
        layout=layout,
        synchronizer=RepositorySynchronizer(layout, session=session),
        finder=InterpreterFinder(tmp_path / "app", platform="linux", common_paths=[]),
    )


@pytest.fixture
def run_cli(manager, config_path):
    """Run main() against the test manager and config file."""
    def run(*argv):
        with patch.object(cli, "get_manager", return_value=manager):
            return cli.main(["--config", str(config_path), *argv])
    return run


class TestParser:
    """Tests for argument parsing."""

    def test_subcommands(self):
        parser = cli.build_parser()

        args = parser.parse_args(["search", "galaxy", "-l", "en", "--installed"])
        assert args.func is cli.cmd_search
        assert args.keyword == "galaxy"
        assert args.lang == "en"
        assert args.installed is True

        args = parser.parse_args(["check-interpreter"])
        assert args.interpreter is None

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestInformationCommands:
    """Tests for commands that only print."""

    def test_version(self, capsys):
        assert cli.main(["version"]) == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_json_log_file(self, tmp_path):
        log_file = tmp_path / "game-manager.log"
        try:
            assert cli.main(["--log-file", str(log_file), "--json-logs", "version"]) == 0
            handlers = logging.getLogger().handlers
            assert any(isinstance(h.formatter, JSONFormatter) for h in handlers)
        finally:
            setup_logging(level=logging.WARNING)
        assert log_file.exists()

    def test_config_path(self, config_path, capsys):
        assert cli.main(["--config", str(config_path), "config-path"]) == 0
        assert capsys.readouterr().out.strip() == str(config_path)

    def test_repositories_from_default_config(self, config_path, capsys):
        assert cli.main(["--config", str(config_path), "repositories"]) == 0

        out = capsys.readouterr().out
        assert "official (http://instead-games.ru/xml.php)" in out
        assert config_path.exists()

    def test_invalid_config(self, config_path, capsys):
        config_path.write_text("{broken")

        assert cli.main(["--config", str(config_path), "repositories"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_langs(self, run_cli, capsys):
        assert run_cli("langs") == 0
        assert capsys.readouterr().out.split() == ["en", "ru"]


class TestGameCommands:
    """Tests for search, list and show."""

    def test_update(self, run_cli, capsys):
        assert run_cli("update") == 0
        assert "3 games" in capsys.readouterr().out

    def test_search(self, run_cli, capsys):
        assert run_cli("search", "galaxy") == 0

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert "Galaxy Quest, galaxy" in lines[0]
        assert "Lost, lost-galaxy" in lines[1]

    def test_search_no_results(self, run_cli, capsys):
        assert run_cli("search", "zzz") == 0
        assert "No games found for: zzz" in capsys.readouterr().out

    def test_list_json_newest_first(self, run_cli, capsys):
        assert run_cli("list", "--json") == 0

        games = json.loads(capsys.readouterr().out)
        assert [g["name"] for g in games] == ["lost-galaxy", "galaxy", "farm"]

    def test_list_by_language(self, run_cli, capsys):
        assert run_cli("list", "--lang", "ru", "--json") == 0

        games = json.loads(capsys.readouterr().out)
        assert [g["name"] for g in games] == ["lost-galaxy", "farm"]

    def test_show(self, run_cli, capsys):
        assert run_cli("show", "galaxy") == 0

        out = capsys.readouterr().out
        assert "Galaxy Quest" in out
        assert "Installed:   No" in out
        assert "Published:   2020-05-01" in out
        assert "Space adventure" in out

    def test_show_unknown_game(self, run_cli, capsys):
        assert run_cli("show", "zzz") == 1
        assert "Game 'zzz' not found" in capsys.readouterr().err


class TestLifecycleCommands:
    """Tests for install, run and remove."""

    def test_install_and_remove(self, run_cli, manager, capsys):
        assert run_cli("install", "galaxy") == 0
        assert "Galaxy Quest has been installed." in capsys.readouterr().out
        game = manager.catalog.get("official", "galaxy")
        assert manager.layout.is_installed(game)

        assert run_cli("install", "galaxy") == 0
        assert "already installed" in capsys.readouterr().out

        assert run_cli("remove", "galaxy") == 0
        assert "has been removed" in capsys.readouterr().out
        assert not manager.layout.is_installed(game)

    def test_remove_not_installed(self, run_cli, capsys):
        assert run_cli("remove", "farm") == 0
        assert "is not installed" in capsys.readouterr().out

    def test_run_not_installed(self, run_cli, capsys):
        assert run_cli("run", "farm") == 1
        assert "game-manager install farm" in capsys.readouterr().err

    def test_run(self, run_cli, manager, mock_subprocess_popen, capsys):
        manager.config.interpreter_command = "/usr/bin/sdl-instead"
        run_cli("install", "galaxy")

        assert run_cli("run", "galaxy") == 0
        assert "Running Galaxy Quest" in capsys.readouterr().out
        mock_subprocess_popen.assert_called_once()

    def test_run_without_interpreter(self, run_cli, monkeypatch, capsys):
        monkeypatch.setattr("shutil.which", lambda name: None)
        run_cli("install", "galaxy")

        assert run_cli("run", "galaxy") == 1
        assert "Interpreter not found" in capsys.readouterr().out


class TestInterpreterCommands:
    """Tests for find-interpreter and check-interpreter."""

    def test_find_interpreter_saves_path(self, run_cli, manager, config_path, tmp_path, capsys):
        found = tmp_path / "bin" / "sdl-instead"
        manager.finder = MagicMock()
        manager.finder.find.return_value = str(found)

        assert run_cli("find-interpreter") == 0

        assert f"Interpreter found: {found}" in capsys.readouterr().out
        assert ConfigStore(config_path).load().interpreter_command == str(found)

    def test_find_interpreter_nothing(self, run_cli, monkeypatch, capsys):
        monkeypatch.setattr("shutil.which", lambda name: None)
        assert run_cli("find-interpreter") == 1
        assert "Interpreter not found" in capsys.readouterr().out

    def test_check_interpreter_ok(self, run_cli, manager, capsys):
        manager.finder = MagicMock()
        manager.finder.check.return_value = "3.3.2"

        assert run_cli("check-interpreter", "/usr/bin/sdl-instead") == 0
        assert "Interpreter 3.3.2 found at /usr/bin/sdl-instead" in capsys.readouterr().out

    def test_check_external_interpreter_fails(self, run_cli, manager, capsys):
        manager.finder = MagicMock()
        manager.finder.check.side_effect = InterpreterCheckError("/x", "boom")

        assert run_cli("check-interpreter", "/x") == 1
        assert "Check interpreter_command" in capsys.readouterr().err

    def test_check_builtin_interpreter_fails(self, run_cli, manager, capsys):
        manager.finder = MagicMock()
        manager.finder.check.side_effect = InterpreterCheckError("/x", "boom", builtin=True)

        assert run_cli("check-interpreter", "/x") == 1
        assert "installation is broken" in capsys.readouterr().err

    def test_check_without_interpreter(self, run_cli, capsys):
        assert run_cli("check-interpreter") == 1
        assert "find-interpreter" in capsys.readouterr().out
