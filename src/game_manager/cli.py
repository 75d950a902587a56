#!/usr/bin/env python3
"""
Game Manager CLI

Command-line interface for syncing repositories and searching, installing,
running and removing games.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.exceptions import (
    ConfigError, GameManagerError, InterpreterCheckError,
)
from common.logging_config import setup_logging

from .config import ConfigStore
from .game_catalog import Game, SortOrder, filter_games, resolve_by_keyword
from .manager import GameManager, __version__

logger = logging.getLogger(__name__)


def get_store(args) -> ConfigStore:
    return ConfigStore(Path(args.config) if getattr(args, "config", None) else None)


def get_manager(args) -> GameManager:
    """Load the configuration and return a manager for it."""
    return GameManager(get_store(args).load())


def _print_errors(errors) -> None:
    if errors:
        print("There are errors:", file=sys.stderr)
    for error in errors:
        print(f"  {error}", file=sys.stderr)


def _load_games(manager: GameManager, order: SortOrder) -> List[Game]:
    _print_errors(manager.ensure_catalog())
    return manager.get_sorted_games(order)


def _find_game(manager: GameManager, keyword: str) -> Game:
    games = _load_games(manager, SortOrder.TITLE)
    return resolve_by_keyword(filter_games(games, keyword=keyword), keyword)


def _print_games(games: List[Game], as_json: bool = False) -> None:
    if as_json:
        print(json.dumps([g.to_dict() for g in games], indent=2, ensure_ascii=False))
        return

    for game in games:
        installed = " [installed]" if game.installed else ""
        langs = ", ".join(game.languages)
        print(f"  {game.title}, {game.name}, {game.repository_name} [{langs}]{installed}")


def cmd_update(args):
    """Sync every repository."""
    manager = get_manager(args)
    print("Updating repositories...")
    errors = manager.update_repositories()
    _print_errors(errors)
    print(f"Repositories updated: {len(manager.catalog)} games.")
    return 1 if errors and manager.catalog.is_empty() else 0


def cmd_list(args):
    """List games, newest first."""
    manager = get_manager(args)
    games = _load_games(manager, SortOrder.PUBLISHED_DESC)
    games = filter_games(
        games,
        repository_name=args.repository,
        language=args.lang,
        only_installed=args.installed,
    )
    _print_games(games, args.json)
    return 0


def cmd_search(args):
    """Search games by name and title."""
    manager = get_manager(args)
    games = _load_games(manager, SortOrder.TITLE)
    results = filter_games(
        games,
        keyword=args.keyword,
        repository_name=args.repository,
        language=args.lang,
        only_installed=args.installed,
    )

    if not results and not args.json:
        print(f"No games found for: {args.keyword}")
        return 0

    _print_games(results, args.json)
    return 0


def cmd_show(args):
    """Show detailed game information."""
    manager = get_manager(args)
    game = _find_game(manager, args.keyword)

    print(f"Title:       {game.title}")
    print(f"Name:        {game.name}")
    print(f"Size:        {game.human_size()}")
    print(f"Installed:   {'Yes' if game.installed else 'No'}")
    if game.version:
        print(f"Version:     {game.version}")
    if game.languages:
        print(f"Languages:   {', '.join(game.languages)}")
    if game.repository_name:
        print(f"Repository:  {game.repository_name}")
    if game.published_at:
        print(f"Published:   {game.published_at.date().isoformat()}")
    if game.description_url:
        print(f"More:        {game.description_url}")
    if game.description:
        print(f"\nDescription:\n{game.description}")

    return 0


def cmd_install(args):
    """Install a game."""
    manager = get_manager(args)
    game = _find_game(manager, args.keyword)

    if game.installed:
        print(f"{game.title} is already installed.")
        return 0

    def progress_callback(size: int):
        if game.size_bytes:
            percent = min(100, size * 100 // game.size_bytes)
            print(f"\rDownloading and installing {game.title}... {percent}%", end="", flush=True)

    print(f"Downloading and installing {game.title}...", end="", flush=True)
    manager.install_game(game, progress_callback)
    print(f"\n{game.title} has been installed.")
    return 0


def cmd_remove(args):
    """Remove a game."""
    manager = get_manager(args)
    game = _find_game(manager, args.keyword)

    if not game.installed:
        print(f"{game.title} is not installed.")
        return 0

    print(f"Removing {game.title}...")
    manager.remove_game(game)
    print(f"{game.title} has been removed.")
    return 0


def cmd_run(args):
    """Run an installed game."""
    manager = get_manager(args)
    game = _find_game(manager, args.keyword)

    if not game.installed:
        print(f"{game.title} is not installed.", file=sys.stderr)
        print(f"Install it with: game-manager install {game.name}", file=sys.stderr)
        return 1

    if not manager.launch_command() and not _find_interpreter(manager, get_store(args)):
        return 1

    manager.run_game(game)
    print(f"Running {game.title}...")
    return 0


def _find_interpreter(manager: GameManager, store: ConfigStore) -> Optional[str]:
    path = manager.find_interpreter()
    if path is None:
        print("Interpreter not found. Please set interpreter_command in "
              f"{store.path}")
        return None

    print(f"Interpreter found: {path}")
    manager.config.interpreter_command = path
    store.save(manager.config)
    print("Path has been saved.")
    return path


def cmd_find_interpreter(args):
    """Detect the interpreter and save its path to the config."""
    manager = get_manager(args)
    return 0 if _find_interpreter(manager, get_store(args)) else 1


def cmd_check_interpreter(args):
    """Check that the configured interpreter works."""
    manager = get_manager(args)
    command = args.interpreter or manager.interpreter_command()
    if not command:
        print("No interpreter configured. Run: game-manager find-interpreter")
        return 1

    try:
        candidate = manager.check_interpreter(command)
    except InterpreterCheckError as e:
        if e.builtin:
            print("Built-in interpreter check failed! The installation is broken.",
                  file=sys.stderr)
        else:
            print(f"Interpreter check failed for {command}. Check interpreter_command.",
                  file=sys.stderr)
        logger.debug(str(e))
        return 1

    print(f"Interpreter {candidate.verified_version} found at {candidate.command_path}")
    return 0


def cmd_repositories(args):
    """List configured repositories."""
    manager = get_manager(args)
    for repo in manager.repositories:
        print(f"  {repo.name} ({repo.url})")
    return 0


def cmd_langs(args):
    """List the languages of all games."""
    manager = get_manager(args)
    _print_errors(manager.ensure_catalog())
    for lang in manager.catalog.languages():
        print(f"  {lang}")
    return 0


def cmd_config_path(args):
    """Print the configuration file path."""
    print(get_store(args).path)
    return 0


def cmd_version(args):
    """Print the application version."""
    print(__version__)
    return 0


def _add_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-r", "--repository", help="Only games of this repository")
    parser.add_argument("-l", "--lang", help="Only games in this language")
    parser.add_argument("-i", "--installed", action="store_true", help="Only installed games")
    parser.add_argument("--json", action="store_true", help="Print JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="game-manager",
        description="INSTEAD games manager",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--log-file", help="Also write a debug log to this file")
    parser.add_argument(
        "--json-logs", action="store_true", help="Write the log file as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    update_p = subparsers.add_parser("update", help="Update game repositories")
    update_p.set_defaults(func=cmd_update)

    list_p = subparsers.add_parser("list", help="List games")
    _add_filters(list_p)
    list_p.set_defaults(func=cmd_list)

    search_p = subparsers.add_parser("search", help="Search games by name and title")
    search_p.add_argument("keyword", help="Search keyword")
    _add_filters(search_p)
    search_p.set_defaults(func=cmd_search)

    for name, func, help_text in (
        ("show", cmd_show, "Show game information"),
        ("install", cmd_install, "Install a game"),
        ("run", cmd_run, "Run a game"),
        ("remove", cmd_remove, "Remove a game"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("keyword", help="Game name or part of its title")
        p.set_defaults(func=func)

    find_p = subparsers.add_parser("find-interpreter", help="Find the interpreter and save it")
    find_p.set_defaults(func=cmd_find_interpreter)

    check_p = subparsers.add_parser("check-interpreter", help="Check the interpreter")
    check_p.add_argument(
        "interpreter", nargs="?", metavar="command",
        help="Interpreter to check instead of the configured one",
    )
    check_p.set_defaults(func=cmd_check_interpreter)

    repos_p = subparsers.add_parser("repositories", help="List repositories")
    repos_p.set_defaults(func=cmd_repositories)

    langs_p = subparsers.add_parser("langs", help="List game languages")
    langs_p.set_defaults(func=cmd_langs)

    config_p = subparsers.add_parser("config-path", help="Print the config path")
    config_p.set_defaults(func=cmd_config_path)

    version_p = subparsers.add_parser("version", help="Print the version")
    version_p.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        log_file=args.log_file,
        json_logs=args.json_logs,
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2
    except GameManagerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        logger.debug(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
