"""
Configuration - Settings persisted between runs.

Stored as JSON (``~/.config/game-manager/config.json`` by default) and
written atomically.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any

from common.exceptions import InvalidConfigError, MissingConfigError
from utils.atomic_write import atomic_write_json

from .game_catalog import Repository
from .layout import DEFAULT_DATA_PATH

logger = logging.getLogger(__name__)

#: Default configuration file.
DEFAULT_CONFIG_PATH = Path.home() / ".config/game-manager/config.json"

DEFAULT_REPOSITORIES = [
    Repository(name="official", url="http://instead-games.ru/xml.php"),
    Repository(name="sandbox", url="http://instead-games.ru/xml2.php"),
]


@dataclass
class ManagerConfig:
    """User settings.

    Attributes:
        interpreter_command: Interpreter to run games with; empty means
            use the built-in one or detect it.
        language: Preferred game language, empty for any.
        data_path: Root of games, icons and index caches.
        repositories: Repositories to sync, in order.
        sync_timeout: Seconds to wait for a repository or download server.
        sync_attempts: Tries per repository on connection errors.
    """
    interpreter_command: str = ""
    language: str = ""
    data_path: Path = DEFAULT_DATA_PATH
    repositories: List[Repository] = field(default_factory=lambda: list(DEFAULT_REPOSITORIES))
    sync_timeout: float = 30.0
    sync_attempts: int = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interpreter_command": self.interpreter_command,
            "language": self.language,
            "data_path": str(self.data_path),
            "repositories": [repo.to_dict() for repo in self.repositories],
            "sync_timeout": self.sync_timeout,
            "sync_attempts": self.sync_attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManagerConfig":
        """
        Create from dictionary, filling in defaults for absent keys.

        Raises:
            InvalidConfigError: If a value has the wrong type or range.
            MissingConfigError: If a repository lacks its name or URL.
        """
        config = cls()

        for key in ("interpreter_command", "language"):
            if key in data:
                value = data[key]
                if value is None:
                    value = ""
                if not isinstance(value, str):
                    raise InvalidConfigError(key, value, "must be a string")
                setattr(config, key, value)

        if data.get("data_path"):
            config.data_path = Path(str(data["data_path"])).expanduser()

        if "repositories" in data:
            raw = data["repositories"]
            if not isinstance(raw, list):
                raise InvalidConfigError("repositories", raw, "must be a list")
            repositories = []
            names = set()
            for index, item in enumerate(raw):
                if not isinstance(item, dict):
                    raise InvalidConfigError(f"repositories[{index}]", item, "must be an object")
                for required in ("name", "url"):
                    if not item.get(required):
                        raise MissingConfigError(f"repositories[{index}].{required}")
                repo = Repository.from_dict(item)
                if repo.name in names:
                    raise InvalidConfigError(f"repositories[{index}].name", repo.name, "duplicate name")
                names.add(repo.name)
                repositories.append(repo)
            config.repositories = repositories

        if "sync_timeout" in data:
            try:
                config.sync_timeout = float(data["sync_timeout"])
            except (TypeError, ValueError):
                raise InvalidConfigError("sync_timeout", data["sync_timeout"], "must be a number")
            if config.sync_timeout <= 0:
                raise InvalidConfigError("sync_timeout", config.sync_timeout, "must be positive")

        if "sync_attempts" in data:
            value = data["sync_attempts"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise InvalidConfigError("sync_attempts", value, "must be an integer >= 1")
            config.sync_attempts = value

        return config


class ConfigStore:
    """Loads and saves :class:`ManagerConfig`."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_CONFIG_PATH

    def load(self) -> ManagerConfig:
        """
        Load the configuration, creating it with defaults when missing.

        Raises:
            InvalidConfigError: If the file is not valid JSON or holds
                invalid values.
        """
        if not self.path.exists():
            logger.info(f"No config at {self.path}, writing defaults")
            config = ManagerConfig()
            self.save(config)
            return config

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigError(str(self.path), "<file>", f"invalid JSON: {e}")

        if not isinstance(data, dict):
            raise InvalidConfigError(str(self.path), "<file>", "top level must be an object")

        return ManagerConfig.from_dict(data)

    def save(self, config: ManagerConfig) -> None:
        atomic_write_json(self.path, config.to_dict())
        logger.debug(f"Saved config to {self.path}")
