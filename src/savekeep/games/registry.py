"""Game registry — loads configured and catalog games, applies config filters."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import yaml

from savekeep.config.schema import SaveKeepConfig
from savekeep.games.models import Game
from savekeep.logger import get_logger

CATALOG_DIRNAME = ".savekeep-games"

logger = get_logger(__name__)


class CatalogError(Exception):
    """Raised when a custom game catalog cannot be parsed."""


class GameRegistry:
    """Central store for every known game."""

    def __init__(self) -> None:
        self._games: Dict[str, Game] = {}

    # ---- registration ----

    def register(self, game: Game) -> None:
        if game.name in self._games:
            logger.debug("Game %r from %s replaces earlier definition", game.name, game.source)
        self._games[game.name] = game

    def register_many(self, games: Sequence[Game]) -> None:
        for g in games:
            self.register(g)

    # ---- queries ----

    @property
    def all_games(self) -> List[Game]:
        return sorted(self._games.values(), key=lambda g: g.name)

    def get(self, name: str) -> Optional[Game]:
        return self._games.get(name)

    def enabled_games(self) -> List[Game]:
        return [g for g in self.all_games if g.enabled]

    def select(self, names: Sequence[str]) -> Tuple[List[Game], List[str]]:
        """Return (games, unknown_names) for *names*; empty *names* means all."""
        if not names:
            return self.all_games, []
        found: List[Game] = []
        unknown: List[str] = []
        for name in names:
            game = self._games.get(name)
            if game is None:
                unknown.append(name)
            else:
                found.append(game)
        return found, unknown

    # ---- config filtering ----

    def apply_config(self, config: SaveKeepConfig) -> None:
        """Enable / disable games based on config.games_filter."""
        enable_list = config.games_filter.enable
        disable_list = config.games_filter.disable

        for game in self._games.values():
            if enable_list:
                game.enabled = game.name in enable_list
            if game.name in disable_list:
                game.enabled = False

    # ---- catalog loading ----

    def load_catalogs(self, directory: Path) -> int:
        """Load YAML game catalogs from *directory*. Returns count loaded."""
        count = 0
        if not directory.is_dir():
            return 0
        for path in sorted(directory.iterdir()):
            if path.suffix in (".yaml", ".yml"):
                count += self._load_yaml_games(path)
        return count

    def _load_yaml_games(self, path: Path) -> int:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise CatalogError(f"Failed to parse {path}: {exc}") from exc
        if data is None:
            return 0
        # Either a list of games or a mapping of name -> definition
        if isinstance(data, dict):
            data = [{"name": name, **(entry or {})} for name, entry in data.items()]
        if not isinstance(data, list):
            raise CatalogError(f"{path}: expected a list or mapping of games")
        count = 0
        for entry in data:
            if not isinstance(entry, dict) or "name" not in entry:
                raise CatalogError(f"{path}: every game needs a name")
            self.register(
                Game(
                    name=str(entry["name"]),
                    files=list(entry.get("files") or []),
                    registry=list(entry.get("registry") or []),
                    enabled=bool(entry.get("enabled", True)),
                    source=str(path),
                )
            )
            count += 1
        return count


def build_registry(config: SaveKeepConfig, config_root: Path) -> GameRegistry:
    """Create a fully populated, config-filtered game registry."""
    registry = GameRegistry()

    loaded = registry.load_catalogs(config_root / CATALOG_DIRNAME)
    if loaded:
        logger.debug("Loaded %d games from catalogs", loaded)

    # Games in savekeep.toml win over catalog entries with the same name
    registry.register_many(
        [
            Game(
                name=g.name,
                files=list(g.files),
                registry=list(g.registry),
                enabled=g.enabled,
            )
            for g in config.games
        ]
    )

    registry.apply_config(config)
    return registry
