"""Game catalog — models and registry."""

from savekeep.games.models import Game
from savekeep.games.registry import CatalogError, GameRegistry, build_registry

__all__ = ["CatalogError", "Game", "GameRegistry", "build_registry"]
