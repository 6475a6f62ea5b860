"""Cross-game duplicate detection.

Registration and querying are separate phases. ``DuplicateDetector`` only
accepts registrations; ``seal()`` hands back a ``DuplicateIndex`` that only
answers queries. A game's duplicate status depends on every other game, so
no query is possible until every game has been registered.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Set, Tuple, Union

from savekeep.scan.change import registry_key_id
from savekeep.scan.models import ScanInfo, ScannedFile, ScannedRegistryKey

Claims = Dict[str, bool]  # game name -> enabled


class Duplication(str, Enum):
    RESOLVED = "Resolved"
    UNRESOLVED = "Unresolved"

    def resolved(self) -> bool:
        return self is Duplication.RESOLVED

    @classmethod
    def evaluate(cls, claims: Claims) -> "Duplication":
        enabled = sum(1 for is_enabled in claims.values() if is_enabled)
        return cls.UNRESOLVED if enabled > 1 else cls.RESOLVED


class DuplicateIndexSealed(Exception):
    """Raised when a game is registered after the index was sealed."""


def _file_key(entry: Union[ScannedFile, str]) -> str:
    if isinstance(entry, ScannedFile):
        return entry.logical_path
    return entry


def _registry_key(entry: Union[ScannedRegistryKey, str]) -> str:
    if isinstance(entry, ScannedRegistryKey):
        return entry.key
    return registry_key_id(entry)


class DuplicateDetector:
    """Collects which games claim which files and registry entries."""

    def __init__(self) -> None:
        self._files: Dict[str, Claims] = {}
        self._registry: Dict[str, Claims] = {}
        self._registry_values: Dict[Tuple[str, str], Claims] = {}
        self._game_files: Dict[str, Set[str]] = {}
        self._game_registry: Dict[str, Set[str]] = {}
        self._game_registry_values: Dict[str, Set[Tuple[str, str]]] = {}
        self._sealed = False

    def add_game(self, scan_info: ScanInfo, enabled: bool) -> None:
        """Register every entry of *scan_info* under its game name.

        An ignored entry counts as a disabled claim.
        """
        if self._sealed:
            raise DuplicateIndexSealed(
                f"cannot register {scan_info.game_name!r}: duplicate index already sealed"
            )
        game = scan_info.game_name
        files = self._game_files.setdefault(game, set())
        registry = self._game_registry.setdefault(game, set())
        values = self._game_registry_values.setdefault(game, set())

        for entry in scan_info.found_files:
            key = _file_key(entry)
            self._files.setdefault(key, {})[game] = enabled and not entry.ignored
            files.add(key)

        for reg in scan_info.found_registry_keys:
            self._registry.setdefault(reg.key, {})[game] = enabled and not reg.ignored
            registry.add(reg.key)
            for value_name, value in reg.values.items():
                pair = (reg.key, value_name)
                self._registry_values.setdefault(pair, {})[game] = enabled and not value.ignored
                values.add(pair)

    def seal(self) -> "DuplicateIndex":
        """Finish registration and return the query-only index."""
        self._sealed = True
        return DuplicateIndex(
            files=self._files,
            registry=self._registry,
            registry_values=self._registry_values,
            game_files=self._game_files,
            game_registry=self._game_registry,
            game_registry_values=self._game_registry_values,
        )


class DuplicateIndex:
    """Read-only answers about shared entries, valid once all games are in."""

    def __init__(
        self,
        *,
        files: Dict[str, Claims],
        registry: Dict[str, Claims],
        registry_values: Dict[Tuple[str, str], Claims],
        game_files: Dict[str, Set[str]],
        game_registry: Dict[str, Set[str]],
        game_registry_values: Dict[str, Set[Tuple[str, str]]],
    ) -> None:
        self._files = files
        self._registry = registry
        self._registry_values = registry_values
        self._game_files = game_files
        self._game_registry = game_registry
        self._game_registry_values = game_registry_values

    @classmethod
    def empty(cls) -> "DuplicateIndex":
        return DuplicateDetector().seal()

    # ---- claimant maps ----

    def file(self, entry: Union[ScannedFile, str]) -> Claims:
        return dict(self._files.get(_file_key(entry), {}))

    def registry(self, entry: Union[ScannedRegistryKey, str]) -> Claims:
        return dict(self._registry.get(_registry_key(entry), {}))

    def registry_value(self, entry: Union[ScannedRegistryKey, str], value: str) -> Claims:
        return dict(self._registry_values.get((_registry_key(entry), value), {}))

    # ---- duplication status ----

    def is_file_duplicated(self, entry: Union[ScannedFile, str]) -> Duplication:
        return Duplication.evaluate(self._files.get(_file_key(entry), {}))

    def is_registry_duplicated(self, entry: Union[ScannedRegistryKey, str]) -> Duplication:
        return Duplication.evaluate(self._registry.get(_registry_key(entry), {}))

    def is_registry_value_duplicated(
        self, entry: Union[ScannedRegistryKey, str], value: str
    ) -> Duplication:
        return Duplication.evaluate(
            self._registry_values.get((_registry_key(entry), value), {})
        )

    def is_game_duplicated(self, game: str) -> Duplication:
        """Unresolved if any entry registered for *game* is unresolved."""
        for key in self._game_files.get(game, ()):
            if not Duplication.evaluate(self._files[key]).resolved():
                return Duplication.UNRESOLVED
        for key in self._game_registry.get(game, ()):
            if not Duplication.evaluate(self._registry[key]).resolved():
                return Duplication.UNRESOLVED
        for pair in self._game_registry_values.get(game, ()):
            if not Duplication.evaluate(self._registry_values[pair]).resolved():
                return Duplication.UNRESOLVED
        return Duplication.RESOLVED

    # ---- other claimants ----

    def file_duplicated_by(self, entry: Union[ScannedFile, str], game: str) -> List[str]:
        if self.is_file_duplicated(entry).resolved():
            return []
        return sorted(name for name in self.file(entry) if name != game)

    def registry_duplicated_by(
        self, entry: Union[ScannedRegistryKey, str], game: str
    ) -> List[str]:
        if self.is_registry_duplicated(entry).resolved():
            return []
        return sorted(name for name in self.registry(entry) if name != game)

    def registry_value_duplicated_by(
        self, entry: Union[ScannedRegistryKey, str], value: str, game: str
    ) -> List[str]:
        if self.is_registry_value_duplicated(entry, value).resolved():
            return []
        return sorted(name for name in self.registry_value(entry, value) if name != game)

    def duplicated_games(self) -> Set[str]:
        return {
            game
            for game in set(self._game_files) | set(self._game_registry)
            if not self.is_game_duplicated(game).resolved()
        }
