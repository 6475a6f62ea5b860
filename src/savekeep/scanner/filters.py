"""Ignore filters for files and registry keys.

Ignored entries are still recorded in the scan (``ignored=True``) so reports
can show them; they are never copied.

.savekeepignore file format:
  - One file path glob per line.
  - Lines starting with ``#`` are comments.
  - ``registry:PATH`` ignores a registry key and everything below it.
  - ``game:NAME glob`` scopes a file glob to a single game.
"""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from savekeep.scan.change import registry_key_id

IGNORE_FILENAME = ".savekeepignore"


class IgnoreFilter:
    """Evaluate configured and file-based ignore rules."""

    def __init__(
        self,
        files: Optional[Sequence[str]] = None,
        registry: Optional[Sequence[str]] = None,
    ) -> None:
        self._file_patterns: List[str] = [p.replace("\\", "/") for p in files or []]
        self._game_patterns: Dict[str, List[str]] = {}  # game -> [glob, ...]
        self._registry_prefixes: List[str] = [registry_key_id(p) for p in registry or []]

    @classmethod
    def from_file(cls, path: Path, base: Optional["IgnoreFilter"] = None) -> "IgnoreFilter":
        """Load a .savekeepignore file, extending *base* if given."""
        instance = cls()
        if base is not None:
            instance._file_patterns = list(base._file_patterns)
            instance._game_patterns = {k: list(v) for k, v in base._game_patterns.items()}
            instance._registry_prefixes = list(base._registry_prefixes)
        if not path.is_file():
            return instance
        with open(path, encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("registry:"):
                    instance._registry_prefixes.append(
                        registry_key_id(line.removeprefix("registry:").strip())
                    )
                    continue
                # game-scoped: "game:NAME glob" (NAME may not contain spaces)
                if line.startswith("game:"):
                    parts = line.split(None, 1)
                    if len(parts) == 2:
                        game = parts[0].removeprefix("game:")
                        instance._game_patterns.setdefault(game, []).append(
                            parts[1].replace("\\", "/")
                        )
                    continue
                instance._file_patterns.append(line.replace("\\", "/"))
        return instance

    def is_file_ignored(self, path: str, game: Optional[str] = None) -> bool:
        path = path.replace("\\", "/")
        for pat in self._file_patterns:
            if fnmatch(path, pat):
                return True
        if game:
            for pat in self._game_patterns.get(game, []):
                if fnmatch(path, pat):
                    return True
        return False

    def is_registry_ignored(self, path: str, value: Optional[str] = None) -> bool:
        key = registry_key_id(path)
        if value is not None:
            key = f"{key}/{value.casefold()}"
        for prefix in self._registry_prefixes:
            if key == prefix or key.startswith(prefix + "/"):
                return True
        return False
