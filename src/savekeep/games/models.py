"""Game data model — which paths and registry keys hold a game's state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class Game:
    """A game (or any application) whose persistent state is backed up.

    ``files`` are path patterns (``~``, ``$VAR`` and ``*``/``**`` globs are
    expanded at scan time); ``registry`` are registry key paths such as
    ``HKEY_CURRENT_USER/Software/Studio/Game``.
    """

    name: str
    files: List[str] = field(default_factory=list)
    registry: List[str] = field(default_factory=list)
    enabled: bool = True
    source: str = "config"  # 'config' or the catalog file it came from

    @property
    def has_registry(self) -> bool:
        return bool(self.registry)
