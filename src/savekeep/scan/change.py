"""Change classification — how a scanned entry compares to its baseline.

Every report, status tally and restore decision reads the ``change`` stored
on an entry; nothing downstream re-derives it.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Mapping, Optional


class ScanChange(str, Enum):
    NEW = "New"
    DIFFERENT = "Different"
    SAME = "Same"
    UNKNOWN = "Unknown"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    def is_changed(self) -> bool:
        return self in (ScanChange.NEW, ScanChange.DIFFERENT)

    @classmethod
    def worst(cls, changes: Iterable["ScanChange"]) -> "ScanChange":
        """Reduce *changes* to the most-changed one (Unknown if empty)."""
        result = cls.UNKNOWN
        for change in changes:
            if change.precedence > result.precedence:
                result = change
                if result is cls.NEW:
                    break
        return result


_SYMBOLS = {
    ScanChange.NEW: "+",
    ScanChange.DIFFERENT: "Δ",
    ScanChange.SAME: "=",
    ScanChange.UNKNOWN: "?",
}

_PRECEDENCE = {
    ScanChange.UNKNOWN: 0,
    ScanChange.SAME: 1,
    ScanChange.DIFFERENT: 2,
    ScanChange.NEW: 3,
}


def classify(
    current: Optional[str],
    previous: Optional[str],
    *,
    tracked: bool = True,
) -> ScanChange:
    """Classify an entry from its current hash and its baseline hash.

    *current* is None when the entry does not exist on the scanned side and
    *previous* is None when the baseline has no counterpart. ``tracked=False``
    means there is no baseline at all for this operation.
    """
    if not tracked or current is None:
        return ScanChange.UNKNOWN
    if previous is None:
        return ScanChange.NEW
    if current == previous:
        return ScanChange.SAME
    return ScanChange.DIFFERENT


def registry_key_id(path: str) -> str:
    """Case-insensitive identity of a registry path."""
    return normalize_registry_path(path).casefold()


def normalize_registry_path(path: str) -> str:
    """Render a registry path with ``/`` separators and no trailing separator."""
    return path.replace("\\", "/").rstrip("/")


class Baseline:
    """Hashes of the comparison side of a scan.

    Built from a snapshot manifest when backing up, or from the live system
    when restoring. Lookups on registry paths are case-insensitive.
    """

    def __init__(
        self,
        files: Optional[Mapping[str, str]] = None,
        registry: Optional[Mapping[str, Mapping[str, Optional[str]]]] = None,
    ) -> None:
        self._files: Dict[str, str] = dict(files or {})
        self._registry: Dict[str, Dict[str, Optional[str]]] = {
            registry_key_id(path): dict(values)
            for path, values in (registry or {}).items()
        }

    @property
    def files(self) -> Dict[str, str]:
        return dict(self._files)

    def file_hash(self, path: str) -> Optional[str]:
        return self._files.get(path)

    def classify_file(self, path: str, current_hash: Optional[str]) -> ScanChange:
        return classify(current_hash, self._files.get(path))

    def classify_registry_key(self, path: str) -> ScanChange:
        if registry_key_id(path) in self._registry:
            return ScanChange.SAME
        return ScanChange.NEW

    def classify_registry_value(
        self, path: str, name: str, current_hash: Optional[str]
    ) -> ScanChange:
        values = self._registry.get(registry_key_id(path))
        if values is None or name not in values:
            return classify(current_hash, None)
        previous = values[name]
        if previous is None:
            # Recorded without content; presence is all we know.
            return ScanChange.SAME if current_hash is not None else ScanChange.UNKNOWN
        return classify(current_hash, previous)


def classify_against(
    baseline: Optional[Baseline], path: str, current_hash: Optional[str]
) -> ScanChange:
    """Classify a file against an optional baseline (None → Unknown)."""
    if baseline is None:
        return classify(current_hash, None, tracked=False)
    return baseline.classify_file(path, current_hash)
