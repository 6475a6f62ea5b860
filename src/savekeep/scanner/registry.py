"""Windows registry access.

Only Windows has a registry; ``default_registry()`` returns None elsewhere
and callers treat registry entries as unavailable.
"""

from __future__ import annotations

import hashlib
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol, Set, Tuple

from savekeep.logger import get_logger
from savekeep.scan.change import Baseline, ScanChange, normalize_registry_path
from savekeep.scan.models import ScannedRegistryKey, ScannedRegistryValue
from savekeep.scanner.filters import IgnoreFilter

logger = get_logger(__name__)

# Value kinds as stored in snapshots
_KIND_NAMES = {
    0: "none",
    1: "sz",
    2: "expand_sz",
    3: "binary",
    4: "dword",
    7: "multi_sz",
    11: "qword",
}
_KIND_CODES = {name: code for code, name in _KIND_NAMES.items()}


@dataclass(frozen=True)
class RegistryValueData:
    kind: str
    data: Any

    @property
    def hash(self) -> str:
        return value_hash(self.kind, self.data)


def value_hash(kind: str, data: Any) -> str:
    return hashlib.sha1(f"{kind}:{data!r}".encode("utf-8")).hexdigest()


RegistryTree = Dict[str, Dict[str, RegistryValueData]]  # key path -> values


class RegistryAccess(Protocol):
    def read_tree(self, path: str) -> RegistryTree: ...

    def write_key(self, path: str, values: Dict[str, RegistryValueData]) -> None: ...


class WindowsRegistry:
    """Read and write registry trees through ``winreg``."""

    def __init__(self) -> None:
        import winreg

        self._winreg = winreg
        self._hives = {
            "HKEY_CURRENT_USER": winreg.HKEY_CURRENT_USER,
            "HKEY_LOCAL_MACHINE": winreg.HKEY_LOCAL_MACHINE,
            "HKEY_CLASSES_ROOT": winreg.HKEY_CLASSES_ROOT,
            "HKEY_USERS": winreg.HKEY_USERS,
        }

    def _split(self, path: str) -> Tuple[Any, str]:
        path = normalize_registry_path(path)
        hive_name, _, rest = path.partition("/")
        hive = self._hives.get(hive_name.upper())
        if hive is None:
            raise OSError(f"unknown registry hive: {hive_name}")
        return hive, rest.replace("/", "\\")

    def read_tree(self, path: str) -> RegistryTree:
        """Return every key under *path* (inclusive) with its values."""
        tree: RegistryTree = {}
        try:
            hive, subkey = self._split(path)
            with self._winreg.OpenKey(hive, subkey) as handle:
                self._walk(handle, normalize_registry_path(path), tree)
        except OSError:
            logger.debug("Registry key not readable: %s", path)
        return tree

    def _walk(self, handle: Any, path: str, tree: RegistryTree) -> None:
        winreg = self._winreg
        subkeys, value_count, _ = winreg.QueryInfoKey(handle)
        values: Dict[str, RegistryValueData] = {}
        for i in range(value_count):
            name, data, kind = winreg.EnumValue(handle, i)
            kind_name = _KIND_NAMES.get(kind, str(kind))
            if isinstance(data, bytes):
                data = data.hex()
            values[name] = RegistryValueData(kind=kind_name, data=data)
        tree[path] = values
        for i in range(subkeys):
            name = winreg.EnumKey(handle, i)
            with winreg.OpenKey(handle, name) as child:
                self._walk(child, f"{path}/{name}", tree)

    def write_key(self, path: str, values: Dict[str, RegistryValueData]) -> None:
        winreg = self._winreg
        hive, subkey = self._split(path)
        with winreg.CreateKeyEx(hive, subkey, 0, winreg.KEY_WRITE) as handle:
            for name, value in values.items():
                code = _KIND_CODES.get(value.kind)
                if code is None:
                    code = int(value.kind)
                data = bytes.fromhex(value.data) if value.kind == "binary" else value.data
                winreg.SetValueEx(handle, name, 0, code, data)


def default_registry() -> Optional[RegistryAccess]:
    if sys.platform != "win32":
        return None
    return WindowsRegistry()


def _iter_tree(
    registry: RegistryAccess, roots: Set[str]
) -> Iterator[Tuple[str, Dict[str, RegistryValueData]]]:
    for root in sorted(roots):
        yield from registry.read_tree(root).items()


def scan_registry(
    game_name: str,
    roots: Set[str],
    registry: Optional[RegistryAccess],
    *,
    baseline: Optional[Baseline],
    ignore: IgnoreFilter,
) -> Set[ScannedRegistryKey]:
    """Scan registry trees under *roots* for one game."""
    found: Set[ScannedRegistryKey] = set()
    if registry is None or not roots:
        return found
    for path, values in _iter_tree(registry, roots):
        key = ScannedRegistryKey(
            path=path,
            ignored=ignore.is_registry_ignored(path),
            change=(
                baseline.classify_registry_key(path)
                if baseline is not None
                else ScanChange.UNKNOWN
            ),
        )
        for name, value in values.items():
            key.values[name] = ScannedRegistryValue(
                ignored=key.ignored or ignore.is_registry_ignored(path, name),
                change=(
                    baseline.classify_registry_value(path, name, value.hash)
                    if baseline is not None
                    else ScanChange.UNKNOWN
                ),
                hash=value.hash,
                kind=value.kind,
                data=value.data,
            )
        found.add(key)
    logger.debug("Found %d registry keys for %s", len(found), game_name)
    return found
